'''
Name: apps/scheduler/utils/scheduler.py
Description: Module for scheduling items around existing commitments.
                Conflict detection, free slot search, task block
                suggestions and exam study plans.
Created: October 5, 2026
Last Modified: October 18, 2026
'''

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime
from django.utils.timezone import make_aware, get_current_timezone
from datetime import datetime, date, time, timedelta
from typing import List, Tuple, Dict, Optional
import heapq
import math
import pytz
import logging
from .constants import (
    LOGGER_NAME,
    PRIORITY_ORDER,
    ItemStatus,
    ItemType,
    SLOT_CONSUMED_MARGIN_MINUTES,
    REVIEW_WINDOW_DAYS,
    SUGGESTION_STEP_MINUTES,
    scheduler_default,
)
logger = logging.getLogger(LOGGER_NAME)

UTC = pytz.UTC

# Data structures used internally are as follows:
# ItemDict = {
#   "id","type","title","status","priority","start_at","end_at","due_at",
#   "estimated_minutes","buffer_before","buffer_after","recurrence_rule",
#   "recurrence_end","original_item_id","course_id","project_id","created_at"
# }
# (timestamps may be ISO strings or datetimes, any of them may be None)
# BusySlot = (start_datetime, end_datetime)
# TimeSlot = {"start","end","duration_minutes"}
# Conflict = {"item_a","item_b"}
# TaskSuggestion = {"item_id","title","suggested_start","suggested_end"}
# StudySession = {"course_id","item_id","title","suggested_start","suggested_end","type"}


def _to_dt_utc(x) -> Optional[datetime]:
    """
    Accepts a datetime, date or ISO string and returns a timezone-aware UTC datetime.
    Returns None if x is empty or cannot be parsed.
    Treat naive datetimes as server-local then convert to UTC.
    """
    if not x:
        return None
    if isinstance(x, datetime):
        if x.tzinfo:
            return x.astimezone(UTC)
        # naive -> assume server local
        return make_aware(x, get_current_timezone()).astimezone(UTC)
    if isinstance(x, date):
        return to_datetime(x, time.min)
    try:
        dt = parse_datetime(str(x))
        if dt is None:
            day = parse_date(str(x))
            return to_datetime(day, time.min) if day else None
    except ValueError:
        dt = None
    if dt is None:
        logger.warning("_to_dt_utc: unparseable timestamp %r", x)
        return None
    if dt.tzinfo:
        return dt.astimezone(UTC)
    return make_aware(dt, get_current_timezone()).astimezone(UTC)


def to_datetime(d: date, t: time, tzinfo_local=None) -> datetime:
    """
    Combine date + time into a timezone-aware datetime in UTC.
    If tzinfo_local is provided it is treated as the local timezone for the supplied date+time.
    If time is None use midnight.
    """
    base = datetime.combine(d, t if t else time.min)
    if tzinfo_local is None:
        local_tz = get_current_timezone()
    elif isinstance(tzinfo_local, str):
        local_tz = pytz.timezone(tzinfo_local)
    else:
        local_tz = tzinfo_local
    # For pytz timezones use localize; for others set tzinfo directly
    if hasattr(local_tz, "localize"):
        local_dt = local_tz.localize(base)
    else:
        local_dt = base.replace(tzinfo=local_tz)
    return local_dt.astimezone(UTC)


def at_hour(d: date, hour: int, tzinfo_local=None) -> datetime:
    """Local wall-clock `hour` on day d (hour 24 means next midnight), in UTC."""
    hour = int(hour)
    return to_datetime(d + timedelta(days=hour // 24), time(hour % 24), tzinfo_local)


def to_iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.astimezone(UTC).isoformat() if dt else None


def iso_day(value) -> Optional[str]:
    """YYYY-MM-DD prefix of an ISO timestamp (datetimes are formatted first)."""
    if not value:
        return None
    if isinstance(value, (datetime, date)):
        value = value.isoformat()
    return str(value)[:10]


def item_bounds(item: dict) -> Optional[Tuple[datetime, datetime]]:
    """(start, end) of a time-bound item, or None if either bound is missing."""
    start = _to_dt_utc(item.get("start_at"))
    end = _to_dt_utc(item.get("end_at"))
    if start is None or end is None:
        return None
    return start, end


def minutes_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 60.0


def schedule_sort_key(t):
    # Higher priority first, then longer work first
    pr = PRIORITY_ORDER.get(t.get("priority", "medium"), 2)
    dur = int(t.get("estimated_minutes", 0) or 0)
    return (pr, -dur)


def invert_slots(busy: List[Tuple[datetime, datetime]], window_start: datetime, window_end: datetime) -> List[Tuple[datetime, datetime]]:
    """Return free gaps inside [window_start, window_end] given busy intervals sorted by start."""
    free = []
    cur = window_start
    for s, e in busy:
        if e <= window_start or s >= window_end:
            continue
        if s > cur:
            free.append((cur, s))
        cur = max(cur, min(e, window_end))
    if cur < window_end:
        free.append((cur, window_end))
    return free


def get_busy_with_buffers(events: List[dict]) -> List[Tuple[datetime, datetime]]:
    """
    Busy intervals for time-bound events, each widened by its own
    buffer_before/buffer_after minutes, sorted by effective start.
    """
    busy = []
    for ev in events:
        bounds = item_bounds(ev)
        if bounds is None:
            continue
        before = timedelta(minutes=int(ev.get("buffer_before") or 0))
        after = timedelta(minutes=int(ev.get("buffer_after") or 0))
        busy.append((bounds[0] - before, bounds[1] + after))
    busy.sort(key=lambda x: x[0])
    return busy


# ============================================================
#  CONFLICTS
# ============================================================

def detect_conflicts(items: List[dict]) -> List[Dict]:
    """
    Return every pair of time-bound items whose windows strictly overlap
    (b_start < a_end and b_end > a_start). Touching endpoints are fine.

    Items are ordered by start and pairs come back in (i, j) order over that
    ordering, exactly as a full pairwise scan would report them. A sweep line
    keeps only the items whose end is still ahead of the current start.
    """
    timed = []
    for item in items:
        bounds = item_bounds(item)
        if bounds:
            timed.append((bounds[0], bounds[1], item))
    timed.sort(key=lambda x: x[0])

    pairs = []
    active = []  # heap of (end, index)
    for j, (b_start, b_end, _) in enumerate(timed):
        # anything ending at or before this start can't overlap this or later items
        while active and active[0][0] <= b_start:
            heapq.heappop(active)
        for a_end, i in active:
            a_start = timed[i][0]
            if b_start < a_end and b_end > a_start:
                pairs.append((i, j))
        heapq.heappush(active, (b_end, j))
    pairs.sort()

    logger.debug("detect_conflicts: timed=%d conflicts=%d", len(timed), len(pairs))
    return [{"item_a": timed[i][2], "item_b": timed[j][2]} for i, j in pairs]


# ============================================================
#  SLOTS
# ============================================================

def find_available_slots(
    events: List[dict],
    start_date=None,
    end_date=None,
    work_start_hour: Optional[int] = None,
    work_end_hour: Optional[int] = None,
    min_duration_minutes: Optional[float] = None,
    exclude_weekends: Optional[bool] = None,
) -> List[Dict]:
    """
    Free time inside working hours between start_date and end_date (inclusive,
    by calendar day). Busy windows include each event's buffers.
    Defaults: now .. +7 days, 09:00-18:00, 30 minute minimum, weekdays only.
    """
    start = _to_dt_utc(start_date) or timezone.now()
    end = _to_dt_utc(end_date) or start + timedelta(days=scheduler_default("slot_search_days"))
    if work_start_hour is None:
        work_start_hour = scheduler_default("work_start_hour")
    if work_end_hour is None:
        work_end_hour = scheduler_default("work_end_hour")
    if min_duration_minutes is None:
        min_duration_minutes = scheduler_default("min_duration_minutes")
    if exclude_weekends is None:
        exclude_weekends = scheduler_default("exclude_weekends")

    local_tz = get_current_timezone()
    busy = get_busy_with_buffers(events)
    logger.info("find_available_slots: window=[%s, %s] hours=%s-%s busy=%d min=%s",
                start, end, work_start_hour, work_end_hour, len(busy), min_duration_minutes)

    slots = []
    one_day = timedelta(days=1)
    day = start.astimezone(local_tz).date()
    while to_datetime(day, time.min, local_tz) <= end:
        if exclude_weekends and day.weekday() >= 5:
            day = day + one_day
            continue
        day_start = at_hour(day, work_start_hour, local_tz)
        day_end = at_hour(day, work_end_hour, local_tz)
        for free_s, free_e in invert_slots(busy, day_start, day_end):
            duration = minutes_between(free_s, free_e)
            if duration >= min_duration_minutes:
                slots.append({"start": free_s, "end": free_e, "duration_minutes": duration})
        day = day + one_day

    logger.debug("find_available_slots: slots=%d", len(slots))
    return slots


def find_best_slot_for_duration(events: List[dict], duration_minutes: float, **options) -> Optional[Dict]:
    """First available slot long enough for duration_minutes, or None."""
    options["min_duration_minutes"] = duration_minutes
    for slot in find_available_slots(events, **options):
        if slot["duration_minutes"] >= duration_minutes:
            return slot
    logger.info("find_best_slot_for_duration: no slot of %s minutes", duration_minutes)
    return None


# ============================================================
#  TASK BLOCKS
# ============================================================

def suggest_task_blocks(
    tasks: List[dict],
    events: List[dict],
    days: Optional[int] = None,
    work_start_hour: Optional[int] = None,
    work_end_hour: Optional[int] = None,
    reserve_slots: bool = False,
    now: Optional[datetime] = None,
) -> List[Dict]:
    """
    Greedily place each task at the first 30-minute-aligned start inside
    working hours, over the next `days` days, that does not overlap a busy
    event (raw bounds, buffers are not applied here).

    Tasks are placed independently: unless reserve_slots is set, a block
    suggested for one task stays available to the next. Tasks that fit
    nowhere are left out of the result.
    """
    if days is None:
        days = scheduler_default("suggestion_days")
    if work_start_hour is None:
        work_start_hour = scheduler_default("work_start_hour")
    if work_end_hour is None:
        work_end_hour = scheduler_default("work_end_hour")
    now = _to_dt_utc(now) or timezone.now()
    local_tz = get_current_timezone()
    today = now.astimezone(local_tz).date()
    step = timedelta(minutes=SUGGESTION_STEP_MINUTES)

    busy = []
    for ev in events:
        bounds = item_bounds(ev)
        if bounds:
            busy.append(bounds)

    suggestions = []
    for task in tasks:
        minutes = task.get("estimated_minutes")
        if minutes is None:
            minutes = scheduler_default("task_minutes")
        needed = timedelta(minutes=minutes)
        placed = None

        for day_offset in range(days):
            day = today + timedelta(days=day_offset)
            day_end = at_hour(day, work_end_hour, local_tz)
            slot_start = at_hour(day, work_start_hour, local_tz)
            while slot_start < day_end:
                slot_end = slot_start + needed
                if slot_end > day_end:
                    break
                if not any(slot_start < e and slot_end > s for s, e in busy):
                    placed = (slot_start, slot_end)
                    break
                slot_start += step
            if placed:
                break

        if placed is None:
            logger.warning("suggest_task_blocks: UNPLACED title=%r minutes=%s", task.get("title"), minutes)
            continue

        suggestions.append({
            "item_id": task.get("id"),
            "title": task.get("title"),
            "suggested_start": to_iso(placed[0]),
            "suggested_end": to_iso(placed[1]),
        })
        if reserve_slots:
            busy.append(placed)

    logger.info("suggest_task_blocks: tasks=%d suggestions=%d reserve=%s", len(tasks), len(suggestions), reserve_slots)
    return suggestions


# ============================================================
#  STUDY PLAN
# ============================================================

def _study_session(item, kind, start, end):
    label = "Study" if kind == "study" else "Review"
    return {
        "course_id": item.get("course_id") or None,
        "item_id": item.get("id"),
        "title": f"{label}: {item.get('title')}",
        "suggested_start": to_iso(start),
        "suggested_end": to_iso(end),
        "type": kind,
    }


def generate_study_plan(
    items: List[dict],
    events: List[dict],
    exam_date=None,
    total_hours: Optional[float] = None,
    sessions_per_day: Optional[int] = None,
    session_duration: Optional[int] = None,
    preferred_start_hour: Optional[int] = None,
    preferred_end_hour: Optional[int] = None,
    now: Optional[datetime] = None,
    pack_sessions: bool = False,
) -> List[Dict]:
    """
    Build study sessions for open school items in the free time before an exam.

    Every session starts at the current slot's start, and the plan only moves
    to the next slot once a session ends within 30 minutes of the slot's end,
    so sessions in a long slot share a start time. Items due within 3 days
    also get a half-length review session in the current slot, after which
    the plan moves on to the next slot.

    With pack_sessions, each session starts where the previous one ended
    instead, and slot remainders too short for a full session are skipped.

    The plan stops at ceil(days until exam) * sessions_per_day sessions, when
    slots run out, or (if total_hours is given) once that many hours are planned.
    """
    now = _to_dt_utc(now) or timezone.now()
    exam = _to_dt_utc(exam_date) or now + timedelta(days=scheduler_default("exam_days"))
    if sessions_per_day is None:
        sessions_per_day = scheduler_default("sessions_per_day")
    if session_duration is None:
        session_duration = scheduler_default("session_duration")
    if preferred_start_hour is None:
        preferred_start_hour = scheduler_default("study_start_hour")
    if preferred_end_hour is None:
        preferred_end_hour = scheduler_default("study_end_hour")

    school_items = [
        item for item in items
        if item.get("type") == ItemType.SCHOOL and item.get("status") != ItemStatus.COMPLETED
    ]
    days_until_exam = math.ceil((exam - now).total_seconds() / 86400)
    max_sessions = days_until_exam * sessions_per_day
    budget = total_hours * 60 if total_hours is not None else None

    slots = find_available_slots(
        events,
        start_date=now,
        end_date=exam,
        work_start_hour=preferred_start_hour,
        work_end_hour=preferred_end_hour,
        min_duration_minutes=session_duration,
    )
    logger.info("generate_study_plan: school_items=%d slots=%d max_sessions=%d budget=%s",
                len(school_items), len(slots), max_sessions, budget)

    sessions = []
    planned_minutes = 0.0
    slot_index = 0
    cursor = slots[0]["start"] if slots else None
    study_length = timedelta(minutes=session_duration)
    review_length = timedelta(minutes=session_duration / 2)
    margin = timedelta(minutes=SLOT_CONSUMED_MARGIN_MINUTES)

    def can_add():
        if len(sessions) >= max_sessions or slot_index >= len(slots):
            return False
        return budget is None or planned_minutes < budget

    def next_slot():
        nonlocal slot_index, cursor
        slot_index += 1
        cursor = slots[slot_index]["start"] if slot_index < len(slots) else None

    # cursor stays on the current slot's start unless sessions are packed
    for item in school_items:
        if pack_sessions:
            # skip what is left of a slot that can't hold another full session
            while slot_index < len(slots) and cursor + study_length > slots[slot_index]["end"]:
                next_slot()
        if not can_add():
            break

        session_end = cursor + study_length
        sessions.append(_study_session(item, "study", cursor, session_end))
        planned_minutes += session_duration
        if session_end >= slots[slot_index]["end"] - margin:
            next_slot()
        elif pack_sessions:
            cursor = session_end

        due = _to_dt_utc(item.get("due_at"))
        if due is None:
            continue
        days_before = math.ceil((due - now).total_seconds() / 86400)
        if days_before > REVIEW_WINDOW_DAYS:
            continue
        if pack_sessions and slot_index < len(slots) and cursor + review_length > slots[slot_index]["end"]:
            next_slot()
        if can_add():
            sessions.append(_study_session(item, "review", cursor, cursor + review_length))
            planned_minutes += session_duration / 2
            next_slot()

    logger.info("generate_study_plan: sessions=%d", len(sessions))
    return sessions
