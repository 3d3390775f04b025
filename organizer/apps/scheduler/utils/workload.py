'''
Name: apps/scheduler/utils/workload.py
Description: Workload warnings over an upcoming horizon and pre-booking
             checks for a single candidate item.
Created: October 8, 2026
Last Modified: October 18, 2026
'''
import logging
import math
from datetime import timedelta

from django.utils import timezone
from django.utils.timezone import get_current_timezone

from .constants import (
    LOGGER_NAME,
    BACK_TO_BACK_MINUTES,
    DEADLINE_CLUSTER_HIGH,
    DEADLINE_CLUSTER_SIZE,
    DEADLINE_RISK_TASKS,
    OVERLOAD_HIGH_FACTOR,
    OVERLOADED_DAY_MINUTES,
    ItemStatus,
    ItemType,
    Severity,
    scheduler_default,
)
from .scheduler import UTC, _to_dt_utc, detect_conflicts, item_bounds, iso_day, minutes_between

logger = logging.getLogger(LOGGER_NAME)


def _warning(kind, severity, message, affected_items, affected_dates=None, suggested_action=None):
    warning = {
        "type": kind,
        "severity": severity,
        "message": message,
        "affected_items": affected_items,
    }
    if affected_dates is not None:
        warning["affected_dates"] = affected_dates
    if suggested_action is not None:
        warning["suggested_action"] = suggested_action
    return warning


def _clock(dt):
    """12-hour clock label such as '11:30 AM' in the configured time zone."""
    local = dt.astimezone(get_current_timezone())
    hour = local.hour % 12 or 12
    return f"{hour}:{local.minute:02d} {'AM' if local.hour < 12 else 'PM'}"


def _utc_day(dt):
    return dt.astimezone(UTC).date().isoformat()


def analyze_workload(items, days_ahead=None, max_items_per_day=None, now=None):
    """
    Warnings for the next `days_ahead` days:
      - overloaded: a day holds more than max_items_per_day items
      - deadline_cluster: 3+ deadlines within 24 hours of one another
      - conflict: two time-bound items overlap
    Items due (else starting) between now and now + days_ahead are bucketed
    by UTC date.
    """
    if days_ahead is None:
        days_ahead = scheduler_default("days_ahead")
    if max_items_per_day is None:
        max_items_per_day = scheduler_default("max_items_per_day")
    now = _to_dt_utc(now) or timezone.now()
    horizon_end = now + timedelta(days=days_ahead)
    warnings = []

    items_by_day = {}
    for item in items:
        due = _to_dt_utc(item.get("due_at"))
        when = due if due is not None else _to_dt_utc(item.get("start_at"))
        if when is None:
            continue
        if now <= when <= horizon_end:
            items_by_day.setdefault(_utc_day(when), []).append(item)

    for date_str, day_items in items_by_day.items():
        count = len(day_items)
        if count > max_items_per_day:
            warnings.append(_warning(
                "overloaded",
                Severity.HIGH if count > max_items_per_day * OVERLOAD_HIGH_FACTOR else Severity.MEDIUM,
                f"{count} items scheduled for {date_str}. Consider rescheduling some.",
                [i.get("id") for i in day_items],
                affected_dates=[date_str],
            ))

    # Every item opens its own 24 hour window, so long runs are reported more than once
    with_due = []
    for item in items:
        due = _to_dt_utc(item.get("due_at"))
        if due is not None:
            with_due.append((due, item))
    with_due.sort(key=lambda x: x[0])
    window = timedelta(hours=24)
    for i in range(len(with_due) - (DEADLINE_CLUSTER_SIZE - 1)):
        first_due, first_item = with_due[i]
        clustered = [first_item]
        for due, item in with_due[i + 1:]:
            if due - first_due > window:
                break
            clustered.append(item)
        if len(clustered) >= DEADLINE_CLUSTER_SIZE:
            date_str = _utc_day(first_due)
            warnings.append(_warning(
                "deadline_cluster",
                Severity.HIGH if len(clustered) >= DEADLINE_CLUSTER_HIGH else Severity.MEDIUM,
                f"{len(clustered)} deadlines within 24 hours starting {date_str}",
                [c.get("id") for c in clustered],
                affected_dates=[date_str],
            ))

    for conflict in detect_conflicts(items):
        a, b = conflict["item_a"], conflict["item_b"]
        warnings.append(_warning(
            "conflict",
            Severity.HIGH,
            f'"{a.get("title")}" conflicts with "{b.get("title")}"',
            [a.get("id"), b.get("id")],
            affected_dates=[_utc_day(item_bounds(a)[0])],
        ))

    logger.info("analyze_workload: items=%d days=%d warnings=%d", len(items), len(items_by_day), len(warnings))
    return warnings


def detect_scheduling_conflicts(candidate, existing_items):
    """
    Check a draft booking against the other items on the same calendar day.
    Returns an empty list when the candidate has no start/end.
    """
    bounds = item_bounds(candidate)
    if bounds is None:
        return []
    new_start, new_end = bounds
    new_date = iso_day(candidate.get("start_at"))
    candidate_id = candidate.get("id")
    warnings = []

    others = [i for i in existing_items if candidate_id is None or i.get("id") != candidate_id]
    same_day = [i for i in others if i.get("start_at") and iso_day(i.get("start_at")) == new_date]

    for item in same_day:
        item_window = item_bounds(item)
        if item_window is None:
            continue
        item_start, item_end = item_window
        title = item.get("title")

        if new_start < item_end and new_end > item_start:
            warnings.append(_warning(
                "overlap", Severity.HIGH,
                f'Overlaps with "{title}"',
                [item.get("id")],
                suggested_action=f"Move to after {_clock(item_end)}",
            ))

        gap_after = abs(minutes_between(item_end, new_start))
        gap_before = abs(minutes_between(new_end, item_start))
        if 0 < gap_after <= BACK_TO_BACK_MINUTES or 0 < gap_before <= BACK_TO_BACK_MINUTES:
            warnings.append(_warning(
                "back_to_back", Severity.LOW,
                f'Back-to-back with "{title}" (no buffer time)',
                [item.get("id")],
                suggested_action="Consider adding 15 minutes buffer",
            ))

        buffer_before = timedelta(minutes=int(item.get("buffer_before") or 0))
        buffer_after = timedelta(minutes=int(item.get("buffer_after") or 0))
        ends_in_buffer = item_start - buffer_before < new_end <= item_start
        starts_in_buffer = item_end <= new_start < item_end + buffer_after
        if ends_in_buffer or starts_in_buffer:
            warnings.append(_warning(
                "buffer_conflict", Severity.MEDIUM,
                f'Conflicts with buffer time for "{title}"',
                [item.get("id")],
                suggested_action="Move to respect meeting buffer times",
            ))

    booked_minutes = 0.0
    for item in same_day:
        item_window = item_bounds(item)
        if item_window:
            booked_minutes += minutes_between(*item_window)
    total_minutes = booked_minutes + minutes_between(new_start, new_end)
    if total_minutes > OVERLOADED_DAY_MINUTES:
        warnings.append(_warning(
            "overloaded_day", Severity.MEDIUM,
            f"Day would have {math.floor(total_minutes / 60 + 0.5)} hours of meetings",
            [i.get("id") for i in same_day],
            suggested_action="Consider scheduling on a different day",
        ))

    due_tasks = [
        i for i in others
        if i.get("due_at")
        and i.get("type") == ItemType.TASK
        and iso_day(i.get("due_at")) == new_date
        and i.get("status") != ItemStatus.COMPLETED
    ]
    if len(due_tasks) >= DEADLINE_RISK_TASKS:
        warnings.append(_warning(
            "deadline_risk", Severity.MEDIUM,
            f"{len(due_tasks)} tasks due on this day",
            [t.get("id") for t in due_tasks],
            suggested_action="Ensure time for task completion",
        ))

    logger.debug("detect_scheduling_conflicts: date=%s same_day=%d warnings=%d", new_date, len(same_day), len(warnings))
    return warnings
