'''
Name: apps/scheduler/utils/recurrence.py
Description: Recurring items. Rule parsing, occurrence stepping,
             virtual expansion over a date window and idempotent
             materialization of concrete instances.
Created: October 10, 2026
Last Modified: October 18, 2026
'''
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional, Tuple

from dateutil.relativedelta import relativedelta
from django.db import transaction
from django.utils import timezone
from django.utils.timezone import get_current_timezone

from .constants import LOGGER_NAME, MAX_RECURRENCE_STEPS, WEEKDAYS, ItemStatus, RecurrenceRule, scheduler_default
from .scheduler import UTC, _to_dt_utc, iso_day, to_datetime, to_iso

logger = logging.getLogger(LOGGER_NAME)


@dataclass(frozen=True)
class RecurrenceConfig:
    rule: str
    interval: int = 1
    days_of_week: Optional[Tuple[int, ...]] = None  # Monday=0
    day_of_month: Optional[int] = None
    end_date: Optional[datetime] = None
    count: Optional[int] = None


DAILY, WEEKLY, BIWEEKLY, MONTHLY, YEARLY = "daily", "weekly", "biweekly", "monthly", "yearly"

_EVERY_RE = re.compile(r"every\s+(\d+)\s+(day|week|month|year)s?")

_UNIT_RULES = {
    "day": DAILY,
    "week": WEEKLY,
    "month": MONTHLY,
    "year": YEARLY,
}

_KEYWORDS = {
    "daily": RecurrenceConfig(DAILY, 1),
    "weekly": RecurrenceConfig(WEEKLY, 1),
    "biweekly": RecurrenceConfig(BIWEEKLY, 2),
    "monthly": RecurrenceConfig(MONTHLY, 1),
    "yearly": RecurrenceConfig(YEARLY, 1),
    "weekdays": RecurrenceConfig(DAILY, 1, days_of_week=WEEKDAYS),
}


def parse_recurrence_rule(rule: str) -> RecurrenceConfig:
    """
    Turn a rule string into a RecurrenceConfig. Never raises: anything that
    isn't a known keyword or "every N day|week|month|year(s)" becomes weekly.
    """
    lowered = (rule or "").strip().lower()
    if lowered in _KEYWORDS:
        return _KEYWORDS[lowered]

    match = _EVERY_RE.search(lowered)
    if match:
        return RecurrenceConfig(_UNIT_RULES[match.group(2)], max(1, int(match.group(1))))

    logger.warning("parse_recurrence_rule: unrecognized rule %r, falling back to weekly", rule)
    return RecurrenceConfig(WEEKLY, 1)


# One strategy per rule: offset of the n-th occurrence from the anchor, and
# an upper bound on days per step (used to skip ahead without overshooting).
_STEP_STRATEGIES = {
    DAILY: (lambda interval, n: relativedelta(days=interval * n), lambda interval: interval),
    WEEKLY: (lambda interval, n: relativedelta(weeks=interval * n), lambda interval: 7 * interval),
    # biweekly is always 14 days, whatever the interval says
    BIWEEKLY: (lambda interval, n: relativedelta(weeks=2 * n), lambda interval: 14),
    MONTHLY: (lambda interval, n: relativedelta(months=interval * n), lambda interval: 31 * interval),
    YEARLY: (lambda interval, n: relativedelta(years=interval * n), lambda interval: 366 * interval),
}


class RecurrenceStepper:
    '''
    Occurrence arithmetic shared by expansion and materialization.
    Occurrences are computed from the anchor (anchor + n steps) rather than
    by repeated addition, so Jan 31 monthly gives Feb 28 then Mar 31.
    '''

    def __init__(self, config: RecurrenceConfig):
        self.config = config
        self.interval = max(1, config.interval or 1)
        self._offset, self._max_days = _STEP_STRATEGIES.get(config.rule, _STEP_STRATEGIES[WEEKLY])

    def occurrence(self, anchor, n: int):
        return anchor + self._offset(self.interval, n)

    def allows(self, day: date) -> bool:
        days = self.config.days_of_week
        return not days or day.weekday() in days

    def first_step_on_or_after(self, anchor: date, target: date) -> int:
        """Smallest n whose occurrence date is not before target."""
        if target <= anchor:
            return 0
        n = max(0, (target - anchor).days // self._max_days(self.interval) - 1)
        while self.occurrence(anchor, n) < target:
            n += 1
        return n


def get_recurrence_description(rule: str, interval: Optional[int] = None) -> str:
    if interval and interval > 1:
        if rule == BIWEEKLY:
            return "Every 2 weeks"
        units = {
            DAILY: "days",
            WEEKLY: "weeks",
            MONTHLY: "months",
            YEARLY: "years",
        }
        if rule in units:
            return f"Every {interval} {units[rule]}"
    if rule in RecurrenceRule.values:
        return RecurrenceRule(rule).label
    return "Recurring"


def get_next_occurrence(item: dict, after=None) -> Optional[datetime]:
    """
    Next occurrence of a recurring item strictly after `after` (default now),
    stepping from the item's start. None for non-recurring items or when
    nothing turns up within the step limit.
    """
    if not item.get("recurrence_rule"):
        return None
    after = _to_dt_utc(after) or timezone.now()
    local_tz = get_current_timezone()
    stepper = RecurrenceStepper(parse_recurrence_rule(item["recurrence_rule"]))
    base = (_to_dt_utc(item.get("start_at")) or timezone.now()).astimezone(local_tz)

    first = stepper.first_step_on_or_after(base.date(), after.astimezone(local_tz).date())
    for n in range(first, first + MAX_RECURRENCE_STEPS):
        candidate = stepper.occurrence(base, n).astimezone(UTC)
        if candidate > after and stepper.allows(candidate.astimezone(local_tz).date()):
            return candidate
    return None


# ============================================================
#  EXPANSION (virtual, display only)
# ============================================================

def _shift_to_day(value: datetime, day: date, local_tz) -> datetime:
    """Same local time of day (to the minute) on another calendar day."""
    local = value.astimezone(local_tz)
    return to_datetime(day, time(local.hour, local.minute), local_tz)


def _sort_key(entry):
    value = entry.get("start_at") or entry.get("due_at") or entry.get("instance_date") or ""
    if isinstance(value, str) and "T" not in value:
        return value
    return to_iso(_to_dt_utc(value)) or str(value)


def _build_instance(item: dict, day: date, local_tz) -> Dict:
    instance = dict(item)
    start = _to_dt_utc(item.get("start_at"))
    end = _to_dt_utc(item.get("end_at"))
    due = _to_dt_utc(item.get("due_at"))
    if start:
        new_start = _shift_to_day(start, day, local_tz)
        instance["start_at"] = to_iso(new_start)
        instance["end_at"] = to_iso(new_start + (end - start)) if end else None
    elif end:
        instance["end_at"] = to_iso(_shift_to_day(end, day, local_tz))
    if due:
        instance["due_at"] = to_iso(_shift_to_day(due, day, local_tz))
    instance.update({
        "id": f"{item['id']}-{day.isoformat()}",
        "is_instance": True,
        "instance_date": day.isoformat(),
        "original_id": item["id"],
    })
    return instance


def expand_recurring_items(items: List[dict], start_date, end_date) -> List[Dict]:
    """
    Items visible in [start_date, end_date], with recurring templates
    expanded into virtual dated instances. An instance is kept when its
    start (else due time) falls inside the window. Nothing is written to storage.
    """
    window_start = _to_dt_utc(start_date)
    window_end = _to_dt_utc(end_date)
    local_tz = get_current_timezone()
    first_day = window_start.astimezone(local_tz).date()
    result = []

    for item in items:
        if not item.get("recurrence_rule"):
            start = _to_dt_utc(item.get("start_at"))
            due = _to_dt_utc(item.get("due_at"))
            when, source = (start, item.get("start_at")) if start else (due, item.get("due_at"))
            if when and window_start <= when <= window_end:
                entry = dict(item)
                entry.update({"is_instance": False, "instance_date": iso_day(source), "original_id": item["id"]})
                result.append(entry)
            continue

        config = parse_recurrence_rule(item["recurrence_rule"])
        stepper = RecurrenceStepper(config)
        limit = window_end
        recurrence_end = _to_dt_utc(item.get("recurrence_end"))
        if recurrence_end and recurrence_end < limit:
            limit = recurrence_end
        last_day = limit.astimezone(local_tz).date()

        base = _to_dt_utc(item.get("start_at")) or _to_dt_utc(item.get("created_at")) or timezone.now()
        base_day = base.astimezone(local_tz).date()
        max_instances = min(config.count or MAX_RECURRENCE_STEPS, MAX_RECURRENCE_STEPS)

        n = stepper.first_step_on_or_after(base_day, first_day)
        produced = 0
        for _ in range(2 * MAX_RECURRENCE_STEPS):
            if produced >= max_instances:
                break
            day = stepper.occurrence(base_day, n)
            n += 1
            if day > last_day:
                break
            if not stepper.allows(day):
                continue
            instance = _build_instance(item, day, local_tz)
            when = (
                _to_dt_utc(instance.get("start_at"))
                or _to_dt_utc(instance.get("due_at"))
                or to_datetime(day, time.min, local_tz)
            )
            if not window_start <= when <= limit:
                continue
            result.append(instance)
            produced += 1
        logger.debug("expand_recurring_items: template=%s rule=%s instances=%d", item.get("id"), config.rule, produced)

    result.sort(key=_sort_key)
    logger.info("expand_recurring_items: items=%d expanded=%d window=[%s, %s]",
                len(items), len(result), window_start, window_end)
    return result


# ============================================================
#  MATERIALIZATION (persisted)
# ============================================================

def generate_recurring_instances(template_id, *, user, until_date=None, now=None):
    """
    Create concrete instances of a recurring template up to its
    recurrence_end (else until_date, else 30 days out). Instances that
    already exist for the same due time are skipped, so calling this again
    creates nothing new. Returns only the newly created Items.

    Raises Item.DoesNotExist if the template isn't one of the user's items.
    """
    from ..models import Item

    template = Item.objects.for_user(user).get(pk=template_id)
    if not template.recurrence_rule:
        logger.info("generate_recurring_instances: item=%s has no recurrence rule", template_id)
        return []

    now = _to_dt_utc(now) or timezone.now()
    window_end = (
        template.recurrence_end
        or _to_dt_utc(until_date)
        or now + timedelta(days=scheduler_default("materialize_days"))
    )
    local_tz = get_current_timezone()
    stepper = RecurrenceStepper(parse_recurrence_rule(template.recurrence_rule))

    # Only a due date pins the series; other anchors start from today
    anchor = (template.due_at or template.start_at or template.created_at).astimezone(local_tz)
    future_only = template.due_at is None
    first = 1
    if future_only:
        first = max(1, stepper.first_step_on_or_after(anchor.date(), now.astimezone(local_tz).date()))

    created = []
    for n in range(first, first + MAX_RECURRENCE_STEPS):
        candidate = stepper.occurrence(anchor, n).astimezone(UTC)
        if candidate > window_end:
            break
        if future_only and candidate <= now:
            continue
        if not stepper.allows(candidate.astimezone(local_tz).date()):
            continue
        with transaction.atomic():
            instance, was_created = Item.objects.get_or_create(
                user=user,
                original_item=template,
                due_at=candidate,
                defaults={
                    "type": template.type,
                    "title": template.title,
                    "details": template.details,
                    "status": ItemStatus.NOT_STARTED,
                    "priority": template.priority,
                    "tags": list(template.tags or []),
                    "estimated_minutes": template.estimated_minutes,
                    "course_id": template.course_id,
                    "project_id": template.project_id,
                },
            )
        if was_created:
            created.append(instance)
        else:
            logger.debug("generate_recurring_instances: instance exists template=%s due=%s", template.pk, candidate)

    logger.info("generate_recurring_instances: template=%s until=%s created=%d", template.pk, window_end, len(created))
    return created
