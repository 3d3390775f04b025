'''
Name: apps/scheduler/utils/constants.py
Description: Constants used in the scheduler app.
                Item types, statuses and priorities
                Recurrence rules
                Engine defaults (overridable via settings.SCHEDULER_DEFAULTS)
                Debug logger
Created: October 5, 2026
Last Modified: October 18, 2026
'''

from django.conf import settings
from django.db import models


class ItemType(models.TextChoices):
    TASK = "task", "Task"
    MEETING = "meeting", "Meeting"
    SCHOOL = "school", "School"


class ItemStatus(models.TextChoices):
    NOT_STARTED = "not_started", "Not started"
    IN_PROGRESS = "in_progress", "In progress"
    COMPLETED = "completed", "Completed"
    BLOCKED = "blocked", "Blocked"


class Priority(models.TextChoices):
    URGENT = "urgent", "Urgent"
    HIGH = "high", "High"
    MEDIUM = "medium", "Medium"
    LOW = "low", "Low"


class RecurrenceRule(models.TextChoices):
    DAILY = "daily", "Daily"
    WEEKLY = "weekly", "Weekly"
    BIWEEKLY = "biweekly", "Every 2 weeks"
    MONTHLY = "monthly", "Monthly"
    YEARLY = "yearly", "Yearly"


class Severity(models.TextChoices):
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"


LOGGER_NAME = "apps.scheduler"

PRIORITY_ORDER = {
    "urgent": 0,
    "high": 1,
    "medium": 2,
    "low": 3,
}

# Python weekday() numbering, Monday=0
WEEKDAYS = (0, 1, 2, 3, 4)

# Hard cap on recurrence stepping and retained instances
MAX_RECURRENCE_STEPS = 365

# Candidate start times in the task-block suggester move in this step
SUGGESTION_STEP_MINUTES = 30

# Advisor thresholds
BACK_TO_BACK_MINUTES = 5
OVERLOADED_DAY_MINUTES = 360
DEADLINE_RISK_TASKS = 3

# Workload thresholds
DEADLINE_CLUSTER_SIZE = 3
DEADLINE_CLUSTER_HIGH = 5
OVERLOAD_HIGH_FACTOR = 1.5

# Study plan thresholds
REVIEW_WINDOW_DAYS = 3
SLOT_CONSUMED_MARGIN_MINUTES = 30

DEFAULTS = {
    "work_start_hour": 9,
    "work_end_hour": 18,
    "min_duration_minutes": 30,
    "exclude_weekends": True,
    "slot_search_days": 7,
    "suggestion_days": 5,
    "task_minutes": 30,
    "exam_days": 14,
    "sessions_per_day": 2,
    "session_duration": 60,
    "study_start_hour": 9,
    "study_end_hour": 21,
    "days_ahead": 7,
    "max_items_per_day": 5,
    "materialize_days": 30,
}


def scheduler_default(name):
    '''
    Look up an engine default, letting settings.SCHEDULER_DEFAULTS override
    the values above per deployment.
    '''
    overrides = getattr(settings, "SCHEDULER_DEFAULTS", None) or {}
    if name in overrides:
        return overrides[name]
    return DEFAULTS[name]
