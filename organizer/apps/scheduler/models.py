"""
Models for schedulable items (tasks, meetings, school work)
Along with the queryset helpers the scheduling engine reads through

Created: October 5, 2026
Last Modified: October 18, 2026
"""
from django.conf import settings
from django.db import models
from django.core.exceptions import ValidationError

from .utils.constants import ItemStatus, ItemType, Priority
from .utils.scheduler import to_iso

# -----------------------------------
# QuerySets & Managers
# -----------------------------------
class ItemQuerySet(models.QuerySet):
    def for_user(self, user):
        """All items owned by this user."""
        return self.filter(user=user)

    def of_type(self, item_type):
        return self.filter(type=item_type)

    def open(self):
        """Items that still need work."""
        return self.exclude(status=ItemStatus.COMPLETED)

    def time_bound(self):
        """Items with both a start and an end (busy time on the calendar)."""
        return self.filter(start_at__isnull=False, end_at__isnull=False)

    def templates(self):
        """Recurring templates, newest first."""
        return self.exclude(recurrence_rule="").order_by("-created_at")

    def instances_of(self, template):
        """Materialized occurrences of a template."""
        return self.filter(original_item=template).order_by("due_at")

    def between(self, start, end):
        """
        Items that overlap a time range (start, end)
        Items that are 'touching' do not count as overlap
        """
        return self.filter(start_at__lt=end, end_at__gt=start)


class ItemManager(models.Manager.from_queryset(ItemQuerySet)):
    def get_queryset(self):
        return super().get_queryset().select_related("user")

    def create_item(self, user, **fields):
        '''
        Create an item owned by user. Validates bounds and the template
        invariant before writing.
        '''
        item = self.model(user=user, **fields)
        item.save()
        return item

# -----------------------------------
# Models
# -----------------------------------
class Item(models.Model):
    '''
    A task, meeting or school item.
    Items with a recurrence_rule are templates; materialized occurrences point
    back to their template through original_item and carry no rule of their own.
    '''
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='items')
    type = models.CharField(max_length=16, choices=ItemType.choices)
    title = models.CharField(max_length=200)
    details = models.TextField(blank=True, default="")
    status = models.CharField(max_length=16, choices=ItemStatus.choices, default=ItemStatus.NOT_STARTED)
    priority = models.CharField(max_length=16, choices=Priority.choices, default=Priority.MEDIUM)
    tags = models.JSONField(default=list, blank=True)

    due_at = models.DateTimeField(blank=True, null=True)
    start_at = models.DateTimeField(blank=True, null=True)
    end_at = models.DateTimeField(blank=True, null=True)
    estimated_minutes = models.PositiveIntegerField(blank=True, null=True)
    buffer_before = models.PositiveIntegerField(default=0)
    buffer_after = models.PositiveIntegerField(default=0)

    # Free-form rule text, e.g. "weekly", "weekdays", "every 3 weeks"
    recurrence_rule = models.CharField(max_length=64, blank=True, default="")
    recurrence_end = models.DateTimeField(blank=True, null=True)
    original_item = models.ForeignKey('self', on_delete=models.SET_NULL, null=True, blank=True, related_name='instances')

    course_id = models.CharField(max_length=64, blank=True, default="")
    project_id = models.CharField(max_length=64, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ItemManager()

    class Meta:
        db_table = "item"
        ordering = ['created_at']
        indexes = [
            models.Index(fields=["user", "start_at"], name="item_user_start_idx"),
            models.Index(fields=["user", "due_at"], name="item_user_due_idx"),
        ]
        constraints = [
            models.UniqueConstraint(fields=['original_item', 'due_at'], name='unique_instance_per_due_at')
        ]

    def __str__(self):
        return self.title

    @property
    def is_template(self):
        return bool(self.recurrence_rule)

    def safe(self):
        if self.end_at and self.start_at and self.end_at <= self.start_at:
            raise ValidationError("End time must be after start time.")
        if self.original_item_id and self.recurrence_rule:
            raise ValidationError("Recurring instances cannot carry their own recurrence rule.")

    def clean(self):
        super().clean()
        self.safe()

    def save(self, *args, **kwargs):
        self.safe()
        super().save(*args, **kwargs)

    # -----------------------------------
    # Helper methods
    # -----------------------------------
    def overlaps(self, start, end):
        '''
        Check if the item overlaps with a given time range (start, end)
        '''
        if not self.start_at or not self.end_at:
            return False
        return self.start_at < end and self.end_at > start

    def duration_minutes(self):
        if not self.start_at or not self.end_at:
            return None
        return (self.end_at - self.start_at).total_seconds() / 60.0

    def to_dict(self):
        '''
        Convert to the plain dict format used by the scheduling utils.
        '''
        return {
            "id": str(self.pk),
            "user_id": str(self.user_id),
            "type": self.type,
            "title": self.title,
            "details": self.details,
            "status": self.status,
            "priority": self.priority,
            "tags": list(self.tags or []),
            "due_at": to_iso(self.due_at),
            "start_at": to_iso(self.start_at),
            "end_at": to_iso(self.end_at),
            "estimated_minutes": self.estimated_minutes,
            "buffer_before": self.buffer_before,
            "buffer_after": self.buffer_after,
            "recurrence_rule": self.recurrence_rule or None,
            "recurrence_end": to_iso(self.recurrence_end),
            "original_item_id": str(self.original_item_id) if self.original_item_id else None,
            "course_id": self.course_id or None,
            "project_id": self.project_id or None,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }
