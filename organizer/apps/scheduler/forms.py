'''
Name: apps/scheduler/forms.py
Description: Forms validating query strings and JSON bodies for the
             scheduling endpoints.
Created: October 12, 2026
Last Modified: October 18, 2026
'''

from django import forms
from .utils.constants import ItemType


class SlotSearchForm(forms.Form):
    '''Window and duration for the free slot search. Everything optional.'''

    start_date = forms.DateTimeField(required=False, label="Start")
    end_date = forms.DateTimeField(required=False, label="End")

    # Shortest gap worth returning
    min_duration = forms.IntegerField(required=False, min_value=1, label="Minimum minutes")

    # When given, also pick the first slot that fits this many minutes
    duration = forms.IntegerField(required=False, min_value=1, label="Duration (minutes)")

    def clean(self):
        cleaned = super().clean()
        start, end = cleaned.get("start_date"), cleaned.get("end_date")
        if start and end and end < start:
            raise forms.ValidationError("End must not be before start.")
        return cleaned


class StudyPlanForm(forms.Form):
    hours_per_day = forms.FloatField(required=False, min_value=0.5, max_value=16)
    days_ahead = forms.IntegerField(required=False, min_value=1, max_value=90)


class SuggestionForm(forms.Form):
    days = forms.IntegerField(required=False, min_value=1, max_value=30)
    reserve_slots = forms.BooleanField(required=False)


class WorkloadForm(forms.Form):
    days_ahead = forms.IntegerField(required=False, min_value=1, max_value=90)
    max_items_per_day = forms.IntegerField(required=False, min_value=1)


class CandidateItemForm(forms.Form):
    '''
    Draft booking checked before it is saved.
    Bounds are optional here: a draft without them simply has nothing to check.
    '''

    id = forms.CharField(required=False)
    title = forms.CharField(required=False, max_length=200)
    type = forms.ChoiceField(required=False, choices=ItemType.choices)
    start_at = forms.DateTimeField(required=False)
    end_at = forms.DateTimeField(required=False)
    buffer_before = forms.IntegerField(required=False, min_value=0)
    buffer_after = forms.IntegerField(required=False, min_value=0)


class RecurringGenerateForm(forms.Form):
    item_id = forms.IntegerField(
        min_value=1,
        error_messages={"required": "item_id is required"},
    )
    until = forms.DateTimeField(required=False)


class ExpandWindowForm(forms.Form):
    start = forms.DateTimeField()
    end = forms.DateTimeField()

    def clean(self):
        cleaned = super().clean()
        start, end = cleaned.get("start"), cleaned.get("end")
        if start and end and end < start:
            raise forms.ValidationError("End must not be before start.")
        return cleaned
