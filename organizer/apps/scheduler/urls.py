'''
Name: apps/scheduler/urls.py
Description: URL configurations for the scheduling API.
Created: October 12, 2026
Last Modified: October 18, 2026
'''

from django.urls import path
from .views import (
    available_slots,
    check_conflicts,
    conflicts,
    expanded_items,
    recurring_items,
    study_plan,
    task_suggestions,
    workload,
)

app_name = "scheduler"

urlpatterns = [
    path('schedule/slots/', available_slots, name='available_slots'),
    path('schedule/study-plan/', study_plan, name='study_plan'),
    path('schedule/suggestions/', task_suggestions, name='task_suggestions'),
    path('schedule/workload/', workload, name='workload'),
    path('schedule/conflicts/', conflicts, name='conflicts'),
    path('schedule/check/', check_conflicts, name='check_conflicts'),
    path('items/recurring/', recurring_items, name='recurring_items'),
    path('items/expanded/', expanded_items, name='expanded_items'),
]
