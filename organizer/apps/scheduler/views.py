'''
Name: apps/scheduler/views.py
Description: JSON endpoints exposing the scheduling engine: free slots,
                study plans, task suggestions, workload warnings,
                booking checks and recurring items.
Created: October 12, 2026
Last Modified: October 18, 2026
'''
import json
import logging
import math
from datetime import timedelta

from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from .forms import (
    CandidateItemForm,
    ExpandWindowForm,
    RecurringGenerateForm,
    SlotSearchForm,
    StudyPlanForm,
    SuggestionForm,
    WorkloadForm,
)
from .models import Item
from .utils.constants import LOGGER_NAME, ItemType, scheduler_default
from .utils.recurrence import (
    expand_recurring_items,
    generate_recurring_instances,
    get_next_occurrence,
    get_recurrence_description,
    parse_recurrence_rule,
)
from .utils.scheduler import (
    detect_conflicts,
    find_available_slots,
    find_best_slot_for_duration,
    generate_study_plan,
    schedule_sort_key,
    suggest_task_blocks,
    to_iso,
)
from .utils.workload import analyze_workload, detect_scheduling_conflicts

logger = logging.getLogger(LOGGER_NAME)

# ============================================================
#  VIEWS
# ============================================================

@login_required
@require_GET
def available_slots(request):
    '''
    Free slots around the user's time-bound items, plus the best slot for
    a requested duration when one is asked for.
    '''
    form = SlotSearchForm(request.GET)
    if not form.is_valid():
        return _form_error(form)
    data = form.cleaned_data

    start = data.get("start_date") or timezone.now()
    end = data.get("end_date") or start + timedelta(days=scheduler_default("slot_search_days"))
    min_duration = data.get("min_duration") or scheduler_default("min_duration_minutes")
    events = _user_dicts(Item.objects.for_user(request.user).time_bound())

    slots = find_available_slots(events, start_date=start, end_date=end, min_duration_minutes=min_duration)
    best_slot = None
    if data.get("duration"):
        best_slot = find_best_slot_for_duration(events, data["duration"], start_date=start, end_date=end)

    logger.info("available_slots: user=%s slots=%d best=%s", request.user.pk, len(slots), bool(best_slot))
    return JsonResponse({"slots": slots, "best_slot": best_slot})


@login_required
@require_GET
def study_plan(request):
    form = StudyPlanForm(request.GET)
    if not form.is_valid():
        return _form_error(form)
    hours_per_day = form.cleaned_data.get("hours_per_day") or 2
    days_ahead = form.cleaned_data.get("days_ahead") or 7

    items = Item.objects.for_user(request.user)
    school_items = _user_dicts(items.of_type(ItemType.SCHOOL).open())
    events = _user_dicts(items.time_bound())

    plan = generate_study_plan(
        school_items,
        events,
        total_hours=hours_per_day * days_ahead,
        sessions_per_day=math.ceil(hours_per_day),
        session_duration=60,
    )
    return JsonResponse({"study_plan": plan})


@login_required
@require_GET
def task_suggestions(request):
    '''
    Suggested blocks for open tasks that are not on the calendar yet,
    highest priority (then longest) first.
    '''
    form = SuggestionForm(request.GET)
    if not form.is_valid():
        return _form_error(form)

    items = Item.objects.for_user(request.user)
    tasks = _user_dicts(items.of_type(ItemType.TASK).open().filter(start_at__isnull=True))
    tasks.sort(key=schedule_sort_key)
    events = _user_dicts(items.time_bound())

    suggestions = suggest_task_blocks(
        tasks,
        events,
        days=form.cleaned_data.get("days"),
        reserve_slots=form.cleaned_data.get("reserve_slots", False),
    )
    return JsonResponse({"suggestions": suggestions})


@login_required
@require_GET
def workload(request):
    form = WorkloadForm(request.GET)
    if not form.is_valid():
        return _form_error(form)
    items = _user_dicts(Item.objects.for_user(request.user).open())
    warnings = analyze_workload(
        items,
        days_ahead=form.cleaned_data.get("days_ahead"),
        max_items_per_day=form.cleaned_data.get("max_items_per_day"),
    )
    return JsonResponse({"warnings": warnings})


@login_required
@require_GET
def conflicts(request):
    items = _user_dicts(Item.objects.for_user(request.user).time_bound())
    return JsonResponse({"conflicts": detect_conflicts(items)})


@login_required
@require_POST
def check_conflicts(request):
    '''
    Pre-save check of a draft booking against the user's items.
    Body: {"start_at", "end_at", "buffer_before", "buffer_after", "type", "title", "id"}
    '''
    payload = _json_body(request)
    if payload is None:
        return JsonResponse({"error": "Invalid JSON body"}, status=400)
    form = CandidateItemForm(payload)
    if not form.is_valid():
        return _form_error(form)
    data = form.cleaned_data
    candidate = {
        "id": data.get("id") or None,
        "title": data.get("title"),
        "type": data.get("type") or ItemType.MEETING,
        "start_at": to_iso(data.get("start_at")),
        "end_at": to_iso(data.get("end_at")),
        "buffer_before": data.get("buffer_before") or 0,
        "buffer_after": data.get("buffer_after") or 0,
    }
    existing = _user_dicts(Item.objects.for_user(request.user))
    warnings = detect_scheduling_conflicts(candidate, existing)
    logger.info("check_conflicts: user=%s warnings=%d", request.user.pk, len(warnings))
    return JsonResponse({"warnings": warnings})


@login_required
@require_http_methods(["GET", "POST"])
def recurring_items(request):
    '''
    GET: the user's recurring templates with a readable rule and their next occurrence.
    POST: materialize instances of one template, {"item_id", "until"}.
    '''
    if request.method == "GET":
        templates = []
        for item in Item.objects.for_user(request.user).templates():
            entry = item.to_dict()
            config = parse_recurrence_rule(item.recurrence_rule)
            entry["description"] = get_recurrence_description(config.rule, config.interval)
            entry["next_occurrence"] = get_next_occurrence(entry)
            templates.append(entry)
        return JsonResponse({"templates": templates})

    payload = _json_body(request)
    if payload is None:
        return JsonResponse({"error": "Invalid JSON body"}, status=400)
    form = RecurringGenerateForm(payload)
    if not form.is_valid():
        return _form_error(form)

    try:
        instances = generate_recurring_instances(
            form.cleaned_data["item_id"],
            user=request.user,
            until_date=form.cleaned_data.get("until"),
        )
    except Item.DoesNotExist:
        logger.warning("recurring_items: template %s not found for user=%s", form.cleaned_data["item_id"], request.user.pk)
        return JsonResponse({"error": "Item not found"}, status=404)

    return JsonResponse({"instances": [i.to_dict() for i in instances], "count": len(instances)}, status=201)


@login_required
@require_GET
def expanded_items(request):
    form = ExpandWindowForm(request.GET)
    if not form.is_valid():
        return _form_error(form)
    items = _user_dicts(Item.objects.for_user(request.user))
    expanded = expand_recurring_items(items, form.cleaned_data["start"], form.cleaned_data["end"])
    return JsonResponse({"items": expanded})

# ============================================================
#  HELPERS
# ============================================================

def _user_dicts(queryset):
    return [item.to_dict() for item in queryset]

def _json_body(request):
    try:
        payload = json.loads(request.body or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return payload if isinstance(payload, dict) else None

def _form_error(form):
    logger.warning("invalid request: %s", form.errors.as_json())
    return JsonResponse({"error": "Invalid request", "details": form.errors.get_json_data()}, status=400)
