from datetime import datetime

import pytz
from django.test import SimpleTestCase, override_settings

from apps.scheduler.utils.scheduler import (
    detect_conflicts,
    find_available_slots,
    find_best_slot_for_duration,
    generate_study_plan,
    suggest_task_blocks,
)

UTC = pytz.UTC


def _item(item_id, start=None, end=None, **fields):
    item = {"id": item_id, "title": item_id, "start_at": start, "end_at": end}
    item.update(fields)
    return item


@override_settings(TIME_ZONE="UTC")
class ConflictTests(SimpleTestCase):

    def test_overlapping_pair_is_reported_and_touching_is_not(self):
        a = _item("a", "2026-10-19T10:00:00Z", "2026-10-19T11:00:00Z")
        b = _item("b", "2026-10-19T10:30:00Z", "2026-10-19T11:30:00Z")
        c = _item("c", "2026-10-19T11:30:00Z", "2026-10-19T12:00:00Z")

        conflicts = detect_conflicts([c, b, a])

        self.assertEqual(len(conflicts), 1)
        self.assertEqual(conflicts[0]["item_a"]["id"], "a")
        self.assertEqual(conflicts[0]["item_b"]["id"], "b")

    def test_pairs_come_back_in_start_order(self):
        items = [
            _item("long", "2026-10-19T09:00:00Z", "2026-10-19T12:00:00Z"),
            _item("mid", "2026-10-19T10:00:00Z", "2026-10-19T11:00:00Z"),
            _item("late", "2026-10-19T10:30:00Z", "2026-10-19T11:30:00Z"),
        ]
        pairs = [(c["item_a"]["id"], c["item_b"]["id"]) for c in detect_conflicts(items)]
        self.assertEqual(pairs, [("long", "mid"), ("long", "late"), ("mid", "late")])

    def test_items_without_bounds_are_ignored(self):
        items = [
            _item("a", "2026-10-19T10:00:00Z", "2026-10-19T11:00:00Z"),
            _item("task", "2026-10-19T10:00:00Z", None),
            _item("bad", "not a date", "2026-10-19T11:00:00Z"),
        ]
        self.assertEqual(detect_conflicts(items), [])


@override_settings(TIME_ZONE="UTC")
class SlotTests(SimpleTestCase):

    def setUp(self):
        # Monday
        self.start = datetime(2026, 10, 19, 0, 0, tzinfo=UTC)
        self.end = datetime(2026, 10, 19, 23, 59, tzinfo=UTC)

    def test_empty_day_is_one_working_slot(self):
        slots = find_available_slots([], start_date=self.start, end_date=self.end)

        self.assertEqual(len(slots), 1)
        self.assertEqual(slots[0]["start"], datetime(2026, 10, 19, 9, 0, tzinfo=UTC))
        self.assertEqual(slots[0]["end"], datetime(2026, 10, 19, 18, 0, tzinfo=UTC))
        self.assertEqual(slots[0]["duration_minutes"], 540)

    def test_buffer_after_extends_busy_time(self):
        events = [_item("m", "2026-10-19T10:00:00Z", "2026-10-19T11:00:00Z", buffer_after=15)]
        slots = find_available_slots(events, start_date=self.start, end_date=self.end)

        self.assertEqual([s["duration_minutes"] for s in slots], [60, 405])
        self.assertEqual(slots[1]["start"], datetime(2026, 10, 19, 11, 15, tzinfo=UTC))

    def test_short_gaps_are_dropped(self):
        events = [_item("m", "2026-10-19T09:20:00Z", "2026-10-19T18:00:00Z")]
        self.assertEqual(find_available_slots(events, start_date=self.start, end_date=self.end), [])

    def test_weekends_are_skipped_by_default(self):
        saturday = datetime(2026, 10, 24, 0, 0, tzinfo=UTC)
        sunday_night = datetime(2026, 10, 25, 23, 0, tzinfo=UTC)

        self.assertEqual(find_available_slots([], start_date=saturday, end_date=sunday_night), [])
        self.assertEqual(len(find_available_slots([], start_date=saturday, end_date=sunday_night, exclude_weekends=False)), 2)

    @override_settings(SCHEDULER_DEFAULTS={"work_start_hour": 8})
    def test_defaults_can_be_overridden_in_settings(self):
        slots = find_available_slots([], start_date=self.start, end_date=self.end)
        self.assertEqual(slots[0]["start"], datetime(2026, 10, 19, 8, 0, tzinfo=UTC))

    def test_best_slot(self):
        events = [_item("m", "2026-10-19T09:00:00Z", "2026-10-19T17:30:00Z")]

        self.assertIsNone(find_best_slot_for_duration(events, 60, start_date=self.start, end_date=self.end))
        slot = find_best_slot_for_duration(events, 30, start_date=self.start, end_date=self.end)
        self.assertEqual(slot["start"], datetime(2026, 10, 19, 17, 30, tzinfo=UTC))


@override_settings(TIME_ZONE="UTC")
class TaskBlockTests(SimpleTestCase):

    def setUp(self):
        self.now = datetime(2026, 10, 19, 8, 0, tzinfo=UTC)
        self.events = [_item("standup", "2026-10-19T09:00:00Z", "2026-10-19T10:00:00Z")]
        self.tasks = [
            {"id": "t1", "title": "Write report", "estimated_minutes": 60},
            {"id": "t2", "title": "Email", "estimated_minutes": 30},
        ]

    def test_tasks_are_placed_independently(self):
        suggestions = suggest_task_blocks(self.tasks, self.events, days=1, now=self.now)

        self.assertEqual([s["item_id"] for s in suggestions], ["t1", "t2"])
        self.assertEqual(suggestions[0]["suggested_start"], "2026-10-19T10:00:00+00:00")
        self.assertEqual(suggestions[0]["suggested_end"], "2026-10-19T11:00:00+00:00")
        self.assertEqual(suggestions[1]["suggested_start"], "2026-10-19T10:00:00+00:00")

    def test_reserve_slots_prevents_double_booking(self):
        suggestions = suggest_task_blocks(self.tasks, self.events, days=1, reserve_slots=True, now=self.now)

        self.assertEqual(suggestions[1]["suggested_start"], "2026-10-19T11:00:00+00:00")
        self.assertEqual(suggestions[1]["suggested_end"], "2026-10-19T11:30:00+00:00")

    def test_missing_estimate_defaults_to_half_hour(self):
        suggestions = suggest_task_blocks([{"id": "t3", "title": "Call"}], [], days=1, now=self.now)
        self.assertEqual(suggestions[0]["suggested_start"], "2026-10-19T09:00:00+00:00")
        self.assertEqual(suggestions[0]["suggested_end"], "2026-10-19T09:30:00+00:00")

    def test_task_that_never_fits_is_left_out(self):
        tasks = [{"id": "huge", "title": "Huge", "estimated_minutes": 600}]
        with self.assertLogs("apps.scheduler", level="WARNING"):
            self.assertEqual(suggest_task_blocks(tasks, [], days=2, now=self.now), [])


@override_settings(TIME_ZONE="UTC")
class StudyPlanTests(SimpleTestCase):

    def setUp(self):
        self.now = datetime(2026, 10, 19, 0, 0, tzinfo=UTC)
        self.exam = datetime(2026, 10, 21, 0, 0, tzinfo=UTC)

    def _school(self, item_id, due, **fields):
        item = {"id": item_id, "title": item_id, "type": "school", "status": "not_started",
                "due_at": due, "course_id": "EECS581"}
        item.update(fields)
        return item

    def test_sessions_start_at_the_slot_start_until_it_is_used_up(self):
        items = [
            self._school("Reading", "2026-10-30T12:00:00Z"),
            self._school("Essay", "2026-10-30T12:00:00Z"),
        ]
        plan = generate_study_plan(items, [], exam_date=self.exam, now=self.now)

        self.assertEqual(
            [s["suggested_start"] for s in plan],
            ["2026-10-19T09:00:00+00:00", "2026-10-19T09:00:00+00:00"],
        )
        self.assertEqual(plan[0]["suggested_end"], "2026-10-19T10:00:00+00:00")

    def test_review_uses_the_current_slot_then_moves_on(self):
        items = [
            self._school("Reading", "2026-10-30T12:00:00Z"),
            self._school("Lab", "2026-10-20T12:00:00Z"),
            self._school("Done", "2026-10-20T12:00:00Z", status="completed"),
            {"id": "t", "title": "Task", "type": "task", "status": "not_started"},
            self._school("Essay", "2026-10-30T12:00:00Z"),
        ]
        plan = generate_study_plan(items, [], exam_date=self.exam, now=self.now)

        self.assertEqual([s["title"] for s in plan], ["Study: Reading", "Study: Lab", "Review: Lab", "Study: Essay"])
        self.assertEqual(
            [s["suggested_start"] for s in plan],
            [
                "2026-10-19T09:00:00+00:00",
                "2026-10-19T09:00:00+00:00",
                "2026-10-19T09:00:00+00:00",
                "2026-10-20T09:00:00+00:00",
            ],
        )
        self.assertEqual(plan[2]["suggested_end"], "2026-10-19T09:30:00+00:00")

    def test_short_slot_is_used_up_by_one_session(self):
        # 09:00-10:20 is free on Monday, then nothing until Tuesday
        events = [{"id": "m", "title": "Lecture", "start_at": "2026-10-19T10:20:00Z", "end_at": "2026-10-19T21:00:00Z"}]
        items = [self._school("Reading", "2026-10-30T12:00:00Z"), self._school("Essay", "2026-10-30T12:00:00Z")]
        plan = generate_study_plan(items, events, exam_date=self.exam, now=self.now)

        self.assertEqual(
            [s["suggested_start"] for s in plan],
            ["2026-10-19T09:00:00+00:00", "2026-10-20T09:00:00+00:00"],
        )

    def test_packed_sessions_follow_each_other(self):
        items = [
            self._school("Reading", "2026-10-30T12:00:00Z"),
            self._school("Lab", "2026-10-20T12:00:00Z"),
            self._school("Done", "2026-10-20T12:00:00Z", status="completed"),
            {"id": "t", "title": "Task", "type": "task", "status": "not_started"},
        ]
        plan = generate_study_plan(items, [], exam_date=self.exam, now=self.now, pack_sessions=True)

        self.assertEqual([s["type"] for s in plan], ["study", "study", "review"])
        self.assertEqual([s["title"] for s in plan], ["Study: Reading", "Study: Lab", "Review: Lab"])
        self.assertEqual(
            [s["suggested_start"] for s in plan],
            ["2026-10-19T09:00:00+00:00", "2026-10-19T10:00:00+00:00", "2026-10-19T11:00:00+00:00"],
        )
        self.assertEqual(plan[2]["suggested_end"], "2026-10-19T11:30:00+00:00")
        self.assertEqual(plan[0]["course_id"], "EECS581")

    def test_session_cap(self):
        items = [self._school(f"Chapter {n}", "2026-11-30T00:00:00Z") for n in range(5)]
        plan = generate_study_plan(items, [], exam_date=self.exam, sessions_per_day=1, now=self.now)
        self.assertEqual(len(plan), 2)

    def test_total_hours_budget(self):
        items = [self._school(f"Chapter {n}", "2026-11-30T00:00:00Z") for n in range(5)]
        plan = generate_study_plan(items, [], exam_date=self.exam, total_hours=1, now=self.now)
        self.assertEqual(len(plan), 1)

    def test_exam_now_gives_empty_plan(self):
        items = [self._school("Reading", "2026-10-30T12:00:00Z")]
        self.assertEqual(generate_study_plan(items, [], exam_date=self.now, now=self.now), [])
