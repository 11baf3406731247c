"""Tests for calendar projection, user events and catch-up review."""

from datetime import timedelta

from trainer.calendar.catch_up import check_and_run_catch_up_review
from trainer.calendar.events import CalendarEventCreate, create_event, list_events, reschedule_event, skip_event
from trainer.calendar.parser import PlannedSession
from trainer.calendar.scheduler import build_weekly_slots, projection_anchor, regenerate_weekly_calendar
from trainer.core.time import as_utc
from trainer.programs.service import create_program


def test_slots_spread_over_week():
    sessions = [PlannedSession(day_number=i, name=f"S{i}") for i in (1, 2, 3)]
    slots = build_weekly_slots(sessions, 3)
    assert [slot.day_offset for slot in slots] == [0, 2, 4]
    assert [slot.planned_session.name for slot in slots] == ["S1", "S2", "S3"]


def test_slots_cycle_sessions_when_more_days_than_sessions():
    slots = build_weekly_slots([PlannedSession(day_number=1, name="Full Body")], 5)
    assert [slot.day_offset for slot in slots] == [0, 1, 2, 4, 5]
    assert {slot.planned_session.name for slot in slots} == {"Full Body"}


def test_slots_without_sessions_use_generic_workout():
    slots = build_weekly_slots([], 2)
    assert [slot.planned_session.name for slot in slots] == ["Workout", "Workout"]
    assert slots[0].planned_session.duration_min == 45


def test_regenerate_creates_events_with_planned_sessions(db_session, test_user_id, fixed_now, sample_program_markdown):
    program = create_program(test_user_id, sample_program_markdown, status="active")

    result = regenerate_weekly_calendar(test_user_id, sample_program_markdown, now=fixed_now)

    assert result["created"] == 3
    assert result["deleted"] == 0
    events = list_events(test_user_id)
    anchor = projection_anchor(fixed_now)
    assert [event["start_at"] for event in events] == [anchor, anchor + timedelta(days=2), anchor + timedelta(days=4)]
    assert events[1]["title"] == "Lower Body"
    assert events[1]["planned_session"]["intent_json"] == {
        "focus": "Lower Body",
        "day_number": 2,
        "duration_min": 60,
        "intensity": "high",
    }
    assert all(event["linked_program_version"] == program.version for event in events)


def test_regenerate_is_idempotent(db_session, test_user_id, fixed_now, sample_program_markdown):
    first = regenerate_weekly_calendar(test_user_id, sample_program_markdown, now=fixed_now)
    before = [(e["start_at"], e["title"], e["planned_session"]["intent_json"]) for e in list_events(test_user_id)]

    second = regenerate_weekly_calendar(test_user_id, sample_program_markdown, now=fixed_now)
    after = [(e["start_at"], e["title"], e["planned_session"]["intent_json"]) for e in list_events(test_user_id)]

    assert first["created"] == second["created"] == 3
    assert second["deleted"] == 3
    assert before == after


def test_regenerate_keeps_user_events(db_session, test_user_id, fixed_now, sample_program_markdown):
    regenerate_weekly_calendar(test_user_id, sample_program_markdown, now=fixed_now)
    projected = list_events(test_user_id)[0]
    moved = reschedule_event(test_user_id, projected["id"], projected["start_at"] + timedelta(hours=9))
    custom = create_event(
        test_user_id,
        CalendarEventCreate(start_at=fixed_now + timedelta(days=3), title="Trail run", intent_json={"focus": "Run"}),
    )

    result = regenerate_weekly_calendar(test_user_id, sample_program_markdown, now=fixed_now)

    ids = {event["id"] for event in list_events(test_user_id)}
    assert moved["user_modified"] is True
    assert moved["id"] in ids
    assert custom["id"] in ids
    assert result["deleted"] == 2


def test_skip_event_records_reason(db_session, test_user_id, fixed_now):
    event = create_event(test_user_id, CalendarEventCreate(start_at=fixed_now, title="Gym"))
    skipped = skip_event(test_user_id, event["id"], reason="travel")
    assert skipped["status"] == "skipped"
    assert skipped["notes"] == "travel"
    assert skipped["planned_session"] is None


def test_catch_up_with_upcoming_events_does_nothing(db_session, test_user_id, fixed_now, sample_program_markdown):
    create_program(test_user_id, sample_program_markdown, status="active")
    regenerate_weekly_calendar(test_user_id, sample_program_markdown, now=fixed_now)

    result = check_and_run_catch_up_review(test_user_id, now=fixed_now)

    assert result == {"regenerated": False, "reason": "has_upcoming_events"}


def test_catch_up_without_program(db_session, test_user_id, fixed_now):
    assert check_and_run_catch_up_review(test_user_id, now=fixed_now) == {
        "regenerated": False,
        "reason": "no_active_program",
    }


def test_catch_up_regenerates_from_active_program(db_session, test_user_id, fixed_now, minimal_program_markdown):
    create_program(test_user_id, minimal_program_markdown, status="active")

    result = check_and_run_catch_up_review(test_user_id, now=fixed_now)

    assert result == {"regenerated": True, "created": 5}
    events = list_events(test_user_id)
    assert len(events) == 5
    assert all(as_utc(event["start_at"]) > fixed_now for event in events)
