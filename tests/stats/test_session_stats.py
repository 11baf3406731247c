"""Tests for per-session and weekly statistics."""

from datetime import timedelta

import pytest

from trainer.calendar.scheduler import regenerate_weekly_calendar
from trainer.db.models import WorkoutSession
from trainer.stats.calculator import calculate_session_stats, empty_session_stats
from trainer.stats.service import calculate_weekly_stats, get_current_week_bounds
from trainer.workouts.repository import insert_instance, log_event


@pytest.fixture
def instance(make_exercise):
    return {
        "title": "Mixed",
        "exercises": [
            make_exercise("Squat"),
            make_exercise("Run", "duration", duration_min=20),
            make_exercise("Sprints", "intervals"),
        ],
    }


def _event(event_type, **data):
    return {"event_type": event_type, "data": data}


def test_empty_events_yield_zero_stats(instance):
    assert calculate_session_stats(instance, []) == empty_session_stats()
    assert calculate_session_stats(None, [_event("log_set", reps=5)]) == empty_session_stats()


def test_set_events_and_cardio_add_up(instance):
    events = [
        _event("log_set", index=0, reps_completed=10, load=20),
        _event("log_set", index=0, reps=8, weight=22.5),
        _event("log_interval", index=2, duration_sec=90),
        _event("safety_flag", pain="knee"),
    ]
    stats = calculate_session_stats(instance, events)

    assert stats["total_exercises"] == 3
    assert stats["total_sets"] == 2
    assert stats["total_reps"] == 18
    assert stats["total_volume"] == 380
    assert stats["cardio_time_min"] == 21.5
    assert stats["exercises_completed"] == 2
    assert stats["exercises_skipped"] == 1
    assert stats["pain_flags"] == 1


def test_action_payload_index_and_pain_notes(instance):
    session = {
        "notes": "Left knee hurts a bit",
        "metadata": {"energy_level": 3},
        "created_at": "2026-03-10T10:00:00+00:00",
        "updated_at": "2026-03-10T10:50:00+00:00",
    }
    events = [
        {"event_type": "log_set", "data": {"payload": {"index": 1, "reps": 0}}},
        _event("coach_message", text="Stop if the pain gets worse"),
        _event("coach_message", text="Nice pace"),
    ]
    stats = calculate_session_stats(instance, events, session)

    assert stats["exercises_completed"] == 1
    assert stats["pain_flags"] == 2
    assert stats["energy_rating"] == 3
    assert stats["workout_duration_min"] == 50


def test_tracked_exercises_fill_in_without_set_events(instance):
    workout = [
        {
            "status": "completed",
            "total_reps": 30,
            "volume": 600.0,
            "payload_json": {"performance": {"sets": [{"actual_reps": 10}, {"actual_reps": 10}, {"actual_reps": 10}]}},
        },
        {"status": "pending", "total_reps": 0, "volume": 0, "payload_json": {"performance": {"sets": [{}]}}},
    ]
    stats = calculate_session_stats(instance, [_event("session_started")], workout=workout)

    assert stats["total_sets"] == 3
    assert stats["total_reps"] == 30
    assert stats["total_volume"] == 600
    assert stats["exercises_completed"] == 1


def _seed_completed_session(db_session, user_id, started_at, instance_json, events, energy=None):
    row = WorkoutSession(
        user_id=user_id,
        status="completed",
        started_at=started_at,
        completed_at=started_at + timedelta(minutes=45),
        created_at=started_at,
        updated_at=started_at + timedelta(minutes=45),
        metadata_json={"energy_level": energy} if energy is not None else {},
    )
    db_session.add(row)
    db_session.flush()
    insert_instance(db_session, session_id=row.id, instance_json=instance_json)
    for event_type, data in events:
        log_event(db_session, session_id=row.id, event_type=event_type, data=data)
    return row


def test_week_without_sessions_is_all_zero(db_session, test_user_id, fixed_now):
    week_start, week_end = get_current_week_bounds(fixed_now)

    stats = calculate_weekly_stats(test_user_id, week_start, week_end)

    assert stats["sessions_completed"] == 0
    assert stats["sessions_planned"] == 0
    assert stats["total_volume"] == 0
    assert stats["total_cardio_min"] == 0
    assert stats["avg_energy_rating"] is None
    assert stats["avg_session_duration_min"] is None
    assert stats["trends"] == {"sessions": "flat", "volume": "flat", "cardio": "flat"}


def test_weekly_roll_up_with_trends(db_session, test_user_id, fixed_now, instance, sample_program_markdown):
    week_start, week_end = get_current_week_bounds(fixed_now)
    assert week_start.weekday() == 0
    _seed_completed_session(
        db_session,
        test_user_id,
        week_start + timedelta(days=1, hours=8),
        instance,
        [("log_set", {"index": 0, "reps": 10, "load": 20}), ("log_set", {"index": 0, "reps": 10, "load": 20})],
        energy=4,
    )
    _seed_completed_session(
        db_session,
        test_user_id,
        week_start - timedelta(days=3),
        {"exercises": [{"exercise_name": "Squat", "exercise_type": "reps"}]},
        [("log_set", {"index": 0, "reps": 5, "load": 20})],
    )
    regenerate_weekly_calendar(test_user_id, sample_program_markdown, now=week_start - timedelta(days=1))

    stats = calculate_weekly_stats(test_user_id, week_start, week_end)

    assert stats["sessions_completed"] == 1
    assert stats["sessions_planned"] == 3
    assert stats["total_reps"] == 20
    assert stats["total_volume"] == 400
    assert stats["total_cardio_min"] == 20
    assert stats["total_workout_min"] == 45
    assert stats["avg_session_duration_min"] == 45
    assert stats["avg_energy_rating"] == 4
    assert stats["trends"] == {"sessions": "flat", "volume": "up", "cardio": "up"}
