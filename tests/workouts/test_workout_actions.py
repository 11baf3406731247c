"""Tests for workout sessions and the in-session action engine."""

import json

import pytest

from trainer.core.errors import GenerationFailedError, InvalidActionError, NotFoundError
from trainer.tracking.service import list_tracked_exercises
from trainer.workouts.actions import apply_action, resolve_exercise_index
from trainer.workouts.normalize import normalize_workout_instance
from trainer.workouts.service import (
    complete_session,
    create_instance,
    create_session,
    get_latest_instance,
    get_session_record,
    list_events,
    log_event,
    start_session,
)
from trainer.workouts.types import Exercise


def _generated_workout(make_exercise, estimated=45):
    return json.dumps(
        {
            "title": "Push Day",
            "estimated_duration_min": estimated,
            "focus": ["push"],
            "exercises": [
                make_exercise("Bench Press", sets=3, reps=[10, 10, 10]),
                make_exercise("Plank", "hold"),
                make_exercise("Bike", "intervals"),
                make_exercise("Cool-down Walk", "duration", duration_min=5),
            ],
        }
    )


async def _started(fake_llm, make_exercise, user_id, estimated=45):
    fake_llm.queue(_generated_workout(make_exercise, estimated))
    return await start_session(user_id, constraints={"intent": "planned"}, client=fake_llm)


@pytest.mark.asyncio
async def test_time_scale_without_target_fails_before_any_read(fake_llm):
    with pytest.raises(InvalidActionError, match="Time scale requires target_duration_min"):
        await apply_action("missing-session", "user-1", "time_scale", {}, client=fake_llm)
    assert fake_llm.calls == []


@pytest.mark.asyncio
async def test_unknown_action_rejected(fake_llm):
    with pytest.raises(InvalidActionError):
        await apply_action("missing-session", "user-1", "teleport", {}, client=fake_llm)


@pytest.mark.asyncio
async def test_start_session_writes_instance_events_and_tracking(db_session, test_user_id, fake_llm, make_exercise):
    started = await _started(fake_llm, make_exercise, test_user_id)

    session_id = started["session"]["id"]
    assert started["instance_version"] == 1
    assert len(started["exercise_ids"]) == 4
    assert [event["event_type"] for event in list_events(session_id)] == ["session_started", "instance_generated"]
    tracked = list_tracked_exercises(session_id, test_user_id)
    assert [item["exercise_name"] for item in tracked] == ["Bench Press", "Plank", "Bike", "Cool-down Walk"]
    assert all(item["status"] == "pending" and item["payload_version"] == 1 for item in tracked)


@pytest.mark.asyncio
async def test_start_session_generation_failure_writes_nothing(db_session, test_user_id, fake_llm):
    fake_llm.queue('{"title": "no exercises here"}')
    with pytest.raises(GenerationFailedError):
        await start_session(test_user_id, client=fake_llm)


@pytest.mark.asyncio
async def test_time_scale_to_twenty_minutes(db_session, test_user_id, fake_llm, make_exercise):
    started = await _started(fake_llm, make_exercise, test_user_id, estimated=45)
    session_id = started["session"]["id"]

    result = await apply_action(session_id, test_user_id, "time_scale", {"target_duration_min": 20}, client=fake_llm)

    assert result["instance_updated"] is True
    assert result["instance_version"] == 2
    estimated = result["instance"]["estimated_duration_min"]
    assert 10 <= estimated <= 45
    assert estimated == 20
    instance, version = get_latest_instance(session_id)
    assert version == 2
    names = [exercise.exercise_name for exercise in instance.exercises]
    assert names == ["Bench Press", "Plank", "Bike", "Cool-down Walk"]
    assert [exercise.exercise_type for exercise in instance.exercises] == ["reps", "hold", "intervals", "duration"]
    assert list_events(session_id)[-1]["data"]["action_type"] == "time_scale"


@pytest.mark.asyncio
async def test_adjust_prescription_by_name(db_session, test_user_id, fake_llm, make_exercise):
    started = await _started(fake_llm, make_exercise, test_user_id)

    result = await apply_action(
        started["session"]["id"],
        test_user_id,
        "adjust_prescription",
        {"exercise_name": "bench press", "direction": "harder"},
        client=fake_llm,
    )

    bench = result["instance"]["exercises"][0]
    assert bench["sets"] == 4
    assert bench["reps"] == [12, 12, 12]


@pytest.mark.asyncio
async def test_swap_exercise_by_index_keeps_type(db_session, test_user_id, fake_llm, make_exercise):
    started = await _started(fake_llm, make_exercise, test_user_id)
    fake_llm.queue(json.dumps({"exercise": make_exercise("Side Plank", "hold")}))

    result = await apply_action(started["session"]["id"], test_user_id, "swap_exercise", {"index": 1}, client=fake_llm)

    names = [exercise["exercise_name"] for exercise in result["instance"]["exercises"]]
    assert names == ["Bench Press", "Side Plank", "Bike", "Cool-down Walk"]
    assert result["instance"]["exercises"][1]["exercise_type"] == "hold"


@pytest.mark.asyncio
async def test_swap_with_different_type_is_rejected(db_session, test_user_id, fake_llm, make_exercise):
    started = await _started(fake_llm, make_exercise, test_user_id)
    fake_llm.queue(json.dumps({"exercise": make_exercise("Treadmill", "duration")}))

    with pytest.raises(GenerationFailedError):
        await apply_action(
            started["session"]["id"], test_user_id, "swap_exercise", {"exercise_name": "Plank"}, client=fake_llm
        )
    assert get_latest_instance(started["session"]["id"])[1] == 1


@pytest.mark.asyncio
async def test_flag_pain_scales_down_and_logs_safety_flag(db_session, test_user_id, fake_llm, make_exercise):
    started = await _started(fake_llm, make_exercise, test_user_id)
    session_id = started["session"]["id"]

    result = await apply_action(session_id, test_user_id, "flag_pain", {"pain": "left shoulder"}, client=fake_llm)

    assert result["instance"]["estimated_duration_min"] == 36
    event_types = [event["event_type"] for event in list_events(session_id)]
    assert event_types[-2:] == ["action", "safety_flag"]


@pytest.mark.asyncio
async def test_set_coach_mode_does_not_version_instance(db_session, test_user_id, fake_llm, make_exercise):
    started = await _started(fake_llm, make_exercise, test_user_id)
    session_id = started["session"]["id"]

    result = await apply_action(session_id, test_user_id, "set_coach_mode", {"mode": "ringer"}, client=fake_llm)

    assert result["instance_updated"] is False
    assert result["instance_version"] == 1
    assert get_session_record(session_id, test_user_id)["coach_mode"] == "ringer"


@pytest.mark.asyncio
async def test_action_on_other_users_session_not_found(db_session, test_user_id, fake_llm, make_exercise):
    started = await _started(fake_llm, make_exercise, test_user_id)
    with pytest.raises(NotFoundError):
        await apply_action(started["session"]["id"], "someone-else", "flag_pain", {}, client=fake_llm)


def test_resolve_exercise_index_errors(make_exercise):
    instance = normalize_workout_instance({"exercises": [make_exercise("Squat")]})
    assert resolve_exercise_index(instance, {"exercise_name": "SQUAT"}) == 0
    with pytest.raises(InvalidActionError):
        resolve_exercise_index(instance, {"index": 3})
    with pytest.raises(InvalidActionError):
        resolve_exercise_index(instance, {"exercise_name": "Deadlift"})
    with pytest.raises(InvalidActionError):
        resolve_exercise_index(instance, {})


@pytest.mark.asyncio
async def test_complete_session_summarizes_and_updates_profile(db_session, test_user_id, fake_llm, make_exercise):
    started = await _started(fake_llm, make_exercise, test_user_id)
    session_id = started["session"]["id"]
    fake_llm.queue(
        json.dumps({"title": "Solid push day", "wins": ["Finished strong"]}),
        json.dumps({"entries": [{"equipment": "barbell", "movement": "bench press", "load": 40, "load_unit": "kg"}]}),
    )

    result = await complete_session(test_user_id, session_id, reflection={"rpe": 7}, client=fake_llm)

    assert result["coach_summary"]["title"] == "Solid push day"
    assert result["overall_rpe"] == 7
    record = get_session_record(session_id, test_user_id)
    assert record["status"] == "completed"
    assert record["session_rpe"] == 7
    assert list_events(session_id)[-1]["event_type"] == "session_completed"


@pytest.mark.asyncio
async def test_stopped_session_skips_model_calls(db_session, test_user_id, fake_llm, make_exercise):
    started = await _started(fake_llm, make_exercise, test_user_id)
    calls_before = len(fake_llm.calls)

    result = await complete_session(test_user_id, started["session"]["id"], mode="stop", reason="tired", client=fake_llm)

    assert result["stop_reason"] == "tired"
    assert len(fake_llm.calls) == calls_before
    assert get_session_record(started["session"]["id"], test_user_id)["status"] == "stopped"


def test_manual_session_and_instance_versions(db_session, test_user_id, make_exercise):
    created = create_session(test_user_id, metadata={"intent": "quick_request"}, coach_mode="ringer")
    instance = normalize_workout_instance({"title": "Quick", "exercises": [make_exercise()]})

    assert get_latest_instance(created["id"]) is None
    assert create_instance(created["id"], instance) == 1
    assert create_instance(created["id"], instance.model_copy(update={"title": "Quick v2"})) == 2

    latest, version = get_latest_instance(created["id"])
    assert version == 2
    assert latest.title == "Quick v2"
    assert created["status"] == "in_progress"
    assert created["metadata"] == {"intent": "quick_request"}


def test_log_event_sequences_and_rejects_unknown_types(db_session, test_user_id):
    created = create_session(test_user_id)
    first = log_event(created["id"], "log_set", {"index": 0, "reps": 8})
    second = log_event(created["id"], "timer", {"seconds": 60})

    assert (first["sequence"], second["sequence"]) == (1, 2)
    assert [event["event_type"] for event in list_events(created["id"], after_sequence=1)] == ["timer"]
    with pytest.raises(InvalidActionError):
        log_event(created["id"], "dance", {})


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("action_type", "payload"),
    [
        ("time_scale", {"target_duration_min": 20}),
        ("adjust_prescription", {"index": 0, "direction": "easier"}),
        ("flag_pain", {"pain": "knee"}),
        ("set_coach_mode", {"mode": "ringer"}),
    ],
)
async def test_actions_rejected_after_session_ends(
    db_session, test_user_id, fake_llm, make_exercise, action_type, payload
):
    started = await _started(fake_llm, make_exercise, test_user_id)
    session_id = started["session"]["id"]
    await complete_session(test_user_id, session_id, mode="stop", client=fake_llm)
    events_before = len(list_events(session_id))

    with pytest.raises(InvalidActionError, match="can no longer change"):
        await apply_action(session_id, test_user_id, action_type, payload, client=fake_llm)

    assert get_latest_instance(session_id)[1] == 1
    assert len(list_events(session_id)) == events_before
    assert get_session_record(session_id, test_user_id)["coach_mode"] == "quiet"


@pytest.mark.asyncio
async def test_swap_with_junk_field_types_is_normalized(db_session, test_user_id, fake_llm, make_exercise):
    started = await _started(fake_llm, make_exercise, test_user_id)
    replacement = make_exercise("Side Plank", "hold")
    replacement["exercise_description"] = {"cue": "elbows"}
    replacement["reasoning"] = ["stable", "shoulder friendly"]
    fake_llm.queue(json.dumps({"exercise": replacement}))

    result = await apply_action(started["session"]["id"], test_user_id, "swap_exercise", {"index": 1}, client=fake_llm)

    swapped = result["instance"]["exercises"][1]
    assert swapped["exercise_name"] == "Side Plank"
    assert swapped["exercise_description"] is None
    assert swapped["reasoning"] == ""


@pytest.mark.asyncio
async def test_swap_validation_error_becomes_generation_failure(
    db_session, test_user_id, fake_llm, make_exercise, monkeypatch
):
    started = await _started(fake_llm, make_exercise, test_user_id)
    fake_llm.queue(json.dumps({"exercise": make_exercise("Side Plank", "hold")}))

    def invalid_exercise(raw):
        return Exercise.model_validate({"exercise_name": "Side Plank", "exercise_type": "yoga"})

    monkeypatch.setattr("trainer.workouts.generation.normalize_exercise", invalid_exercise)

    with pytest.raises(GenerationFailedError, match="invalid swap exercise"):
        await apply_action(started["session"]["id"], test_user_id, "swap_exercise", {"index": 1}, client=fake_llm)
    assert get_latest_instance(started["session"]["id"])[1] == 1


@pytest.mark.asyncio
async def test_generation_with_junk_title_still_starts(db_session, test_user_id, fake_llm, make_exercise):
    fake_llm.queue(json.dumps({"title": 5, "focus": [{"area": "push"}, "pull"], "exercises": [make_exercise()]}))

    started = await start_session(test_user_id, client=fake_llm)

    assert started["instance"]["title"] == "5"
    assert started["instance"]["focus"] == ["pull"]


@pytest.mark.asyncio
async def test_energy_is_recorded_on_session_metadata(db_session, test_user_id, fake_llm, make_exercise):
    fake_llm.queue(_generated_workout(make_exercise))
    started = await start_session(test_user_id, constraints={"readiness": {"energy": 4}}, client=fake_llm)
    session_id = started["session"]["id"]

    assert get_session_record(session_id, test_user_id)["metadata"]["energy_level"] == 4

    await complete_session(test_user_id, session_id, reflection={"energy": 2}, mode="stop", client=fake_llm)

    assert get_session_record(session_id, test_user_id)["metadata"]["energy_level"] == 2
