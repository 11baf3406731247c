"""Tests for the pure exercise completion reducer."""

import pytest
from pydantic import ValidationError

from trainer.core.errors import InvalidActionError
from trainer.tracking.payload import build_initial_payload
from trainer.tracking.reducer import reduce, replay_commands
from trainer.workouts.normalize import normalize_exercise

STAMP = "2026-03-11T15:30:00+00:00"


@pytest.fixture
def squat_payload(make_exercise):
    return build_initial_payload(normalize_exercise(make_exercise(sets=3, reps=[10, 8, 6], load_each=[50])))


def _complete(index, reps=10, load=50.0):
    return {"type": "complete_set", "set_index": index, "actual_reps": reps, "actual_load": load, "completed_at": STAMP}


def test_initial_payload_shape(squat_payload):
    assert squat_payload.identity.name == "Goblet Squat"
    assert [s.target_reps for s in squat_payload.prescription.sets] == [10, 8, 6]
    assert [s.target_load for s in squat_payload.prescription.sets] == [50, 50, 50]
    assert len(squat_payload.performance.sets) == 3


def test_no_sets_logged_is_pending(squat_payload):
    _, status, metrics = reduce(squat_payload, "pending", {"type": "set_exercise_rpe", "rpe": 7})
    assert status == "pending"
    assert metrics.exercise_rpe == 7


def test_partial_sets_is_in_progress(squat_payload):
    payload, status, metrics = reduce(squat_payload, "pending", _complete(0))
    assert status == "in_progress"
    assert payload.performance.sets[0].completed_at == STAMP
    assert metrics.total_reps == 10
    assert metrics.volume == 500


def test_all_sets_logged_is_completed(squat_payload):
    _, status, metrics = replay_commands(squat_payload, [_complete(0), _complete(1, 8), _complete(2, 6)])
    assert status == "completed"
    assert metrics.total_reps == 24
    assert metrics.volume == 1200


def test_skip_then_unskip_returns_to_pending_keeping_performance(squat_payload):
    payload, status, _ = replay_commands(
        squat_payload,
        [_complete(0), {"type": "skip_exercise", "reason": "no rack"}],
    )
    assert status == "skipped"
    assert payload.flags.skip_reason == "no rack"

    payload, status, _ = reduce(payload, status, {"type": "unskip_exercise"})
    assert status == "pending"
    assert payload.flags.skip_reason is None
    assert payload.performance.sets[0].actual_reps == 10


def test_reopen_derives_status_from_performance(squat_payload):
    payload, status, _ = replay_commands(
        squat_payload, [_complete(0), {"type": "complete_exercise", "completed_at": STAMP}]
    )
    assert status == "completed"
    _, status, _ = reduce(payload, status, {"type": "reopen_exercise"})
    assert status == "in_progress"


def test_update_target_marks_modified(squat_payload):
    payload, _, _ = reduce(squat_payload, "pending", {"type": "update_set_target", "set_index": 2, "target_reps": 5})
    assert payload.prescription.sets[2].target_reps == 5
    assert payload.flags.modified is True


def test_set_rpe_average_when_no_exercise_rpe(squat_payload):
    _, _, metrics = replay_commands(
        squat_payload,
        [{**_complete(0), "rpe": 7}, {**_complete(1), "rpe": 8}],
    )
    assert metrics.exercise_rpe == 8


def test_replay_is_deterministic(squat_payload):
    commands = [
        _complete(0),
        {"type": "set_exercise_note", "notes": "felt good"},
        {"type": "adjust_rest_seconds", "rest_seconds": 90},
        _complete(1, 8),
    ]
    first = replay_commands(squat_payload, commands)
    second = replay_commands(squat_payload, commands)
    assert first == second
    assert squat_payload.performance.sets[0].actual_reps is None


def test_set_index_out_of_range(squat_payload):
    with pytest.raises(InvalidActionError):
        reduce(squat_payload, "pending", _complete(5))


def test_invalid_commands_rejected(squat_payload):
    with pytest.raises(ValidationError):
        reduce(squat_payload, "pending", {"type": "teleport"})
    with pytest.raises(ValidationError):
        reduce(squat_payload, "pending", {"type": "set_exercise_rpe", "rpe": 11})
    with pytest.raises(ValidationError):
        reduce(squat_payload, "pending", {"type": "complete_set", "set_index": 0, "bogus": 1})
