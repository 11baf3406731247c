"""Exercise completion reducer.

``reduce`` is pure: it never reads the clock or the store, so folding the
same command log from the same initial payload always lands on the same
state. Timestamps arrive on the command.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from trainer.core.errors import InvalidActionError
from trainer.tracking.commands import (
    AdjustRestSeconds,
    CompleteExercise,
    CompleteSet,
    ExerciseCommand,
    ReopenExercise,
    SetExerciseRpe,
    SetNote,
    SkipExercise,
    UnskipExercise,
    UpdateSetActual,
    UpdateSetTarget,
    parse_command,
)
from trainer.tracking.payload import (
    derive_exercise_metrics,
    derive_exercise_status,
    ensure_set_index,
    has_any_set_performance,
)
from trainer.tracking.types import CURRENT_PAYLOAD_SCHEMA_VERSION, ExerciseMetrics, ExercisePayload

_ACTUAL_FIELDS = ("actual_reps", "actual_load", "load_unit", "actual_duration_sec", "actual_distance_km", "rpe")
_TARGET_FIELDS = ("target_reps", "target_load", "load_unit", "target_duration_sec", "target_distance_km")


def _merge(target, command, fields: tuple[str, ...]) -> None:
    """Overwrite fields the command sets; leave the rest untouched."""
    for field in fields:
        value = getattr(command, field)
        if value is not None:
            setattr(target, field, value)


def reduce(
    payload: ExercisePayload,
    status: str,
    command: ExerciseCommand | dict[str, Any],
) -> tuple[ExercisePayload, str, ExerciseMetrics]:
    """Apply one command and return (payload, status, metrics).

    Raises:
        InvalidActionError: If a set index is out of range
        pydantic.ValidationError: If the command or the resulting payload is invalid
    """
    command = parse_command(command)
    next_payload = payload.model_copy(deep=True)
    next_status = status

    if isinstance(command, CompleteSet):
        ensure_set_index(next_payload, command.set_index)
        performance = next_payload.performance.sets[command.set_index]
        _merge(performance, command, _ACTUAL_FIELDS)
        performance.completed_at = command.completed_at or performance.completed_at
        next_status = derive_exercise_status(next_payload, status)
    elif isinstance(command, UpdateSetActual):
        ensure_set_index(next_payload, command.set_index)
        performance = next_payload.performance.sets[command.set_index]
        _merge(performance, command, _ACTUAL_FIELDS)
        if has_any_set_performance(performance):
            performance.completed_at = performance.completed_at or command.completed_at
        next_status = derive_exercise_status(next_payload, status)
    elif isinstance(command, UpdateSetTarget):
        ensure_set_index(next_payload, command.set_index)
        _merge(next_payload.prescription.sets[command.set_index], command, _TARGET_FIELDS)
        next_payload.flags.modified = True
    elif isinstance(command, SetExerciseRpe):
        next_payload.performance.exercise_rpe = command.rpe
    elif isinstance(command, SetNote):
        next_payload.performance.notes = command.notes
    elif isinstance(command, SkipExercise):
        next_payload.flags.skip_reason = command.reason or "user_skipped"
        next_status = "skipped"
    elif isinstance(command, UnskipExercise):
        # Logged performance is kept; only the status resets
        next_payload.flags.skip_reason = None
        next_status = "pending"
    elif isinstance(command, CompleteExercise):
        for performance in next_payload.performance.sets:
            if performance.completed_at is None and has_any_set_performance(performance):
                performance.completed_at = command.completed_at
        next_status = "completed"
    elif isinstance(command, ReopenExercise):
        next_status = derive_exercise_status(next_payload, "pending")
    elif isinstance(command, AdjustRestSeconds):
        next_payload.prescription.rest_seconds = command.rest_seconds
        next_payload.flags.modified = True
    else:
        raise InvalidActionError(f"Unsupported command type: {getattr(command, 'type', command)}")

    next_payload.schema_version = CURRENT_PAYLOAD_SCHEMA_VERSION
    next_payload = ExercisePayload.model_validate(next_payload.model_dump())
    return next_payload, next_status, derive_exercise_metrics(next_payload)


def replay_commands(
    initial_payload: ExercisePayload,
    commands: Iterable[ExerciseCommand | dict[str, Any]],
    initial_status: str = "pending",
) -> tuple[ExercisePayload, str, ExerciseMetrics]:
    """Fold a command log from the initial payload."""
    payload, status = initial_payload, initial_status
    metrics = derive_exercise_metrics(payload)
    for command in commands:
        payload, status, metrics = reduce(payload, status, command)
    return payload, status, metrics
