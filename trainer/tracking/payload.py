"""Building tracked payloads from exercises and deriving status and metrics from them."""

from __future__ import annotations

from trainer.core.errors import InvalidActionError
from trainer.tracking.types import (
    ExerciseMetrics,
    ExercisePayload,
    Flags,
    Identity,
    Performance,
    PerformanceSet,
    Prescription,
    PrescriptionSet,
)
from trainer.workouts.prescription import round_half_up
from trainer.workouts.types import Exercise


def _set_count(exercise: Exercise) -> int:
    if exercise.sets:
        return max(1, exercise.sets)
    if exercise.exercise_type == "intervals" and exercise.rounds:
        return max(1, exercise.rounds)
    if exercise.exercise_type == "duration":
        return 1
    return max(1, len(exercise.reps or []), len(exercise.load_each or []), len(exercise.hold_duration_sec or []))


def _at(values: list | None, index: int):
    if not values:
        return None
    if index < len(values):
        return values[index]
    return None


def _prescription_set(exercise: Exercise, index: int) -> PrescriptionSet:
    kind = exercise.exercise_type
    target = PrescriptionSet(load_unit=exercise.load_unit)
    if kind == "reps":
        target.target_reps = _at(exercise.reps, index)
        load = _at(exercise.load_each, index)
        # A single load applies to every set
        if load is None and exercise.load_each and len(exercise.load_each) == 1:
            load = exercise.load_each[0]
        target.target_load = max(0.0, load) if load is not None else None
    elif kind == "hold":
        target.target_duration_sec = _at(exercise.hold_duration_sec, index)
    elif kind == "duration":
        if exercise.duration_min is not None:
            target.target_duration_sec = round_half_up(exercise.duration_min) * 60
        target.target_distance_km = exercise.distance_km
    elif kind == "intervals":
        target.target_duration_sec = exercise.work_sec
    return target


def build_initial_payload(exercise: Exercise) -> ExercisePayload:
    """Create the pending payload for a freshly generated exercise."""
    count = _set_count(exercise)
    return ExercisePayload(
        identity=Identity(name=exercise.exercise_name or "Exercise", type=exercise.exercise_type),
        prescription=Prescription(
            sets=[_prescription_set(exercise, index) for index in range(count)],
            rest_seconds=exercise.rest_seconds,
        ),
        performance=Performance(sets=[PerformanceSet(load_unit=exercise.load_unit) for _ in range(count)]),
        flags=Flags(),
    )


def has_any_set_performance(performance: PerformanceSet) -> bool:
    return any(
        value is not None
        for value in (
            performance.actual_reps,
            performance.actual_duration_sec,
            performance.actual_distance_km,
            performance.actual_load,
        )
    )


def derive_exercise_status(payload: ExercisePayload, current_status: str) -> str:
    """pending with no logged sets, completed once every set is logged, else in_progress."""
    if current_status == "skipped":
        return "skipped"
    sets = payload.performance.sets
    logged = sum(1 for performance in sets if has_any_set_performance(performance))
    if logged == 0:
        return "pending"
    if logged >= len(sets):
        return "completed"
    return "in_progress"


def derive_exercise_metrics(payload: ExercisePayload) -> ExerciseMetrics:
    """Recompute aggregates from the full performance array."""
    total_reps = 0
    volume = 0.0
    duration_sec = 0
    set_rpes = []
    for performance in payload.performance.sets:
        reps = performance.actual_reps or 0
        total_reps += reps
        volume += reps * (performance.actual_load or 0)
        duration_sec += performance.actual_duration_sec or 0
        if performance.rpe is not None:
            set_rpes.append(performance.rpe)

    exercise_rpe = payload.performance.exercise_rpe
    if exercise_rpe is None and set_rpes:
        exercise_rpe = round_half_up(sum(set_rpes) / len(set_rpes))

    return ExerciseMetrics(
        exercise_name=payload.identity.name,
        exercise_rpe=exercise_rpe,
        total_reps=total_reps,
        volume=volume,
        duration_sec=duration_sec,
    )


def ensure_set_index(payload: ExercisePayload, set_index: int) -> None:
    if set_index < 0 or set_index >= len(payload.performance.sets):
        raise InvalidActionError(f"set_index {set_index} out of range (sets={len(payload.performance.sets)})")
