"""Deterministic prescription math: intensity bumps, time scaling, duration estimates.

Hard floors keep every adjustment above zero effort: sets, reps, holds and
rounds never drop below 1, duration exercises never below 5 minutes, and
interval work never below 10 seconds.
"""

from __future__ import annotations

import math

from trainer.core.errors import InvalidActionError
from trainer.workouts.types import Exercise, WorkoutInstance

HARDER_MULTIPLIER = 1.15
EASIER_MULTIPLIER = 0.85

MIN_COUNT = 1
MIN_DURATION_MIN = 5
MIN_WORK_SEC = 10
MIN_WORKOUT_MIN = 10

DEFAULT_SET_REST_SEC = 45
DEFAULT_INTERVAL_REST_SEC = 30
REP_SET_WORK_SEC = 30
HOLD_SET_WORK_SEC = 40
UNKNOWN_EXERCISE_SEC = 120


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _scaled(value: float | None, factor: float, floor: int) -> int | None:
    if value is None:
        return None
    return max(floor, round_half_up(value * factor))


def _scaled_list(values: list[int] | None, factor: float, floor: int) -> list[int] | None:
    if values is None:
        return None
    return [max(floor, round_half_up(value * factor)) for value in values]


def adjust_exercise_intensity(exercise: Exercise, direction: str) -> Exercise:
    """Make one exercise harder or easier according to its type.

    reps: sets +1/-1 and each rep count x1.15/x0.85
    hold: each hold duration x1.15/x0.85
    intervals: rounds and work interval x1.15/x0.85
    duration: minutes x1.15/x0.85

    Raises:
        InvalidActionError: If direction is not "harder" or "easier"
    """
    if direction not in ("harder", "easier"):
        raise InvalidActionError(f"Unknown intensity direction: {direction}")
    factor = HARDER_MULTIPLIER if direction == "harder" else EASIER_MULTIPLIER
    update: dict = {}

    if exercise.exercise_type == "reps":
        if exercise.sets is not None:
            update["sets"] = exercise.sets + 1 if direction == "harder" else max(MIN_COUNT, exercise.sets - 1)
        update["reps"] = _scaled_list(exercise.reps, factor, MIN_COUNT)
    elif exercise.exercise_type == "hold":
        update["hold_duration_sec"] = _scaled_list(exercise.hold_duration_sec, factor, MIN_COUNT)
    elif exercise.exercise_type == "intervals":
        update["rounds"] = _scaled(exercise.rounds, factor, MIN_COUNT)
        update["work_sec"] = _scaled(exercise.work_sec, factor, MIN_WORK_SEC)
    elif exercise.exercise_type == "duration":
        update["duration_min"] = _scaled(exercise.duration_min, factor, MIN_DURATION_MIN)

    return exercise.model_copy(update=update)


def scale_exercise(exercise: Exercise, factor: float) -> Exercise:
    """Scale every quantitative field of an exercise, keeping identity fields verbatim."""
    return exercise.model_copy(
        update={
            "sets": _scaled(exercise.sets, factor, MIN_COUNT),
            "reps": _scaled_list(exercise.reps, factor, MIN_COUNT),
            "hold_duration_sec": _scaled_list(exercise.hold_duration_sec, factor, MIN_COUNT),
            "duration_min": _scaled(exercise.duration_min, factor, MIN_DURATION_MIN),
            "rounds": _scaled(exercise.rounds, factor, MIN_COUNT),
            "work_sec": _scaled(exercise.work_sec, factor, MIN_WORK_SEC),
        }
    )


def scale_workout_instance(instance: WorkoutInstance, factor: float) -> WorkoutInstance:
    """Scale every exercise by factor; a set estimated duration is scaled and floored at 10."""
    if factor <= 0:
        raise InvalidActionError(f"Scale factor must be positive, got {factor}")
    estimated = instance.estimated_duration_min
    return instance.model_copy(
        update={
            "exercises": [scale_exercise(exercise, factor) for exercise in instance.exercises],
            "estimated_duration_min": _scaled(estimated, factor, MIN_WORKOUT_MIN),
        }
    )


def _exercise_seconds(exercise: Exercise) -> float:
    kind = exercise.exercise_type
    if kind == "duration" and exercise.duration_min:
        return exercise.duration_min * 60
    if kind == "intervals" and exercise.rounds and exercise.work_sec:
        rest = exercise.rest_seconds if exercise.rest_seconds is not None else DEFAULT_INTERVAL_REST_SEC
        return exercise.rounds * (exercise.work_sec + rest)
    if kind in ("reps", "hold") and exercise.sets:
        rest = exercise.rest_seconds if exercise.rest_seconds is not None else DEFAULT_SET_REST_SEC
        work = HOLD_SET_WORK_SEC if kind == "hold" else REP_SET_WORK_SEC
        return exercise.sets * (rest + work)
    return UNKNOWN_EXERCISE_SEC


def estimate_workout_duration(instance: WorkoutInstance | None) -> int:
    """Estimate a workout's length in minutes, never less than 10 (including no exercises)."""
    if instance is None or not instance.exercises:
        return MIN_WORKOUT_MIN
    total_seconds = sum(_exercise_seconds(exercise) for exercise in instance.exercises)
    return max(MIN_WORKOUT_MIN, round_half_up(total_seconds / 60))
