"""Canonical workout instance types.

Every exercise, whatever shape it arrived in, is normalized into Exercise
before it is stored or mutated. Type-specific fields are only populated for
the matching exercise_type; the rest stay None.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

ExerciseType = Literal["reps", "hold", "duration", "intervals"]

IntensityDirection = Literal["harder", "easier"]

ActionType = Literal["time_scale", "swap_exercise", "adjust_prescription", "flag_pain", "set_coach_mode"]

CoachMode = Literal["quiet", "ringer"]

EVENT_TYPES = (
    "session_started",
    "instance_generated",
    "action",
    "log_set",
    "log_interval",
    "timer",
    "coach_message",
    "safety_flag",
    "session_completed",
    "error",
)

# Type-specific fields owned by each exercise type
TYPE_FIELDS: dict[str, tuple[str, ...]] = {
    "reps": ("sets", "reps", "load_each", "load_unit", "rest_seconds"),
    "hold": ("sets", "hold_duration_sec", "rest_seconds"),
    "duration": ("duration_min", "distance_km", "distance_unit"),
    "intervals": ("rounds", "work_sec", "rest_seconds"),
}

ALL_TYPE_FIELDS = tuple(sorted({field for fields in TYPE_FIELDS.values() for field in fields}))


class Exercise(BaseModel):
    """Normalized exercise, discriminated by exercise_type."""

    exercise_name: str
    exercise_type: ExerciseType
    muscles_utilized: list[Any] = Field(default_factory=list)
    goals_addressed: list[Any] = Field(default_factory=list)
    reasoning: str = ""
    exercise_description: str | None = None
    equipment: list[str] = Field(default_factory=list)

    sets: int | None = None
    reps: list[int] | None = None
    load_each: list[float] | None = None
    load_unit: str | None = None
    hold_duration_sec: list[int] | None = None
    duration_min: float | None = None
    distance_km: float | None = None
    distance_unit: str | None = None
    rounds: int | None = None
    work_sec: int | None = None
    rest_seconds: int | None = None


class InstanceMetadata(BaseModel):
    intent: str = "planned"
    request_text: str | None = None
    planned_session: dict[str, Any] | None = None
    generated_at: str | None = None


class WorkoutInstance(BaseModel):
    """Full snapshot of a workout; every mutation produces a new one."""

    title: str = "Today's Workout"
    estimated_duration_min: int | None = None
    focus: list[str] = Field(default_factory=list)
    exercises: list[Exercise] = Field(default_factory=list)
    metadata: InstanceMetadata = Field(default_factory=InstanceMetadata)
