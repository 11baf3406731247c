"""Exercise tracking commands, a tagged union discriminated on ``type``."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _Command(BaseModel):
    model_config = ConfigDict(extra="forbid")


class _SetActuals(_Command):
    set_index: int = Field(ge=0)
    actual_reps: int | None = Field(default=None, ge=0)
    actual_load: float | None = Field(default=None, ge=0)
    load_unit: str | None = None
    actual_duration_sec: int | None = Field(default=None, ge=0)
    actual_distance_km: float | None = Field(default=None, ge=0)
    rpe: int | None = Field(default=None, ge=1, le=10)
    # Stamped by the service before logging so replays are deterministic
    completed_at: str | None = None


class CompleteSet(_SetActuals):
    type: Literal["complete_set"] = "complete_set"


class UpdateSetActual(_SetActuals):
    type: Literal["update_set_actual"] = "update_set_actual"


class UpdateSetTarget(_Command):
    type: Literal["update_set_target"] = "update_set_target"
    set_index: int = Field(ge=0)
    target_reps: int | None = Field(default=None, ge=0)
    target_load: float | None = Field(default=None, ge=0)
    load_unit: str | None = None
    target_duration_sec: int | None = Field(default=None, ge=0)
    target_distance_km: float | None = Field(default=None, ge=0)


class SetExerciseRpe(_Command):
    type: Literal["set_exercise_rpe"] = "set_exercise_rpe"
    rpe: int | None = Field(default=None, ge=1, le=10)


class SetNote(_Command):
    type: Literal["set_exercise_note"] = "set_exercise_note"
    notes: str | None = Field(default=None, max_length=2000)


class SkipExercise(_Command):
    type: Literal["skip_exercise"] = "skip_exercise"
    reason: str = Field(default="user_skipped", max_length=200)


class UnskipExercise(_Command):
    type: Literal["unskip_exercise"] = "unskip_exercise"


class CompleteExercise(_Command):
    type: Literal["complete_exercise"] = "complete_exercise"
    completed_at: str | None = None


class ReopenExercise(_Command):
    type: Literal["reopen_exercise"] = "reopen_exercise"


class AdjustRestSeconds(_Command):
    type: Literal["adjust_rest_seconds"] = "adjust_rest_seconds"
    rest_seconds: int | None = Field(default=None, ge=0)


ExerciseCommand = Annotated[
    Union[
        CompleteSet,
        UpdateSetTarget,
        UpdateSetActual,
        SetExerciseRpe,
        SetNote,
        SkipExercise,
        UnskipExercise,
        CompleteExercise,
        ReopenExercise,
        AdjustRestSeconds,
    ],
    Field(discriminator="type"),
]

_command_adapter = TypeAdapter(ExerciseCommand)


def parse_command(raw: dict[str, Any] | BaseModel) -> ExerciseCommand:
    """Validate a raw command dict into its typed command.

    Raises:
        pydantic.ValidationError: If the type is unknown or a field is invalid
    """
    if isinstance(raw, BaseModel):
        return raw
    return _command_adapter.validate_python(raw)
