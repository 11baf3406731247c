"""Tracked exercise payload (schema v1).

The payload is what the completion reducer folds commands into. Prescription
and performance keep one entry per set, index-aligned.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

CURRENT_PAYLOAD_SCHEMA_VERSION = 1

ExerciseStatus = Literal["pending", "in_progress", "completed", "skipped"]


class PrescriptionSet(BaseModel):
    model_config = ConfigDict(extra="forbid")

    target_reps: int | None = Field(default=None, ge=0)
    target_load: float | None = Field(default=None, ge=0)
    load_unit: str | None = None
    target_duration_sec: int | None = Field(default=None, ge=0)
    target_distance_km: float | None = Field(default=None, ge=0)


class PerformanceSet(BaseModel):
    model_config = ConfigDict(extra="forbid")

    actual_reps: int | None = Field(default=None, ge=0)
    actual_load: float | None = Field(default=None, ge=0)
    load_unit: str | None = None
    actual_duration_sec: int | None = Field(default=None, ge=0)
    actual_distance_km: float | None = Field(default=None, ge=0)
    rpe: int | None = Field(default=None, ge=1, le=10)
    completed_at: str | None = None


class Identity(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    type: Literal["reps", "hold", "duration", "intervals"]


class Prescription(BaseModel):
    model_config = ConfigDict(extra="forbid")

    sets: list[PrescriptionSet] = Field(min_length=1)
    rest_seconds: int | None = Field(default=None, ge=0)


class Performance(BaseModel):
    model_config = ConfigDict(extra="forbid")

    sets: list[PerformanceSet] = Field(min_length=1)
    exercise_rpe: int | None = Field(default=None, ge=1, le=10)
    notes: str | None = None


class Flags(BaseModel):
    model_config = ConfigDict(extra="forbid")

    pain: bool = False
    modified: bool = False
    skip_reason: str | None = None


class ExercisePayload(BaseModel):
    """Full tracked state of one exercise within a session."""

    model_config = ConfigDict(extra="forbid")

    schema_version: int = CURRENT_PAYLOAD_SCHEMA_VERSION
    identity: Identity
    prescription: Prescription
    performance: Performance
    flags: Flags = Field(default_factory=Flags)


class ExerciseMetrics(BaseModel):
    exercise_name: str
    exercise_rpe: int | None = None
    total_reps: int = 0
    volume: float = 0.0
    duration_sec: int = 0
