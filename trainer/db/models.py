from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all database models."""


class Program(Base):
    """Versioned training program document.

    Every edit inserts a new row with version + 1; rows are never updated in
    place except for their status. At most one row per user is active.

    Statuses:
    - draft: not yet approved by the user
    - active: the program the calendar and weekly review follow
    - paused: kept but not driving the calendar
    - archived: superseded by a newer version
    """

    __tablename__ = "trainer_programs"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    document: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)

    __table_args__ = (
        UniqueConstraint("user_id", "version", name="uq_trainer_programs_user_version"),
        Index("idx_trainer_programs_user_status", "user_id", "status"),
    )


class ProgramEvent(Base):
    """Audit trail of program lifecycle changes (created, edited, activated, weekly_review)."""

    __tablename__ = "trainer_program_events"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    program_id: Mapped[str] = mapped_column(String, ForeignKey("trainer_programs.id"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String, nullable=False)
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


class WeightsProfile(Base):
    """Append-only snapshot of estimated per-movement load capacity."""

    __tablename__ = "trainer_weights_profiles"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    entries: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    trigger_type: Mapped[str] = mapped_column(String, nullable=False)
    trigger_session_id: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)

    __table_args__ = (UniqueConstraint("user_id", "version", name="uq_trainer_weights_profiles_user_version"),)


class CalendarEvent(Base):
    """Concrete scheduled item on a user's calendar.

    Events with source='program_projection' and user_modified=False are owned
    by the calendar scheduler and may be deleted and rewritten on regeneration.
    """

    __tablename__ = "trainer_calendar_events"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String, nullable=False, default="workout")
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    title: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="scheduled")
    source: Mapped[str] = mapped_column(String, nullable=False, default="user_created")
    user_modified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    linked_program_id: Mapped[str | None] = mapped_column(String, nullable=True)
    linked_program_version: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    __table_args__ = (Index("idx_trainer_calendar_events_user_start", "user_id", "start_at"),)


class PlannedSessionRecord(Base):
    """Planned-session intent attached to a calendar event (one-to-many in storage)."""

    __tablename__ = "trainer_planned_sessions"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    calendar_event_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("trainer_calendar_events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    intent_json: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


class WorkoutSession(Base):
    """One execution of a workout, from start to completion."""

    __tablename__ = "trainer_workout_sessions"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="in_progress")
    coach_mode: Mapped[str] = mapped_column(String, nullable=False, default="quiet")
    calendar_event_id: Mapped[str | None] = mapped_column(String, nullable=True)
    metadata_json: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    summary_json: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    session_rpe: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    __table_args__ = (Index("idx_trainer_workout_sessions_user_status", "user_id", "status"),)


class WorkoutInstanceRecord(Base):
    """Full snapshot of a workout instance; a new row per mutation."""

    __tablename__ = "trainer_workout_instances"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    session_id: Mapped[str] = mapped_column(String, ForeignKey("trainer_workout_sessions.id"), nullable=False, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    instance_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)

    __table_args__ = (UniqueConstraint("session_id", "version", name="uq_trainer_workout_instances_session_version"),)


class WorkoutEvent(Base):
    """Ordered per-session event log (sets, intervals, actions, safety flags)."""

    __tablename__ = "trainer_workout_events"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    session_id: Mapped[str] = mapped_column(String, ForeignKey("trainer_workout_sessions.id"), nullable=False, index=True)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    event_type: Mapped[str] = mapped_column(String, nullable=False)
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)

    __table_args__ = (UniqueConstraint("session_id", "sequence", name="uq_trainer_workout_events_session_sequence"),)


class TrackedExercise(Base):
    """Completion state of one exercise within a session.

    payload_json holds the versioned exercise payload; status and the metric
    columns are derived from it by the completion reducer.
    """

    __tablename__ = "trainer_workout_exercises"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    session_id: Mapped[str] = mapped_column(String, ForeignKey("trainer_workout_sessions.id"), nullable=False, index=True)
    exercise_order: Mapped[int] = mapped_column(Integer, nullable=False)
    exercise_name: Mapped[str] = mapped_column(String, nullable=False)
    exercise_type: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    payload_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    initial_payload_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    payload_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    exercise_rpe: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_reps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    volume: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    duration_sec: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    __table_args__ = (Index("idx_trainer_workout_exercises_session_order", "session_id", "exercise_order"),)


class ExerciseCommandLog(Base):
    """Command applied to a tracked exercise, kept for idempotency and replay."""

    __tablename__ = "trainer_exercise_commands"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    command_id: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    session_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    exercise_id: Mapped[str] = mapped_column(String, ForeignKey("trainer_workout_exercises.id"), nullable=False, index=True)
    command_type: Mapped[str] = mapped_column(String, nullable=False)
    command_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    expected_version: Mapped[int] = mapped_column(Integer, nullable=False)
    resulting_version: Mapped[int] = mapped_column(Integer, nullable=False)
    resulting_status: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
