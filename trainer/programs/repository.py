"""Persistence for versioned program documents.

Rows are append-only: a new version is a new row. Only the status column
moves after insert (draft -> active -> paused/archived).
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from trainer.db.models import Program, ProgramEvent


def get_active_program_row(session: Session, *, user_id: str) -> Program | None:
    query = (
        select(Program)
        .where(Program.user_id == user_id, Program.status == "active")
        .order_by(Program.version.desc())
        .limit(1)
    )
    return session.execute(query).scalar_one_or_none()


def get_program_row(session: Session, *, program_id: str) -> Program | None:
    return session.get(Program, program_id)


def get_latest_version(session: Session, *, user_id: str) -> int:
    """Return the highest program version for a user, or 0 when none exists."""
    query = select(func.max(Program.version)).where(Program.user_id == user_id)
    return session.execute(query).scalar() or 0


def insert_program_version(
    session: Session,
    *,
    user_id: str,
    document: str,
    status: str,
) -> Program:
    """Insert a new program row with version = latest + 1.

    Args:
        session: Database session
        user_id: Owner of the program
        document: Program markdown
        status: Initial status of the new row

    Returns:
        The flushed Program row
    """
    program = Program(
        user_id=user_id,
        version=get_latest_version(session, user_id=user_id) + 1,
        document=document,
        status=status,
    )
    session.add(program)
    session.flush()
    return program


def list_program_rows(session: Session, *, user_id: str, limit: int | None = None) -> list[Program]:
    query = select(Program).where(Program.user_id == user_id).order_by(Program.version.desc())
    if limit is not None:
        query = query.limit(limit)
    return list(session.execute(query).scalars().all())


def set_status_for_user(session: Session, *, user_id: str, from_status: str, to_status: str) -> int:
    """Move every program of a user in from_status to to_status. Returns the row count."""
    rows = session.execute(
        select(Program).where(Program.user_id == user_id, Program.status == from_status)
    ).scalars().all()
    for row in rows:
        row.status = to_status
    session.flush()
    return len(rows)


def record_program_event(
    session: Session,
    *,
    program: Program,
    event_type: str,
    data: dict | None = None,
) -> ProgramEvent:
    event = ProgramEvent(
        program_id=program.id,
        user_id=program.user_id,
        event_type=event_type,
        data=data or {},
    )
    session.add(event)
    session.flush()
    return event


def list_active_user_ids(session: Session) -> list[str]:
    query = select(Program.user_id).where(Program.status == "active").distinct().order_by(Program.user_id)
    return list(session.execute(query).scalars().all())
