"""Program store operations.

Public functions open their own session and return ProgramDocument values,
so callers never hold ORM rows. Store errors propagate unchanged: batch
callers rely on that to tell "no program" (None) from a failing store.
"""

from __future__ import annotations

from loguru import logger

from trainer.core.errors import InvalidActionError, NotFoundError
from trainer.db.session import get_session
from trainer.programs.repository import (
    get_active_program_row,
    get_program_row,
    insert_program_version,
    list_active_user_ids,
    list_program_rows,
    record_program_event,
    set_status_for_user,
)
from trainer.programs.types import ProgramDocument


def get_active_program(user_id: str) -> ProgramDocument | None:
    """Return the user's active program, or None when there is none."""
    with get_session() as session:
        row = get_active_program_row(session, user_id=user_id)
        return ProgramDocument.model_validate(row) if row else None


def get_program(program_id: str) -> ProgramDocument | None:
    with get_session() as session:
        row = get_program_row(session, program_id=program_id)
        return ProgramDocument.model_validate(row) if row else None


def list_program_versions(user_id: str, limit: int = 20) -> list[ProgramDocument]:
    """Return program versions newest first."""
    with get_session() as session:
        rows = list_program_rows(session, user_id=user_id, limit=max(1, min(limit, 100)))
        return [ProgramDocument.model_validate(row) for row in rows]


def create_program(user_id: str, document: str, status: str = "draft") -> ProgramDocument:
    """Create a new program version for a user.

    Creating an active program pauses whichever program was active before,
    keeping a single active program per user.
    """
    if not document or not document.strip():
        raise InvalidActionError("Program document must not be empty")
    if status not in ("draft", "active", "paused"):
        raise InvalidActionError(f"Invalid program status: {status}")

    with get_session() as session:
        if status == "active":
            set_status_for_user(session, user_id=user_id, from_status="active", to_status="paused")
        row = insert_program_version(session, user_id=user_id, document=document, status=status)
        record_program_event(session, program=row, event_type="created", data={"version": row.version, "status": status})
        logger.info(f"[program] Created program version {row.version} for user {user_id} (status={status})")
        return ProgramDocument.model_validate(row)


def edit_program(program_id: str, document: str) -> ProgramDocument:
    """Write an edited document as a new version.

    The edited version inherits the status of the version it replaces. A
    replaced active or paused version is archived; drafts stay drafts.

    Raises:
        NotFoundError: If the program does not exist
        InvalidActionError: If the document is empty or the version is archived
    """
    if not document or not document.strip():
        raise InvalidActionError("Program document must not be empty")

    with get_session() as session:
        current = get_program_row(session, program_id=program_id)
        if current is None:
            raise NotFoundError(f"Program not found: {program_id}")
        if current.status == "archived":
            raise InvalidActionError("Archived program versions cannot be edited")

        next_status = current.status
        if current.status in ("active", "paused"):
            current.status = "archived"
            session.flush()
        row = insert_program_version(session, user_id=current.user_id, document=document, status=next_status)
        record_program_event(
            session,
            program=row,
            event_type="edited",
            data={"version": row.version, "previous_version": current.version},
        )
        logger.info(f"[program] Edited program {program_id} -> version {row.version} for user {row.user_id}")
        return ProgramDocument.model_validate(row)


def activate_program(program_id: str) -> ProgramDocument:
    """Make a program version the user's single active program."""
    with get_session() as session:
        row = get_program_row(session, program_id=program_id)
        if row is None:
            raise NotFoundError(f"Program not found: {program_id}")
        if row.status == "archived":
            raise InvalidActionError("Archived program versions cannot be activated")
        if row.status != "active":
            set_status_for_user(session, user_id=row.user_id, from_status="active", to_status="paused")
            row.status = "active"
            session.flush()
            record_program_event(session, program=row, event_type="activated", data={"version": row.version})
            logger.info(f"[program] Activated program version {row.version} for user {row.user_id}")
        return ProgramDocument.model_validate(row)


def pause_program(program_id: str) -> ProgramDocument:
    with get_session() as session:
        row = get_program_row(session, program_id=program_id)
        if row is None:
            raise NotFoundError(f"Program not found: {program_id}")
        if row.status != "active":
            raise InvalidActionError(f"Only an active program can be paused (status={row.status})")
        row.status = "paused"
        session.flush()
        record_program_event(session, program=row, event_type="paused", data={"version": row.version})
        logger.info(f"[program] Paused program version {row.version} for user {row.user_id}")
        return ProgramDocument.model_validate(row)


def save_new_program_version(user_id: str, document: str, event_type: str = "weekly_review") -> ProgramDocument:
    """Supersede the active program with a new active version.

    Raises:
        NotFoundError: If the user has no active program
    """
    with get_session() as session:
        current = get_active_program_row(session, user_id=user_id)
        if current is None:
            raise NotFoundError(f"No active program found for user {user_id}")

        current.status = "archived"
        session.flush()
        row = insert_program_version(session, user_id=user_id, document=document, status="active")
        record_program_event(
            session,
            program=row,
            event_type=event_type,
            data={"version": row.version, "previous_version": current.version, "document_length": len(document)},
        )
        logger.info(f"[program] Saved program version {row.version} for user {user_id} ({event_type})")
        return ProgramDocument.model_validate(row)


def get_active_users() -> list[str]:
    """Return the distinct users with an active program, the weekly batch candidate set."""
    with get_session() as session:
        return list_active_user_ids(session)
