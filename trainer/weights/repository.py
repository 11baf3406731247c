from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from trainer.db.models import WeightsProfile


def get_latest_profile_row(session: Session, *, user_id: str) -> WeightsProfile | None:
    query = (
        select(WeightsProfile)
        .where(WeightsProfile.user_id == user_id)
        .order_by(WeightsProfile.version.desc())
        .limit(1)
    )
    return session.execute(query).scalar_one_or_none()


def list_profile_rows(session: Session, *, user_id: str, limit: int) -> list[WeightsProfile]:
    query = (
        select(WeightsProfile)
        .where(WeightsProfile.user_id == user_id)
        .order_by(WeightsProfile.version.desc())
        .limit(limit)
    )
    return list(session.execute(query).scalars().all())


def insert_profile(
    session: Session,
    *,
    user_id: str,
    version: int,
    entries: list[dict],
    trigger_type: str,
    trigger_session_id: str | None = None,
) -> WeightsProfile:
    profile = WeightsProfile(
        user_id=user_id,
        version=version,
        entries=entries,
        trigger_type=trigger_type,
        trigger_session_id=trigger_session_id,
    )
    session.add(profile)
    session.flush()
    return profile
