"""Weights profile store and inference.

Profiles are append-only: every change is a new version and "latest" is
the highest version for the user.
"""

from __future__ import annotations

import json
from typing import Any

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from trainer.core.data_sources import current_location, data_source_map, equipment_names
from trainer.core.errors import GenerationFailedError
from trainer.db.session import get_session
from trainer.services.llm.client import TextGenerationClient, get_llm_client
from trainer.weights.repository import get_latest_profile_row, insert_profile, list_profile_rows
from trainer.weights.types import TriggerType, WeightsEntry, WeightsProfileRecord

DEFAULT_HISTORY_LIMIT = 10
MAX_HISTORY_LIMIT = 100

_entries_adapter = TypeAdapter(list[WeightsEntry])


def sanitize_limit(value: Any, fallback: int = DEFAULT_HISTORY_LIMIT, maximum: int = MAX_HISTORY_LIMIT) -> int:
    """Coerce a caller-supplied limit into 1..maximum, using fallback for junk."""
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return fallback
    if parsed < 1:
        return fallback
    return min(parsed, maximum)


def get_latest_profile(user_id: str) -> WeightsProfileRecord | None:
    with get_session() as session:
        row = get_latest_profile_row(session, user_id=user_id)
        return WeightsProfileRecord.model_validate(row) if row else None


def get_profile_history(user_id: str, limit: Any = DEFAULT_HISTORY_LIMIT) -> list[WeightsProfileRecord]:
    """Return profile versions newest first."""
    with get_session() as session:
        rows = list_profile_rows(session, user_id=user_id, limit=sanitize_limit(limit))
        return [WeightsProfileRecord.model_validate(row) for row in rows]


def get_next_version(user_id: str) -> int:
    """Return latest version + 1, or 1 when the user has no profile."""
    with get_session() as session:
        row = get_latest_profile_row(session, user_id=user_id)
        return (row.version if row else 0) + 1


def create_profile(
    user_id: str,
    entries: list[WeightsEntry],
    trigger_type: TriggerType,
    trigger_session_id: str | None = None,
) -> WeightsProfileRecord:
    """Append a new profile version for a user."""
    with get_session() as session:
        latest = get_latest_profile_row(session, user_id=user_id)
        version = (latest.version if latest else 0) + 1
        row = insert_profile(
            session,
            user_id=user_id,
            version=version,
            entries=[entry.model_dump() for entry in entries],
            trigger_type=trigger_type,
            trigger_session_id=trigger_session_id,
        )
        logger.info(
            f"[weights-profile] Saved version {version} for user {user_id} "
            f"({len(entries)} entries, trigger={trigger_type})"
        )
        return WeightsProfileRecord.model_validate(row)


def _format_number(value: float | None) -> str:
    if value is None:
        return "unknown"
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def format_profile_for_prompt(profile: WeightsProfileRecord | dict[str, Any] | None) -> str | None:
    """Render a profile as one bullet per entry for prompting.

    Accepts a stored record or a plain dict with an "entries" list. Returns
    None, never "", when the profile is missing or has no usable entries.
    """
    if isinstance(profile, dict):
        entries = _parse_entries(profile)
    else:
        entries = profile.entries if profile is not None else None
    if not entries:
        return None
    lines = []
    for entry in entries:
        prefix = f"{entry.equipment} " if entry.equipment else ""
        load = " ".join(part for part in (_format_number(entry.load), entry.load_unit) if part)
        lines.append(f"- {prefix}{entry.movement}: {load} (confidence: {entry.confidence or 'unknown'})")
    return "\n".join(lines)


def _parse_entries(parsed: dict[str, Any] | None) -> list[WeightsEntry] | None:
    if not parsed or not isinstance(parsed.get("entries"), list):
        return None
    try:
        return _entries_adapter.validate_python(parsed["entries"])
    except ValidationError as e:
        logger.warning(f"[weights-profile] Profile entries failed validation: {e.error_count()} errors")
        return None


def _initial_prompt(data_sources: list[dict[str, Any]] | None) -> str:
    data = data_source_map(data_sources)
    profile = data.get("user_profile") or {}
    user_settings = data.get("user_settings") or {}
    weight_unit = user_settings.get("weight_unit") or "lbs"
    equipment = equipment_names(current_location(data.get("all_locations")))

    return f"""Based on this user's profile, infer reasonable starting weights for common exercises they might do.

User Profile:
- Sex: {profile.get("sex") or "unknown"}
- Height: {profile.get("height_cm") or "unknown"} cm
- Weight: {profile.get("weight_kg") or "unknown"} kg
- Available equipment: {", ".join(equipment) if equipment else "bodyweight only"}
- Preferred unit: {weight_unit}

Return JSON only with this structure:
{{
  "entries": [
    {{"equipment": "dumbbell", "movement": "bench press", "load": 20, "load_unit": "{weight_unit}", "confidence": "low"}}
  ]
}}

Generate 10-15 entries covering major movement patterns (push, pull, squat, hinge, carry, core) using the available equipment.
Use conservative starting weights. Confidence should be "low" for all initial inferences."""


async def create_initial_profile(
    user_id: str,
    data_sources: list[dict[str, Any]] | None = None,
    client: TextGenerationClient | None = None,
) -> WeightsProfileRecord:
    """Infer a first weights profile from the user's body stats and equipment.

    Raises:
        GenerationFailedError: If the model output has no parseable entries
    """
    client = client or get_llm_client()
    parsed = await client.generate_json(
        _initial_prompt(data_sources),
        system_prompt="You are a strength coach. Return JSON only.",
    )
    entries = _parse_entries(parsed)
    if entries is None:
        raise GenerationFailedError("Failed to parse initial weights profile from model output")
    return create_profile(user_id, entries, "initial_inference")


async def update_after_session(
    user_id: str,
    session_id: str,
    workout_instance: dict[str, Any] | None,
    session_summary: dict[str, Any] | None,
    client: TextGenerationClient | None = None,
) -> WeightsProfileRecord | None:
    """Ask the model to fold a completed session into the profile.

    Returns None instead of raising when the model output is unusable, so a
    bad generation never blocks session completion.
    """
    client = client or get_llm_client()
    latest = get_latest_profile(user_id)
    current_entries = [entry.model_dump() for entry in latest.entries] if latest else []

    prompt = f"""Review this completed workout session and update the user's weights profile.

Current Weights Profile:
{json.dumps(current_entries, indent=2)}

Workout That Was Generated:
{json.dumps(workout_instance, indent=2, default=str)}

Session Summary:
{json.dumps(session_summary, indent=2, default=str)}

Based on what was prescribed and how the session went:
1. Update loads for exercises that were completed (raise confidence from "low" to "moderate" or "moderate" to "high")
2. If the summary indicates the workout was easy (low RPE), slightly increase loads
3. If pain was flagged on an exercise, reduce that load and lower confidence
4. Add new entries for any exercises not already in the profile
5. Keep existing entries unchanged if the exercise wasn't in this session

Return JSON only: {{"entries": [{{"equipment": "...", "movement": "...", "load": 0, "load_unit": "...", "confidence": "..."}}]}}
Return the COMPLETE updated profile (all entries, not just changed ones)."""

    parsed = await client.generate_json(
        prompt,
        system_prompt="You are a strength coach tracking client progress. Return JSON only.",
    )
    entries = _parse_entries(parsed)
    if entries is None:
        logger.error(f"[weights-profile] Failed to parse updated profile for user {user_id}")
        return None
    return create_profile(user_id, entries, "session_complete", trigger_session_id=session_id)
