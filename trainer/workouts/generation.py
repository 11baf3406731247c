"""Model-backed workout generation.

All model output is parsed with extract_json and normalized like any other
input; nothing the model returns is stored without passing through
normalize_exercise or normalize_workout_instance.
"""

from __future__ import annotations

import json
from typing import Any

from loguru import logger
from pydantic import ValidationError

from trainer.core.errors import GenerationFailedError
from trainer.services.llm.client import TextGenerationClient, get_llm_client
from trainer.workouts.normalize import build_user_context_summary, normalize_exercise, normalize_workout_instance
from trainer.workouts.types import Exercise, WorkoutInstance

EXERCISE_JSON_SHAPE = (
    '{"exercise_name": "string", "exercise_type": "reps|hold|duration|intervals", '
    '"muscles_utilized": [{"muscle": "string", "share": number}], '
    '"goals_addressed": [{"goal": "string", "share": number}], "reasoning": "string", '
    '"exercise_description": "string", "equipment": ["string"], "sets": number, "reps": [number], '
    '"load_each": [number], "load_unit": "kg|lbs", "hold_duration_sec": [number], "duration_min": number, '
    '"distance_km": number, "distance_unit": "km|mi", "rounds": number, "work_sec": number, "rest_seconds": number}'
)


def build_workout_prompt(data_sources: list[dict[str, Any]] | None, constraints: dict[str, Any] | None) -> str:
    constraints = constraints or {}
    readiness = constraints.get("readiness") or {}
    equipment = constraints.get("equipment") or []
    planned = constraints.get("planned_session")

    return f"""You are an AI personal trainer. Create a safe, effective workout for today using the 4-type exercise system.

User context:
{build_user_context_summary(data_sources) or "unknown"}

Session constraints:
- intent: {constraints.get("intent") or "planned"}
- time_available_min: {constraints.get("time_available_min") or "unknown"}
- energy: {readiness.get("energy") or "unknown"}
- soreness: {readiness.get("soreness") or "unknown"}
- pain: {readiness.get("pain") or "none"}
- equipment_override: {", ".join(equipment) if equipment else "none"}
- quick_request: {constraints.get("request_text") or "none"}
- planned_session_intent: {json.dumps(planned) if planned else "none"}

Return ONLY valid JSON with this shape:
{{"title": "string", "estimated_duration_min": number, "focus": ["string"], "exercises": [{EXERCISE_JSON_SHAPE}]}}
Ensure exercises align with equipment, constraints, and safety. Use conservative prescriptions if data is unknown."""


async def generate_workout_instance(
    user_id: str,
    constraints: dict[str, Any] | None = None,
    data_sources: list[dict[str, Any]] | None = None,
    client: TextGenerationClient | None = None,
) -> WorkoutInstance:
    """Generate and normalize a workout instance.

    Raises:
        GenerationFailedError: If the model output has no exercises list or fails validation
    """
    client = client or get_llm_client()
    parsed = await client.generate_json(
        build_workout_prompt(data_sources, constraints),
        system_prompt="You are a concise JSON-only generator.",
    )
    if not parsed or not isinstance(parsed.get("exercises"), list):
        raise GenerationFailedError("Failed to parse workout instance from model response")
    try:
        instance = normalize_workout_instance(parsed, constraints)
    except ValidationError as e:
        logger.warning(f"[workout] Generated instance for user {user_id} failed validation: {e.error_count()} errors")
        raise GenerationFailedError("Model returned an invalid workout instance") from e
    logger.info(f"[workout] Generated instance for user {user_id} with {len(instance.exercises)} exercises")
    return instance


async def generate_swap_exercise(
    user_id: str,
    current: Exercise,
    constraints: dict[str, Any] | None = None,
    data_sources: list[dict[str, Any]] | None = None,
    client: TextGenerationClient | None = None,
) -> Exercise:
    """Ask the model for a replacement of the same exercise type.

    Raises:
        GenerationFailedError: If the output is unparseable or changes the exercise type
    """
    client = client or get_llm_client()
    constraints = constraints or {}
    equipment = constraints.get("equipment") or []

    prompt = f"""Suggest a safe alternative exercise to replace: {current.exercise_name}.
Current exercise details: {current.model_dump_json()}
The replacement MUST be a "{current.exercise_type}" exercise and fill the same slot in the workout.
Constraints: equipment={", ".join(equipment) if equipment else "any"}, pain={constraints.get("pain") or "none"}.

Return ONLY JSON:
{{"exercise": {EXERCISE_JSON_SHAPE}}}

User context:
{build_user_context_summary(data_sources) or "unknown"}"""

    parsed = await client.generate_json(prompt, system_prompt="Return JSON only.")
    if not parsed or not isinstance(parsed.get("exercise"), dict):
        raise GenerationFailedError("Failed to parse swap exercise")

    try:
        replacement = normalize_exercise(parsed["exercise"])
    except ValidationError as e:
        logger.warning(f"[workout] Swap for user {user_id} failed validation: {e.error_count()} errors")
        raise GenerationFailedError("Model returned an invalid swap exercise") from e
    if replacement.exercise_type != current.exercise_type:
        raise GenerationFailedError(
            f"Swap returned a {replacement.exercise_type} exercise for a {current.exercise_type} slot"
        )
    logger.info(f"[workout] Swap for user {user_id}: {current.exercise_name} -> {replacement.exercise_name}")
    return replacement


def fallback_session_summary(
    instance: dict[str, Any] | None,
    log: dict[str, Any] | None,
    reflection: dict[str, Any] | None,
) -> dict[str, Any]:
    reflection = reflection or {}
    return {
        "title": "Workout complete",
        "completion": {
            "exercises": len((instance or {}).get("exercises") or []),
            "total_sets": (log or {}).get("sets_completed") or 0,
        },
        "overall_rpe": reflection.get("rpe"),
        "pain_notes": reflection.get("pain") or "",
        "wins": ["Nice work showing up today."],
        "next_session_focus": "Recover well and be ready for the next session.",
    }


async def generate_session_summary(
    instance: dict[str, Any] | None,
    log: dict[str, Any] | None,
    reflection: dict[str, Any] | None,
    client: TextGenerationClient | None = None,
) -> dict[str, Any]:
    """Summarize a finished session, falling back to a fixed summary if the model fails."""
    client = client or get_llm_client()
    prompt = f"""Summarize this workout session. Return JSON only.

Workout instance: {json.dumps(instance, default=str)}
Workout log: {json.dumps(log, default=str)}
Reflection: {json.dumps(reflection, default=str)}

Return JSON:
{{"title": "string", "completion": {{"exercises": number, "total_sets": number}}, "overall_rpe": number,
"pain_notes": "string", "wins": ["string"], "next_session_focus": "string"}}"""

    try:
        parsed = await client.generate_json(prompt, system_prompt="Return JSON only.")
    except Exception as e:
        logger.warning(f"Session summary generation failed, using fallback: {e}")
        parsed = None
    return parsed or fallback_session_summary(instance, log, reflection)
