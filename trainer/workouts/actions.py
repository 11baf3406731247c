"""Action engine for in-session workout changes.

Each action reads the latest instance version, computes a full replacement
and writes it as a new version. The read/compute/write cycle is not locked:
two concurrent actions on one session race and the last write wins. Sessions
are single-user and single-device, so that is accepted rather than guarded.
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from trainer.core.errors import InvalidActionError, NotFoundError
from trainer.db.session import get_session
from trainer.services.llm.client import TextGenerationClient
from trainer.workouts.generation import generate_swap_exercise
from trainer.workouts.prescription import adjust_exercise_intensity, estimate_workout_duration, scale_workout_instance
from trainer.workouts.repository import get_latest_instance_row, get_session_row, insert_instance, log_event
from trainer.workouts.types import Exercise, WorkoutInstance

PAIN_SCALE_FACTOR = 0.8

ACTION_TYPES = ("time_scale", "swap_exercise", "adjust_prescription", "flag_pain", "set_coach_mode")


def _validate_payload(action_type: str, payload: dict[str, Any]) -> None:
    if action_type not in ACTION_TYPES:
        raise InvalidActionError(f"Unknown action type: {action_type}")
    if action_type == "time_scale":
        target = payload.get("target_duration_min")
        if target is None:
            raise InvalidActionError("Time scale requires target_duration_min")
        if isinstance(target, bool) or not isinstance(target, (int, float)) or target <= 0:
            raise InvalidActionError(f"target_duration_min must be a positive number, got {target!r}")
    if action_type == "adjust_prescription" and payload.get("direction") not in ("harder", "easier"):
        raise InvalidActionError("adjust_prescription requires direction 'harder' or 'easier'")
    if action_type == "set_coach_mode" and payload.get("mode") not in ("quiet", "ringer"):
        raise InvalidActionError("set_coach_mode requires mode 'quiet' or 'ringer'")


def resolve_exercise_index(instance: WorkoutInstance, payload: dict[str, Any]) -> int:
    """Find the target exercise by explicit index, else by first name match.

    Raises:
        InvalidActionError: If neither index nor exercise_name identifies an exercise
    """
    index = payload.get("index")
    if index is not None:
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(instance.exercises):
            raise InvalidActionError(f"Exercise index out of range: {index}")
        return index

    name = payload.get("exercise_name")
    if name:
        wanted = str(name).strip().lower()
        for position, exercise in enumerate(instance.exercises):
            if exercise.exercise_name.strip().lower() == wanted:
                return position
        raise InvalidActionError(f"No exercise named {name!r} in the current workout")

    raise InvalidActionError("Action requires an exercise index or exercise_name")


def _replace_exercise(instance: WorkoutInstance, index: int, exercise: Exercise) -> WorkoutInstance:
    exercises = list(instance.exercises)
    exercises[index] = exercise
    return instance.model_copy(update={"exercises": exercises})


def _time_scale(instance: WorkoutInstance, payload: dict[str, Any]) -> WorkoutInstance:
    current = instance.estimated_duration_min or estimate_workout_duration(instance)
    factor = payload["target_duration_min"] / current
    scaled = scale_workout_instance(instance, factor)
    if scaled.estimated_duration_min is None:
        scaled = scaled.model_copy(update={"estimated_duration_min": estimate_workout_duration(scaled)})
    return scaled


async def apply_action(
    session_id: str,
    user_id: str,
    action_type: str,
    payload: dict[str, Any] | None,
    client: TextGenerationClient | None = None,
) -> dict[str, Any]:
    """Apply an action to the latest instance and persist the result as a new version.

    Args:
        session_id: Workout session id
        user_id: Owner of the session
        action_type: time_scale, swap_exercise, adjust_prescription, flag_pain or set_coach_mode
        payload: Action-specific parameters
        client: Text-generation client used by swap_exercise

    Returns:
        {"instance_updated": bool, "instance": dict, "instance_version": int}

    Raises:
        InvalidActionError: If the action or its payload is invalid, or the session has ended
        NotFoundError: If the session or its instance does not exist
        GenerationFailedError: If a swap cannot be generated
    """
    payload = payload or {}
    _validate_payload(action_type, payload)

    with get_session() as session:
        row = get_session_row(session, session_id=session_id)
        if row is None or row.user_id != user_id:
            raise NotFoundError(f"Session not found: {session_id}")
        if row.status != "in_progress":
            raise InvalidActionError(f"Session {session_id} is {row.status}; its workout can no longer change")
        record = get_latest_instance_row(session, session_id=session_id)
        if record is None:
            raise NotFoundError(f"No workout instance for session {session_id}")
        instance = WorkoutInstance.model_validate(record.instance_json)
        version = record.version
        coach_mode = row.coach_mode

    updated: WorkoutInstance | None = None
    event_data: dict[str, Any] = {"action_type": action_type, "payload": payload, "base_version": version}

    if action_type == "time_scale":
        updated = _time_scale(instance, payload)
    elif action_type == "swap_exercise":
        index = resolve_exercise_index(instance, payload)
        replacement = await generate_swap_exercise(
            user_id,
            instance.exercises[index],
            constraints={"equipment": payload.get("equipment"), "pain": payload.get("pain")},
            data_sources=payload.get("data_sources"),
            client=client,
        )
        updated = _replace_exercise(instance, index, replacement)
        event_data["index"] = index
    elif action_type == "adjust_prescription":
        index = resolve_exercise_index(instance, payload)
        adjusted = adjust_exercise_intensity(instance.exercises[index], payload["direction"])
        updated = _replace_exercise(instance, index, adjusted)
        event_data["index"] = index
    elif action_type == "flag_pain":
        updated = scale_workout_instance(instance, PAIN_SCALE_FACTOR)
    elif action_type == "set_coach_mode":
        coach_mode = payload["mode"]

    with get_session() as session:
        log_event(session, session_id=session_id, event_type="action", data=event_data)
        if action_type == "flag_pain":
            log_event(
                session,
                session_id=session_id,
                event_type="safety_flag",
                data={"pain": payload.get("pain") or payload.get("notes") or "pain reported"},
            )
        if action_type == "set_coach_mode":
            row = get_session_row(session, session_id=session_id)
            row.coach_mode = coach_mode
            session.flush()
            logger.info(f"[workout] Coach mode for session {session_id} set to {coach_mode}")
            return {"instance_updated": False, "instance": instance.model_dump(), "instance_version": version}

        record = insert_instance(session, session_id=session_id, instance_json=updated.model_dump())
        logger.info(f"[workout] Applied {action_type} to session {session_id} -> instance v{record.version}")
        return {"instance_updated": True, "instance": updated.model_dump(), "instance_version": record.version}
