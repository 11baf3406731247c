"""Program rewrite prompt and output validation."""

from __future__ import annotations

import json
import re
from typing import Any

from loguru import logger

from trainer.config.settings import settings
from trainer.core.errors import GenerationFailedError
from trainer.programs.types import ProgramDocument
from trainer.services.llm.client import TextGenerationClient, get_llm_client
from trainer.services.llm.parsing import strip_code_fences
from trainer.weights.service import format_profile_for_prompt
from trainer.weights.types import WeightsProfileRecord

REWRITE_SYSTEM_PROMPT = "You are an expert strength & conditioning coach. Output only markdown."

_HEADING_RE = re.compile(r"^#{1,6}\s", re.MULTILINE)


def build_rewrite_prompt(
    current_program: ProgramDocument,
    week_summaries: list[dict[str, Any]],
    weekly_stats: dict[str, Any],
    weights_profile: WeightsProfileRecord | None,
) -> str:
    weights_text = format_profile_for_prompt(weights_profile)
    weights_block = f"CURRENT WEIGHTS PROFILE:\n{weights_text}\n" if weights_text else ""

    return f"""You are an expert strength & conditioning coach performing a weekly program review.

CURRENT PROGRAM:
{current_program.document}

THIS WEEK'S SESSION SUMMARIES:
{json.dumps(week_summaries, indent=2, default=str)}

WEEKLY STATS:
{json.dumps(weekly_stats, indent=2, default=str)}

{weights_block}
INSTRUCTIONS:
Review the week's training data and update the program. You MUST:
1. Preserve the exact same markdown structure and section headings
2. Keep core goals and safety guardrails unless data strongly suggests changes
3. Update the "# Coach Notes" section with observations from this week
4. Update "# Milestones": check off any achieved, add new ones if appropriate
5. Evaluate phase transition: should the client stay in the current phase, advance, or deload?
   - If advancing: update "# Current Phase" to the next phase from "# Available Phases"
   - If deloading: update "# Current Phase" to deload parameters
   - If staying: increment the week number in "# Current Phase"
6. Adjust the weekly template if the data suggests changes (e.g., client consistently skipping a day)
7. Update rep ranges, intensity, or volume in "# Current Phase" if warranted

Return ONLY the complete updated program markdown. No code fences, no preamble."""


async def rewrite_program(
    current_program: ProgramDocument,
    week_summaries: list[dict[str, Any]],
    weekly_stats: dict[str, Any],
    weights_profile: WeightsProfileRecord | None = None,
    client: TextGenerationClient | None = None,
) -> str:
    """Ask the model for the next program version.

    Returns:
        Updated program markdown with any code fence removed

    Raises:
        GenerationFailedError: If the output is empty or has no heading
    """
    client = client or get_llm_client()
    prompt = build_rewrite_prompt(current_program, week_summaries, weekly_stats, weights_profile)
    text = await client.generate_text(prompt, system_prompt=REWRITE_SYSTEM_PROMPT, model_name=settings.program_model)
    markdown = strip_code_fences(text)

    if not markdown or not _HEADING_RE.search(markdown):
        logger.warning(
            f"[weekly-review] Rejected rewrite output for user {current_program.user_id} (chars={len(markdown)})"
        )
        raise GenerationFailedError("Failed to generate updated program markdown")
    return markdown
