"""Text-generation client used by the rewriter, swap and profile inference.

The client only returns text. Callers own parsing and validation, because
model output is never trusted to match a schema.
"""

from __future__ import annotations

from typing import Any

from loguru import logger
from pydantic_ai import Agent

from trainer.config.settings import settings
from trainer.services.llm.model import get_model
from trainer.services.llm.parsing import extract_json


class TextGenerationClient:
    """Runs one-shot prompts through a pydantic-ai Agent with plain-text output."""

    def __init__(self, provider: str | None = None, model_name: str | None = None):
        self.provider = provider or settings.llm_provider
        self.model_name = model_name or settings.primary_model

    async def generate_text(self, prompt: str, *, system_prompt: str, model_name: str | None = None) -> str:
        """Run a prompt and return the raw text output ("" when the model returns nothing).

        Args:
            prompt: User prompt
            system_prompt: System prompt for the agent
            model_name: Optional override of the configured model

        Returns:
            Model output text
        """
        name = model_name or self.model_name
        agent = Agent(
            model=get_model(self.provider, name),
            system_prompt=system_prompt,
            output_type=str,
        )
        logger.debug(f"LLM request: model={name}, prompt_chars={len(prompt)}")
        result = await agent.run(prompt)
        output = result.output or ""
        logger.debug(f"LLM response: model={name}, output_chars={len(output)}")
        return output

    async def generate_json(
        self,
        prompt: str,
        *,
        system_prompt: str,
        model_name: str | None = None,
    ) -> dict[str, Any] | None:
        """Run a prompt and extract a JSON object from the output, or None."""
        text = await self.generate_text(prompt, system_prompt=system_prompt, model_name=model_name)
        parsed = extract_json(text)
        if parsed is None:
            logger.warning(f"LLM output did not contain a JSON object (chars={len(text)})")
        return parsed


_client: TextGenerationClient | None = None


def get_llm_client() -> TextGenerationClient:
    """Return the process-wide text-generation client."""
    global _client
    if _client is None:
        _client = TextGenerationClient()
    return _client
