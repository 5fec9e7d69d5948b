"""
Anthropic Claude API Service - single-shot completions for the advisor chat.

Provides:
- The fixed instruction prompt and scripted greeting
- Non-streaming completion over a list of user/assistant turns
- Token counting from response usage

No retries: a failed call surfaces as an UpstreamError.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import anthropic

from app.config import settings
from app.errors import UpstreamError

logger = logging.getLogger(__name__)


SCRIPTED_GREETING_QUESTION = (
    "Hi, I can recommend the right plan. Which blockchains do you need, roughly how many "
    "requests per month, do you need archive/historical data, any region preference "
    "(US/EU/APAC/global), and what's your monthly budget?"
)

DEFAULT_SYSTEM_PROMPT = """You are a helpful assistant that recommends a subscription tier for a blockchain data product.

You MUST return two parts:
1) A user-facing reply.
2) A machine-readable JSON object wrapped in <answers>...</answers> tags.

The JSON schema is:
{
  "blockchains": string[],
  "request_volume_per_month": number|null,
  "archive_needs": "none"|"partial"|"full"|null,
  "geo_preference": string|null,
  "budget_monthly_cents": number|null
}

Return null when a field cannot be inferred.
Do not include any other keys.
"""


@dataclass
class AnthropicResponse:
    """Non-streaming response from Anthropic."""
    content: str                          # Concatenated text content
    model: str
    tokens_input: int
    tokens_output: int
    tokens_total: int
    stop_reason: str                      # "end_turn" | "max_tokens" | ...


def build_system_prompt(extra: Optional[str] = None) -> str:
    """Fixed instructions, with a per-conversation prompt appended when present."""
    if extra:
        return f"{DEFAULT_SYSTEM_PROMPT}\n\n{extra}"
    return DEFAULT_SYSTEM_PROMPT


class AnthropicService:
    """Thin wrapper around ``AsyncAnthropic.messages.create``."""

    def __init__(self, api_key: Optional[str] = None):
        self.client = anthropic.AsyncAnthropic(api_key=api_key or settings.anthropic_api_key)
        self.default_model = settings.anthropic_model
        self.default_max_tokens = settings.anthropic_max_tokens

    async def chat(
        self,
        turns: List[Dict[str, str]],
        model: Optional[str] = None,
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> AnthropicResponse:
        """
        Send the conversation turns and return the joined text reply.

        Args:
            turns: [{"role": "user"|"assistant", "content": str}, ...]
            model: Model ID (defaults to settings.anthropic_model)
            system_prompt: Extra instructions appended to the fixed prompt
            max_tokens: Reply budget (defaults to settings.anthropic_max_tokens)
        """
        model = model or self.default_model
        try:
            response = await self.client.messages.create(
                model=model,
                max_tokens=max_tokens or self.default_max_tokens,
                system=build_system_prompt(system_prompt),
                messages=[{"role": t["role"], "content": t["content"]} for t in turns],
            )
        except anthropic.APIError as e:
            logger.error("Anthropic API error (model=%s): %s", model, e)
            raise UpstreamError("Failed to get a reply from the language model") from e

        content = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        ).strip()

        usage = response.usage
        tokens_input = getattr(usage, "input_tokens", 0) or 0
        tokens_output = getattr(usage, "output_tokens", 0) or 0
        logger.info(
            "Anthropic reply: model=%s tokens_in=%d tokens_out=%d stop=%s",
            response.model, tokens_input, tokens_output, response.stop_reason,
        )
        return AnthropicResponse(
            content=content,
            model=response.model,
            tokens_input=tokens_input,
            tokens_output=tokens_output,
            tokens_total=tokens_input + tokens_output,
            stop_reason=response.stop_reason or "",
        )


# Singleton
_anthropic_service: Optional[AnthropicService] = None


def get_anthropic_service() -> AnthropicService:
    global _anthropic_service
    if _anthropic_service is None:
        _anthropic_service = AnthropicService()
    return _anthropic_service
