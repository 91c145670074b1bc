"""Token usage and cost accounting for Gemini calls."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

if TYPE_CHECKING:
    from lapnotes.models.schemas import Note

# gemini-2.5-flash list prices, USD per 1K tokens
COST_PER_1K_PROMPT_TOKENS = 0.000125
COST_PER_1K_COMPLETION_TOKENS = 0.000250


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0


def compute_cost(prompt_tokens: int, completion_tokens: int) -> float:
    prompt_cost = (prompt_tokens / 1000) * COST_PER_1K_PROMPT_TOKENS
    completion_cost = (completion_tokens / 1000) * COST_PER_1K_COMPLETION_TOKENS
    return prompt_cost + completion_cost


def usage_from_response(response: Any) -> Usage | None:
    """Read token counts off a generate_content response, if it carries any."""
    metadata = getattr(response, "usage_metadata", None)
    if metadata is None:
        return None
    return Usage(
        prompt_tokens=getattr(metadata, "prompt_token_count", None) or 0,
        completion_tokens=getattr(metadata, "candidates_token_count", None) or 0,
    )


def apply_usage(note: Note, usage: Usage | None) -> None:
    """Add a call's token counts to the note's running totals.

    The note's cost is derived from these totals, so nothing else is
    written here.
    """
    if usage is None:
        return
    note.prompt_tokens += usage.prompt_tokens
    note.completion_tokens += usage.completion_tokens
