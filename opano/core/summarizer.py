"""Conversation summaries so members can catch up quickly.

Never raises: any failure comes back as a SummaryResult with an error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from opano.core.llm import LLMNotConfigured, complete

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = (
    "You summarize team chat discussions. Write a short, neutral summary of "
    "the main topics, decisions and open questions. Do not invent details."
)

# Keep the prompt bounded for long conversations
_MAX_MESSAGES = 200


@dataclass
class SummaryResult:
    summary: str | None = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.summary is not None


def build_prompt(conversation_label: str, messages: list[str]) -> str:
    discussion = "\n".join(messages[-_MAX_MESSAGES:])
    return (
        f'Summarize the following discussion from the channel "{conversation_label}".\n\n'
        f"Discussion:\n{discussion}\n\nSummary:"
    )


async def summarize_conversation(conversation_label: str, messages: list[str]) -> SummaryResult:
    if not messages:
        return SummaryResult(error="No messages to summarize")

    try:
        text = await complete(_SYSTEM_PROMPT, build_prompt(conversation_label, messages))
    except LLMNotConfigured as exc:
        logger.warning("Summary unavailable: %s", exc)
        return SummaryResult(error="Summaries are not configured")
    except Exception as exc:
        logger.error("Summarizing '%s' failed: %s", conversation_label, exc)
        return SummaryResult(error=f"Summary unavailable: {exc}")

    summary = (text or "").strip()
    if not summary:
        return SummaryResult(error="The model returned an empty summary")
    return SummaryResult(summary=summary)
