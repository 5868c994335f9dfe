"""
Opano — Language-model access.

One entry point, `complete()`, routed to the provider named by LLM_PROVIDER
(gemini by default; anthropic, openai and cohere also supported). SDKs are
imported lazily so only the configured provider needs to be installed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

_CallFn = Callable[[str, str, str, str, int], Awaitable[str]]


class LLMNotConfigured(RuntimeError):
    """No API key is configured, so no provider can be called."""


# ---------------------------------------------------------------------------
# Provider calls: (api_key, model, system, prompt, max_tokens) -> text
# ---------------------------------------------------------------------------


async def _call_gemini(api_key: str, model: str, system: str, prompt: str, max_tokens: int) -> str:
    import google.generativeai as genai

    genai.configure(api_key=api_key)
    gm = genai.GenerativeModel(model_name=model, system_instruction=system)
    response = await gm.generate_content_async(
        prompt,
        generation_config=genai.types.GenerationConfig(max_output_tokens=max_tokens),
    )
    return response.text


async def _call_anthropic(api_key: str, model: str, system: str, prompt: str, max_tokens: int) -> str:
    import anthropic

    client = anthropic.AsyncAnthropic(api_key=api_key)
    response = await client.messages.create(
        model=model,
        max_tokens=max_tokens,
        system=system,
        messages=[{"role": "user", "content": prompt}],
    )
    return response.content[0].text


async def _call_openai(api_key: str, model: str, system: str, prompt: str, max_tokens: int) -> str:
    from openai import AsyncOpenAI

    client = AsyncOpenAI(api_key=api_key)
    response = await client.chat.completions.create(
        model=model,
        max_tokens=max_tokens,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ],
    )
    return response.choices[0].message.content or ""


async def _call_cohere(api_key: str, model: str, system: str, prompt: str, max_tokens: int) -> str:
    import cohere

    client = cohere.AsyncClientV2(api_key=api_key)
    response = await client.chat(
        model=model,
        max_tokens=max_tokens,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ],
    )
    return response.message.content[0].text


_PROVIDERS: dict[str, tuple[_CallFn, str]] = {
    "gemini":    (_call_gemini,    "gemini-2.0-flash"),
    "anthropic": (_call_anthropic, "claude-haiku-4-5-20251001"),
    "openai":    (_call_openai,    "gpt-4o-mini"),
    "cohere":    (_call_cohere,    "command-a-03-2025"),
}


@dataclass(frozen=True)
class _Route:
    call: _CallFn
    provider: str
    model: str
    api_key: str


def _resolve_route() -> _Route:
    from opano.config import settings

    provider = settings.LLM_PROVIDER.lower()
    if provider not in _PROVIDERS:
        raise ValueError(
            f"Unknown LLM_PROVIDER={provider!r}. Supported: {', '.join(_PROVIDERS)}"
        )
    if not settings.LLM_API_KEY:
        raise LLMNotConfigured("LLM_API_KEY is not set")

    call, default_model = _PROVIDERS[provider]
    route = _Route(call, provider, settings.LLM_MODEL or default_model, settings.LLM_API_KEY)
    logger.info("LLM provider: %s, model: %s", route.provider, route.model)
    return route


# Resolved on first use
_route: _Route | None = None


async def complete(system: str, prompt: str, max_tokens: int = 512) -> str:
    """Send a prompt to the configured provider and return its text.

    Raises LLMNotConfigured without a key, and lets provider errors
    propagate; callers decide how to degrade.
    """
    global _route

    if _route is None:
        _route = _resolve_route()
    return await _route.call(_route.api_key, _route.model, system, prompt, max_tokens)
