"""LLM transports used for VEX justifications.

Supports OpenAI-compatible chat completions (the default, any endpoint),
Anthropic Messages and Google Gemini. In "auto" mode the provider is chosen
from the API key prefix; unrecognised keys are sent to the configured
OpenAI-compatible endpoint.
"""

from __future__ import annotations

import json
from typing import Any

import httpx

from autobump.config import Settings
from autobump.errors import AutobumpError


class ProviderError(AutobumpError):
    """Raised when an LLM provider call fails."""


def detect_provider_from_key(api_key: str) -> str | None:
    """Guess the provider from an API key prefix, None if unrecognised."""
    if not api_key:
        return None
    if api_key.startswith("sk-ant-"):
        return "anthropic"
    if api_key.startswith("AIza"):
        return "gemini"
    if api_key.startswith("sk-"):
        return "openai"
    return None


def resolve_provider(settings: Settings) -> str | None:
    """Effective provider name, or None when no API key is configured."""
    if not settings.ai_api_key:
        return None
    if settings.ai_provider != "auto":
        return settings.ai_provider
    return detect_provider_from_key(settings.ai_api_key) or "generic"


async def _post_json(
    url: str,
    payload: dict[str, Any],
    headers: dict[str, str],
    timeout_seconds: float,
    label: str,
) -> dict:
    try:
        async with httpx.AsyncClient(timeout=timeout_seconds) as client:
            resp = await client.post(url, headers=headers, json=payload)
    except httpx.TimeoutException:
        raise ProviderError(f"{label} request timed out after {timeout_seconds}s")
    except httpx.HTTPError as e:
        raise ProviderError(f"{label} request failed: {e}")

    if resp.status_code != 200:
        raise ProviderError(f"{label} API returned {resp.status_code}: {resp.text[:500]}")
    try:
        return resp.json()
    except json.JSONDecodeError as e:
        raise ProviderError(f"{label} returned a non-JSON body: {e}")


def _parse_content(text: Any, label: str) -> dict:
    """Parse model output as a JSON object, tolerating markdown fences."""
    # Refusals come back with null content.
    if not isinstance(text, str):
        raise ProviderError(f"{label} response has no text content")
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`")
        cleaned = cleaned.removeprefix("json").strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ProviderError(f"Failed to parse {label} response as JSON: {e}")
    if not isinstance(data, dict):
        raise ProviderError(f"{label} response is not a JSON object")
    return data


async def call_openai_compatible(
    prompt: str,
    system_prompt: str,
    api_key: str = "",
    model: str = "",
    base_url: str = "",
    timeout_seconds: float = 60,
) -> dict:
    """Call an OpenAI-compatible /chat/completions endpoint and return the JSON content."""
    if not api_key:
        raise ProviderError("No API key provided for OpenAI-compatible provider.")
    if not base_url:
        raise ProviderError("No base URL provided for OpenAI-compatible provider.")

    payload = {
        "model": model,
        "temperature": 0.3,
        "max_tokens": 2000,
        "response_format": {"type": "json_object"},
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": prompt},
        ],
    }
    headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
    body = await _post_json(
        f"{base_url.rstrip('/')}/chat/completions", payload, headers, timeout_seconds, "OpenAI-compatible",
    )
    try:
        content = body["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise ProviderError(f"Unexpected response structure: {e}")
    return _parse_content(content, "OpenAI-compatible")


async def call_anthropic(
    prompt: str,
    system_prompt: str,
    api_key: str = "",
    model: str = "claude-sonnet-4-20250514",
    base_url: str = "https://api.anthropic.com",
    timeout_seconds: float = 60,
) -> dict:
    """Call the Anthropic Messages API; JSON output is requested in the prompt."""
    if not api_key:
        raise ProviderError("No API key provided for Anthropic provider.")

    payload = {
        "model": model,
        "max_tokens": 1024,
        "temperature": 0,
        "system": system_prompt,
        "messages": [{"role": "user", "content": prompt}],
    }
    headers = {
        "x-api-key": api_key,
        "anthropic-version": "2023-06-01",
        "Content-Type": "application/json",
    }
    body = await _post_json(f"{base_url.rstrip('/')}/v1/messages", payload, headers, timeout_seconds, "Anthropic")
    try:
        text = body["content"][0]["text"]
    except (KeyError, IndexError, TypeError) as e:
        raise ProviderError(f"Unexpected Anthropic response structure: {e}")
    return _parse_content(text, "Anthropic")


async def call_gemini(
    prompt: str,
    system_prompt: str,
    api_key: str = "",
    model: str = "gemini-2.0-flash",
    base_url: str = "https://generativelanguage.googleapis.com/v1beta",
    timeout_seconds: float = 60,
) -> dict:
    """Call the Gemini generateContent API with a JSON response MIME type."""
    if not api_key:
        raise ProviderError("No API key provided for Gemini provider.")

    payload = {
        "system_instruction": {"parts": [{"text": system_prompt}]},
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": {"temperature": 0, "responseMimeType": "application/json"},
    }
    body = await _post_json(
        f"{base_url.rstrip('/')}/models/{model}:generateContent?key={api_key}",
        payload,
        {"Content-Type": "application/json"},
        timeout_seconds,
        "Gemini",
    )
    try:
        text = body["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as e:
        raise ProviderError(f"Unexpected Gemini response structure: {e}")
    return _parse_content(text, "Gemini")


async def complete_json(prompt: str, system_prompt: str, settings: Settings) -> dict:
    """Send a prompt to the configured provider and return its JSON object."""
    provider = resolve_provider(settings)
    if provider is None:
        raise ProviderError("No AI API key configured. Set AUTOBUMP_AI_API_KEY or --ai-api-key.")

    timeout = settings.ai_timeout_seconds
    if provider in ("openai", "generic"):
        return await call_openai_compatible(
            prompt, system_prompt,
            api_key=settings.ai_api_key,
            model=settings.ai_model,
            base_url=settings.ai_endpoint,
            timeout_seconds=timeout,
        )
    if provider == "anthropic":
        return await call_anthropic(
            prompt, system_prompt,
            api_key=settings.ai_api_key,
            model=settings.ai_anthropic_model,
            base_url=settings.ai_anthropic_base_url,
            timeout_seconds=timeout,
        )
    if provider == "gemini":
        return await call_gemini(
            prompt, system_prompt,
            api_key=settings.ai_api_key,
            model=settings.ai_gemini_model,
            base_url=settings.ai_gemini_base_url,
            timeout_seconds=timeout,
        )
    raise ProviderError(f"Unknown AI provider '{provider}'. Use 'auto', 'openai', 'generic', 'anthropic' or 'gemini'.")
