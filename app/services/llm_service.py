"""LLM Service — client for the text-to-structure extraction oracle.

Purpose:
  Wraps an OpenAI-compatible chat completions endpoint. Owns transport,
  auth headers, token-usage logging and JSON fence stripping. Knows nothing
  about orders; the intent extractor owns the prompt and the shape check.

Design rules:
  - No retries. A non-2xx answer, a timeout or a connection failure raises
    ExtractionTransportError with the upstream status and body; callers
    decide whether to try again
  - Token usage logged for cost tracking

Called by: services/intent_extractor.py
Depends on: app.http_client, app.config
"""

import json
import time
from typing import Any

import httpx
from loguru import logger

from app.config import settings
from app.exceptions import ExtractionTransportError
from app.http_client import http


def _headers() -> dict:
    """Build auth headers for the inference API."""
    return {
        "Authorization": f"Bearer {settings.llm_api_key}",
        "Content-Type": "application/json",
    }


async def _call_llm(
    messages: list[dict],
    *,
    model: str | None = None,
    max_tokens: int = 1024,
    temperature: float = 0.0,
    json_mode: bool = False,
    timeout: int | None = None,
) -> dict:
    """Low-level call to the chat completions endpoint.

    Returns the full API response dict. Raises ExtractionTransportError on
    any transport failure.
    """
    if not settings.llm_api_key:
        raise ExtractionTransportError("LLM_API_KEY is not configured")

    resolved_model = model or settings.llm_model
    body: dict[str, Any] = {
        "model": resolved_model,
        "messages": messages,
        "max_tokens": max_tokens,
        "temperature": temperature,
    }
    if json_mode:
        body["response_format"] = {"type": "json_object"}

    start = time.monotonic()
    try:
        resp = await http.post(
            settings.llm_api_url,
            headers=_headers(),
            json=body,
            timeout=timeout or settings.llm_timeout_seconds,
        )
    except httpx.TimeoutException as e:
        logger.warning("LLM call timed out after {:.1f}s", time.monotonic() - start)
        raise ExtractionTransportError(f"LLM call timed out: {e}") from e
    except httpx.HTTPError as e:
        logger.warning("LLM call failed: {}", e)
        raise ExtractionTransportError(f"LLM call failed: {e}") from e
    elapsed = time.monotonic() - start

    if resp.status_code != 200:
        logger.warning("LLM API {}: {}", resp.status_code, resp.text[:200])
        raise ExtractionTransportError(
            f"LLM call failed with status {resp.status_code}",
            status_code=resp.status_code,
            body=resp.text,
        )

    try:
        data = resp.json()
    except ValueError as e:
        raise ExtractionTransportError(
            "LLM API returned a non-JSON envelope",
            status_code=resp.status_code,
            body=resp.text,
        ) from e

    usage = data.get("usage", {})
    logger.info(
        "LLM OK | model={} | in={} | out={} | {:.1f}s",
        resolved_model,
        usage.get("prompt_tokens", "?"),
        usage.get("completion_tokens", "?"),
        elapsed,
    )
    return data


def _extract_text(data: dict) -> str:
    """Extract text content from a chat completion response."""
    choices = data.get("choices") or []
    if not choices:
        return ""
    return (choices[0].get("message") or {}).get("content") or ""


async def llm_json_text(
    prompt: str,
    *,
    system: str = "",
    model: str | None = None,
    max_tokens: int = 1024,
    temperature: float = 0.0,
    timeout: int | None = None,
) -> str:
    """Call the oracle in JSON mode and return its raw text output.

    The raw text is returned unparsed so callers can attach it to a format
    error when it does not match their shape.
    """
    messages: list[dict[str, Any]] = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})

    data = await _call_llm(
        messages,
        model=model,
        max_tokens=max_tokens,
        temperature=temperature,
        json_mode=True,
        timeout=timeout,
    )
    return _extract_text(data)


def parse_json_text(text: str) -> dict | list | None:
    """Parse JSON from LLM output that may contain markdown fences or preamble."""
    if not text:
        return None

    cleaned = text.strip()

    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [line for line in lines if not line.strip().startswith("```")]
        cleaned = "\n".join(lines).strip()

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start != -1 and end > start:
        try:
            return json.loads(cleaned[start : end + 1])
        except json.JSONDecodeError:
            pass

    logger.debug("JSON parse failed: {}...", text[:100])
    return None
