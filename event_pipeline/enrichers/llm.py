"""Two-pass LLM protocol: summarize a chunk, then extract strict JSON events.

Talks to any OpenAI-compatible chat-completions endpoint over httpx.
Both passes absorb their own failures: a failed summary becomes "" and a
failed extraction becomes None, so one bad chunk never aborts a run.
"""

import asyncio
import os
from typing import Any, Awaitable, Callable, Optional

import httpx
from rich.console import Console

from event_pipeline.enrichers.schema import (
    EXTRACTION_TEMPERATURE,
    SUMMARY_TEMPERATURE,
    ExtractionParseFailure,
    build_extraction_prompt,
    build_summary_prompt,
    parse_events_response,
)
from event_pipeline.models import Event, ExtractionSettings

console = Console()

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_TIMEOUT_SECONDS = 120.0

# complete(model, prompt, temperature) -> text
LLMCall = Callable[[str, str, float], Awaitable[str]]

# Shared httpx client for connection pooling
_http_client: Optional[httpx.AsyncClient] = None


class LLMError(Exception):
    """The model call failed after all retries."""


def get_openai_token() -> str:
    """Get the API key from environment."""
    token = os.environ.get("OPENAI_API_KEY")
    if not token:
        raise ValueError("OPENAI_API_KEY environment variable not set")
    return token


def get_llm_timeout() -> float:
    return float(os.environ.get("LLM_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS))


def get_completions_url() -> str:
    base_url = os.environ.get("OPENAI_BASE_URL", DEFAULT_BASE_URL).rstrip("/")
    return f"{base_url}/chat/completions"


async def get_http_client() -> httpx.AsyncClient:
    """Get or create shared async HTTP client."""
    global _http_client
    if _http_client is None or _http_client.is_closed:
        _http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(get_llm_timeout(), connect=10.0),
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
        )
    return _http_client


async def close_http_client():
    """Close the shared HTTP client."""
    global _http_client
    if _http_client and not _http_client.is_closed:
        await _http_client.aclose()
        _http_client = None


def first_choice_content(data: Any) -> Optional[str]:
    """Message content of the first choice, None if the body has another shape."""
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    return content if isinstance(content, str) else None


async def call_llm(
    model: str,
    prompt: str,
    temperature: float,
    max_retries: int = 2,
) -> str:
    """Single-message chat completion with retries and exponential backoff.

    Every attempt is bounded by ``LLM_TIMEOUT_SECONDS`` end to end.

    Raises:
        LLMError: if no attempt produced content
    """
    token = get_openai_token()
    client = await get_http_client()
    timeout = get_llm_timeout()

    payload = {
        "model": model,
        "messages": [{"role": "user", "content": prompt}],
        "temperature": temperature,
    }
    headers = {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {token}",
    }

    last_error = "no attempt made"
    for attempt in range(max_retries):
        try:
            response = await asyncio.wait_for(
                client.post(get_completions_url(), json=payload, headers=headers),
                timeout=timeout,
            )
            response.raise_for_status()
            content = first_choice_content(response.json())
            if content and content.strip():
                return content.strip()
            last_error = "empty or malformed response"
        except (asyncio.TimeoutError, httpx.TimeoutException):
            last_error = "timeout"
        except httpx.HTTPStatusError as e:
            last_error = f"HTTP {e.response.status_code}"
            if e.response.status_code in (400, 401, 403, 404):
                break  # Retrying won't help
        except (httpx.HTTPError, ValueError) as e:
            last_error = f"{type(e).__name__}: {e}"

        console.print(f"[yellow]LLM attempt {attempt + 1}/{max_retries}: {last_error}[/yellow]")
        if attempt < max_retries - 1:
            await asyncio.sleep(2 ** attempt)

    raise LLMError(f"{model} call failed: {last_error}")


async def summarize_chunk(
    chunk: str,
    settings: ExtractionSettings,
    index: int = 0,
    total: int = 1,
    complete: LLMCall = call_llm,
) -> str:
    """Step 1: compress a chunk into an event-focused natural-language summary.

    Returns "" on any failure, which downstream treats as "no events".
    """
    console.print(f"[dim]Summarizing chunk {index + 1}/{total} ({len(chunk)} chars)[/dim]")
    prompt = build_summary_prompt(chunk, settings)
    try:
        summary = await complete(settings.gpt_model, prompt, SUMMARY_TEMPERATURE)
    except Exception as e:
        console.print(f"[yellow]Summary failed for chunk {index + 1}: {e}[/yellow]")
        return ""
    return summary.strip() if isinstance(summary, str) else ""


async def extract_events_from_summary(
    summary: str,
    source_url: str,
    settings: ExtractionSettings,
    complete: LLMCall = call_llm,
) -> Optional[list[Event]]:
    """Step 2: turn a summary into a validated event list.

    Returns None (contributes zero events) on model errors and on
    malformed or schema-violating JSON.
    """
    prompt = build_extraction_prompt(summary, source_url)
    try:
        content = await complete(settings.gpt_model, prompt, EXTRACTION_TEMPERATURE)
    except Exception as e:
        console.print(f"[yellow]Extraction call failed for {source_url[:60]}: {e}[/yellow]")
        return None

    try:
        events = parse_events_response(content)
    except ExtractionParseFailure as e:
        console.print(f"[yellow]Discarding unparseable extraction for {source_url[:60]}: {e}[/yellow]")
        return None

    console.print(f"[dim]Extracted {len(events)} events from summary[/dim]")
    return events
