"""Prompts and the response schema for the two LLM passes."""

import json
import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ValidationError

from event_pipeline.models import Event, ExtractionSettings, FALLBACK_CATEGORY

NO_EVENTS_SENTINEL = "No events found."

DEFAULT_SUMMARY_PROMPT = (
    "Please provide a concise summary of the following text.\n"
    f'If no events, state "{NO_EVENTS_SENTINEL}". Do not skip any event. '
    "Make sure all of them are taken from the text provided. No markdown.\n"
    "Response in German.\n"
    "DO NOT BE LAZY. THIS IS IMPORTANT."
)

SUMMARY_TEMPERATURE = 0.7
EXTRACTION_TEMPERATURE = 0.2


class ExtractionParseFailure(ValueError):
    """The extraction response is not a JSON object of the expected shape."""


class EventList(BaseModel):
    """Strict shape of the extraction response: ``{"events": [...]}``."""

    events: list[Event]


def build_summary_prompt(chunk: str, settings: ExtractionSettings) -> str:
    """Summarization prompt; a custom prompt replaces only the base instruction."""
    year = datetime.now().year
    mandatory = f"""
If you find any events, ensure the summary mentions:
- "Event Title"
- "Short Description"
- "URL"
- "Category" - assign to one of following if possible: {settings.category_set}. If none category apply, use "{FALLBACK_CATEGORY}"
- "Date" - convert to ISO 8601. Only one date. If no year provided, use {year}.
"""
    base = settings.custom_prompt or DEFAULT_SUMMARY_PROMPT
    return f"{base}\n{mandatory}\nHere's the text:\n{chunk}"


def build_extraction_prompt(summary: str, source_url: str) -> str:
    return f"""You are a helpful assistant. Return the data in valid JSON (no code fences).
Structure it exactly as:
{{
  "events": [
    {{
      "title": "<string>",
      "description": "<string>",
      "url": "<string>",
      "category": "<string>",
      "date": "<string>"
    }}
  ]
}}

Extract EVERY event details from the summary below:
- Title
- Description
- URL
- Category
- Date (any recognized date format)
If there are no events, return {{"events":[]}}.

Make sure there's no unterminated json, and answer only in the format requested.
Source: {source_url}
Summary:
{summary}
"""


def is_empty_summary(summary: Optional[str]) -> bool:
    """True for summaries that must not reach the extraction pass."""
    if not summary:
        return True
    trimmed = summary.strip()
    return not trimmed or trimmed == NO_EVENTS_SENTINEL


def parse_events_response(content: str) -> list[Event]:
    """Validate a raw extraction response.

    Accepts plain JSON or JSON wrapped in a markdown code fence.

    Raises:
        ExtractionParseFailure: on anything that is not ``{"events": [...]}``
    """
    if not isinstance(content, str) or not content.strip():
        raise ExtractionParseFailure("empty response")

    text = content.strip()
    fenced = re.search(r"```(?:json)?\s*(.*?)```", text, re.DOTALL)
    if fenced and not text.startswith("{"):
        text = fenced.group(1).strip()

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ExtractionParseFailure(f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ExtractionParseFailure(f"expected an object, got {type(data).__name__}")

    try:
        return EventList.model_validate(data).events
    except ValidationError as e:
        raise ExtractionParseFailure(f"schema mismatch: {e.error_count()} errors") from e
