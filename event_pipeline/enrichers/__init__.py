"""LLM passes that turn page chunks into events."""

from event_pipeline.enrichers.llm import (
    LLMCall,
    LLMError,
    call_llm,
    close_http_client,
    extract_events_from_summary,
    get_openai_token,
    summarize_chunk,
)
from event_pipeline.enrichers.schema import (
    NO_EVENTS_SENTINEL,
    ExtractionParseFailure,
    is_empty_summary,
    parse_events_response,
)

__all__ = [
    "LLMCall",
    "LLMError",
    "call_llm",
    "close_http_client",
    "extract_events_from_summary",
    "get_openai_token",
    "summarize_chunk",
    "NO_EVENTS_SENTINEL",
    "ExtractionParseFailure",
    "is_empty_summary",
    "parse_events_response",
]
