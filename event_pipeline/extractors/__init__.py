"""URL → events extraction engine.

This module provides the extraction pipeline that:
1. Renders the page with a headless browser
2. Splits the DOM into bounded text chunks with their links
3. Summarizes and extracts events through the LLM
4. Deduplicates and scores the result
"""

from event_pipeline.extractors.chunking import chunk_html, combine_chunks, segment_html
from event_pipeline.extractors.event_store import EventStore, StoredEvent
from event_pipeline.extractors.fetch import RenderFailure, render_page
from event_pipeline.extractors.pipeline import extract_events_from_url, run_chunk_flow
from event_pipeline.extractors.urls import ensure_absolute_event_urls, resolve_url

__all__ = [
    "chunk_html",
    "combine_chunks",
    "segment_html",
    "EventStore",
    "StoredEvent",
    "RenderFailure",
    "render_page",
    "extract_events_from_url",
    "run_chunk_flow",
    "ensure_absolute_event_urls",
    "resolve_url",
]
