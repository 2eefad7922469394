"""Main extraction pipeline orchestrator.

One run for one source URL:
1. Render the page (a render failure aborts the run)
2. Chunk with merging, summarize every chunk, extract events from the
   non-empty summaries
3. If that found nothing, re-chunk the same HTML without merging and retry
4. Resolve event URLs, deduplicate, collect categories
5. Log the attempt and score it against the expected count (best-effort)
"""

import asyncio
import os
from typing import Awaitable, Callable, Optional, TypeVar

from rich.console import Console

from event_pipeline.enrichers.llm import LLMCall, call_llm, extract_events_from_summary, summarize_chunk
from event_pipeline.enrichers.schema import is_empty_summary
from event_pipeline.extractors.chunking import chunk_html
from event_pipeline.extractors.event_store import EventStore
from event_pipeline.extractors.fetch import render_page
from event_pipeline.extractors.urls import ensure_absolute_event_urls
from event_pipeline.models import Event, ExtractionResult, ExtractionSettings, ScoreRecord
from event_pipeline.normalizers.dedup import dedupe_events
from event_pipeline.validators.scoring import compute_score

console = Console()

# Max concurrent LLM calls per pass
MAX_CONCURRENT_LLM_CALLS = 8

T = TypeVar("T")
R = TypeVar("R")

# render(url, iterate_iframes=...) -> html
Renderer = Callable[..., Awaitable[str]]


def get_max_concurrency() -> int:
    return int(os.environ.get("LLM_MAX_CONCURRENT", MAX_CONCURRENT_LLM_CALLS))


async def map_in_order(
    items: list[T],
    transform: Callable[[T], Awaitable[R]],
    max_concurrent: Optional[int] = None,
) -> list[R]:
    """Run ``transform`` over all items concurrently; results keep input order."""
    semaphore = asyncio.Semaphore(max_concurrent or get_max_concurrency())

    async def bounded(item: T) -> R:
        async with semaphore:
            return await transform(item)

    return await asyncio.gather(*[bounded(item) for item in items])


async def run_chunk_flow(
    chunks: list[str],
    source_url: str,
    settings: ExtractionSettings,
    complete: LLMCall = call_llm,
) -> list[Event]:
    """Summarize all chunks, then extract events from the useful summaries."""
    total = len(chunks)
    console.print(f"[cyan]Summarizing {total} chunks...[/cyan]")

    summaries = await map_in_order(
        list(enumerate(chunks)),
        lambda item: summarize_chunk(item[1], settings, item[0], total, complete=complete),
    )

    pending = [(i, s) for i, s in enumerate(summaries) if not is_empty_summary(s)]
    skipped = total - len(pending)
    if skipped:
        console.print(f"[dim]Skipping {skipped} chunks without events[/dim]")

    results = await map_in_order(
        pending,
        lambda item: extract_events_from_summary(item[1], source_url, settings, complete=complete),
    )

    events: list[Event] = []
    for events_from_chunk in results:
        if events_from_chunk:
            events.extend(events_from_chunk)
    return events


def collect_categories(events: list[Event]) -> list[str]:
    """Distinct assigned categories, in first-seen order."""
    return list(dict.fromkeys(e.category.strip() for e in events if e.category.strip()))


def record_run(
    store: Optional[EventStore],
    source_url: str,
    settings: ExtractionSettings,
    event_count: int,
) -> Optional[ScoreRecord]:
    """Log the attempt and save a known score when a baseline exists.

    Never raises: a scoring problem must not fail a successful extraction.
    """
    try:
        snapshot = settings.to_record()
        expected = settings.expected_events
        if store is not None:
            store.log_scraping_attempt(source_url, snapshot, event_count)
            stored = store.get_settings(source_url)
            if stored is not None and stored.expected_events:
                expected = stored.expected_events

        score = compute_score(event_count, expected, snapshot)
        if score is not None:
            console.print(
                f"[dim]Score for {source_url[:60]}: {score.score:.2f} "
                f"({event_count}/{expected} events)[/dim]"
            )
            if store is not None:
                store.save_score(source_url, "known", score.model_dump())
        return score
    except Exception as e:
        console.print(f"[yellow]Scoring failed for {source_url[:60]}: {e}[/yellow]")
        return None


async def extract_events_from_url(
    url: str,
    settings: Optional[ExtractionSettings] = None,
    store: Optional[EventStore] = None,
    render: Renderer = render_page,
    complete: LLMCall = call_llm,
    allow_fallback: bool = True,
) -> ExtractionResult:
    """Run the full extraction for one source URL.

    Args:
        url: Source page URL
        settings: Effective settings (defaults if omitted)
        store: Where attempts and scores are recorded (skipped if None)
        render: Page renderer, ``render(url, iterate_iframes=...)``
        complete: LLM call, ``complete(model, prompt, temperature)``
        allow_fallback: Retry without chunk merging when the merged pass finds nothing

    Raises:
        RenderFailure: if the page could not be rendered
    """
    settings = settings or ExtractionSettings()
    console.print(f"\n[bold cyan]Extracting events from {url}[/bold cyan]")

    html = await render(url, iterate_iframes=settings.iterate_iframes)

    chunks = chunk_html(html, url, settings, merge=True)
    events = await run_chunk_flow(chunks, url, settings, complete=complete)
    used_fallback = False

    if not events and allow_fallback:
        # Same HTML, granular chunks
        console.print("[yellow]No events from merged chunks, retrying without merging...[/yellow]")
        chunks = chunk_html(html, url, settings, merge=False)
        events = await run_chunk_flow(chunks, url, settings, complete=complete)
        used_fallback = True

    ensure_absolute_event_urls(events, url)
    events = dedupe_events(events)
    categories = collect_categories(events)

    score = record_run(store, url, settings, len(events))

    console.print(f"[green]Extracted {len(events)} events from {url[:60]}[/green]")
    return ExtractionResult(
        source_url=url,
        events=events,
        categories=categories,
        chunk_count=len(chunks),
        used_fallback=used_fallback,
        score=score,
    )
