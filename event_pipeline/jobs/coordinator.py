"""Background extraction jobs with single-flight per source URL.

``request_extraction`` answers immediately with whatever is stored for the
URL and, if no job is running for it yet, starts one in the background.
When the job ends its result (or error) is pushed to every live subscriber
and the job slot is released.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from pydantic import BaseModel, Field
from rich.console import Console

from event_pipeline.extractors.event_store import EventStore
from event_pipeline.extractors.pipeline import extract_events_from_url
from event_pipeline.jobs.registry import JobRegistry, LiveSink
from event_pipeline.models import ExtractionResult, ExtractionSettings

console = Console()

STATUS_CACHED = "cached"
STATUS_FETCHED = "fetched"
STATUS_ERROR = "error"

Extractor = Callable[[str, ExtractionSettings], Awaitable[ExtractionResult]]


class JobTicket(BaseModel):
    """Immediate reply to an extraction request."""

    data: list[dict] = Field(default_factory=list)
    status: str = STATUS_CACHED
    job_id: int


def resolve_settings(
    store: EventStore,
    url: str,
    overrides: Optional[dict] = None,
) -> ExtractionSettings:
    """Stored settings win; unknown URLs get defaults + overrides, saved for next time."""
    try:
        stored = store.get_settings(url)
    except ValueError as e:
        console.print(f"[yellow]Ignoring unreadable settings for {url[:60]}: {e}[/yellow]")
        stored = None
    if stored is not None:
        return stored

    settings = ExtractionSettings().merged_with(overrides)
    try:
        store.save_settings(url, settings)
        console.print(f"[dim]Auto-saved settings for new URL: {url[:60]}[/dim]")
    except OSError as e:
        console.print(f"[yellow]Failed to auto-save settings for {url[:60]}: {e}[/yellow]")
    return settings


class JobCoordinator:
    """Starts extraction jobs and fans results out to live subscribers."""

    def __init__(
        self,
        store: EventStore,
        registry: Optional[JobRegistry] = None,
        extractor: Optional[Extractor] = None,
    ):
        self.store = store
        self.registry = registry or JobRegistry()
        self.extractor = extractor or self._extract
        self._tasks: set[asyncio.Task] = set()

    async def _extract(self, url: str, settings: ExtractionSettings) -> ExtractionResult:
        return await extract_events_from_url(url, settings, store=self.store)

    def cached_events(self, url: str) -> list[dict]:
        return [e.model_dump() for e in self.store.get_events_by_source_url(url)]

    async def request_extraction(self, url: str, overrides: Optional[dict] = None) -> JobTicket:
        """Return stored events now and make sure a refresh is in flight."""
        cached = self.cached_events(url)

        # No await between the check and the claim
        acquired, job_id = self.registry.try_acquire(url)
        if acquired:
            console.print(f"[cyan]Starting background job {job_id} for {url[:60]}[/cyan]")
            task = asyncio.create_task(self._run_job(url, overrides))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        else:
            console.print(f"[dim]Job {job_id} already running for {url[:60]}[/dim]")

        return JobTicket(data=cached, status=STATUS_CACHED, job_id=job_id)

    async def _run_job(self, url: str, overrides: Optional[dict]) -> None:
        try:
            settings = resolve_settings(self.store, url, overrides)
            result = await self.extractor(url, settings)
            self.store.upsert_events(result.events, url)
            merged = self.cached_events(url)
            delivered = await self.registry.publish(url, {"data": merged, "status": STATUS_FETCHED})
            console.print(
                f"[green]Job for {url[:60]} done: {len(merged)} events, "
                f"{delivered} subscribers notified[/green]"
            )
        except Exception as e:
            console.print(f"[red]Background job failed for {url}: {e}[/red]")
            await self.registry.publish(url, {"error": str(e), "status": STATUS_ERROR})
        finally:
            self.registry.release(url)

    async def subscribe(self, url: str, sink: LiveSink) -> None:
        """Register a live sink and send it the stored events, if any."""
        self.registry.subscribe(url, sink)
        cached = self.cached_events(url)
        if not cached:
            return
        status = STATUS_CACHED if self.registry.active_job(url) is not None else STATUS_FETCHED
        try:
            await sink.send({"data": cached, "status": status})
        except Exception as e:
            console.print(f"[yellow]Could not send initial events for {url[:60]}: {e}[/yellow]")

    def unsubscribe(self, url: str, sink: LiveSink) -> None:
        self.registry.unsubscribe(url, sink)

    async def wait_for_jobs(self) -> None:
        """Wait until every background job started so far has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
