"""Process-local job and live-subscriber registry.

Holds at most one active job per source URL and the list of live-update
sinks watching each URL. Nothing here is persisted; a restart forgets
every job and subscriber.
"""

import asyncio
import time
from typing import Optional, Protocol

from rich.console import Console

console = Console()


class LiveSink(Protocol):
    """Anything that can receive pushed ``{data | error, status}`` events."""

    async def send(self, event: dict) -> None: ...


class SinkClosed(Exception):
    """Raised when sending to a sink whose consumer went away."""


class QueueSink:
    """In-process sink backed by an asyncio.Queue."""

    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    async def send(self, event: dict) -> None:
        if self.closed:
            raise SinkClosed("sink is closed")
        await self.queue.put(event)

    async def receive(self, timeout: Optional[float] = None) -> dict:
        return await asyncio.wait_for(self.queue.get(), timeout=timeout)

    def close(self) -> None:
        self.closed = True


class JobRegistry:
    """Single-flight job slots and subscriber lists, keyed by source URL."""

    def __init__(self):
        self._jobs: dict[str, int] = {}
        self._subscribers: dict[str, list[LiveSink]] = {}

    def active_job(self, url: str) -> Optional[int]:
        return self._jobs.get(url)

    def try_acquire(self, url: str) -> tuple[bool, int]:
        """Claim the job slot for ``url``.

        Returns:
            (acquired, job_id) - job_id is the existing job's id if the slot
            was already taken
        """
        existing = self._jobs.get(url)
        if existing is not None:
            return False, existing
        job_id = int(time.time() * 1000)
        self._jobs[url] = job_id
        return True, job_id

    def release(self, url: str) -> None:
        self._jobs.pop(url, None)

    def subscribe(self, url: str, sink: LiveSink) -> None:
        self._subscribers.setdefault(url, []).append(sink)
        console.print(f"[dim]Subscriber added for {url[:60]}[/dim]")

    def unsubscribe(self, url: str, sink: LiveSink) -> None:
        remaining = [s for s in self._subscribers.get(url, []) if s is not sink]
        if remaining:
            self._subscribers[url] = remaining
        else:
            self._subscribers.pop(url, None)
        console.print(f"[dim]Subscriber removed for {url[:60]}[/dim]")

    def subscribers(self, url: str) -> list[LiveSink]:
        return list(self._subscribers.get(url, []))

    async def publish(self, url: str, event: dict) -> int:
        """Send ``event`` to every subscriber of ``url``; dead sinks are skipped.

        Returns:
            Number of sinks that accepted the event
        """
        delivered = 0
        for sink in self.subscribers(url):
            try:
                await sink.send(event)
                delivered += 1
            except Exception as e:
                console.print(f"[yellow]Dropping update for dead subscriber of {url[:60]}: {e}[/yellow]")
        return delivered
