"""Background extraction jobs and live-update fan-out."""

from event_pipeline.jobs.coordinator import JobCoordinator, JobTicket, resolve_settings
from event_pipeline.jobs.registry import JobRegistry, LiveSink, QueueSink, SinkClosed

__all__ = [
    "JobCoordinator",
    "JobTicket",
    "resolve_settings",
    "JobRegistry",
    "LiveSink",
    "QueueSink",
    "SinkClosed",
]
