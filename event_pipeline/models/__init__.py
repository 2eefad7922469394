"""Data models for the event pipeline."""

from event_pipeline.models.event import (
    DEFAULT_CATEGORY_SET,
    DEFAULT_GPT_MODEL,
    FALLBACK_CATEGORY,
    Event,
    ExtractionResult,
    ExtractionSettings,
    ScoreRecord,
)

__all__ = [
    "DEFAULT_CATEGORY_SET",
    "DEFAULT_GPT_MODEL",
    "FALLBACK_CATEGORY",
    "Event",
    "ExtractionResult",
    "ExtractionSettings",
    "ScoreRecord",
]
