"""Normalizers for extracted events."""

from .dedup import SIMILARITY_THRESHOLD, dedupe_events, title_similarity

__all__ = ["SIMILARITY_THRESHOLD", "dedupe_events", "title_similarity"]
