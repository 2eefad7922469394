"""Fuzzy deduplication of extracted events."""

import re
from collections import Counter

from rich.console import Console

from event_pipeline.models import Event

console = Console()

SIMILARITY_THRESHOLD = 0.3


def _bigrams(text: str) -> Counter:
    return Counter(text[i:i + 2] for i in range(len(text) - 1))


def title_similarity(a: str, b: str) -> float:
    """Dice coefficient over character bigrams (whitespace ignored), 0..1."""
    a = re.sub(r"\s+", "", a)
    b = re.sub(r"\s+", "", b)
    if a == b:
        return 1.0
    if len(a) < 2 or len(b) < 2:
        return 0.0

    first, second = _bigrams(a), _bigrams(b)
    overlap = sum((first & second).values())
    return 2.0 * overlap / (len(a) + len(b) - 2)


def dedupe_events(
    events: list[Event],
    threshold: float = SIMILARITY_THRESHOLD,
) -> list[Event]:
    """Drop near-duplicates, keeping the first occurrence.

    Two events can only be duplicates when their normalized dates are
    identical; only then is title similarity compared against ``threshold``.
    Events without a date never match each other.
    """
    accepted: list[Event] = []

    for event in events:
        title = event.title.lower().strip()
        date = event.date.lower().strip()
        duplicate_of = None

        if date:
            for existing in accepted:
                if existing.date.lower().strip() != date:
                    continue
                similarity = title_similarity(title, existing.title.lower().strip())
                if similarity > threshold:
                    duplicate_of = (existing, similarity)
                    break

        if duplicate_of:
            existing, similarity = duplicate_of
            console.print(
                f"[dim]Duplicate skipped: '{event.title[:40]}' ~ '{existing.title[:40]}' "
                f"({event.date}, similarity {similarity:.2f})[/dim]"
            )
            continue
        accepted.append(event)

    console.print(f"[dim]Dedup: {len(events)} -> {len(accepted)} events[/dim]")
    return accepted
