"""Extraction quality scoring.

Known scores compare a run against the operator's expected event count.
Consensus scores compare every logged attempt against the median event
count of all attempts for the same source.
"""

import os
from statistics import median
from typing import Optional

from event_pipeline.models import ScoreRecord

DEFAULT_ACCURACY_WEIGHT = 0.7
DEFAULT_COMPLETENESS_WEIGHT = 0.3


def get_score_weights() -> tuple[float, float]:
    """(accuracy, completeness) weights, overridable from the environment."""
    accuracy = float(os.environ.get("SCORING_ACCURACY_WEIGHT", DEFAULT_ACCURACY_WEIGHT))
    completeness = float(os.environ.get("SCORING_COMPLETENESS_WEIGHT", DEFAULT_COMPLETENESS_WEIGHT))
    return accuracy, completeness


def compute_score(
    scraped: int,
    expected: Optional[int],
    settings: Optional[dict] = None,
    weights: Optional[tuple[float, float]] = None,
) -> Optional[ScoreRecord]:
    """Score a run against the expected count.

    Returns None when there is no usable baseline (missing or zero).
    """
    if not expected:
        return None

    accuracy_weight, completeness_weight = weights or get_score_weights()
    accuracy = 1 - abs(scraped - expected) / expected
    completeness = min(scraped / expected, 1)
    score = accuracy_weight * accuracy + completeness_weight * completeness

    return ScoreRecord(
        accuracy=accuracy,
        completeness=completeness,
        score=score,
        scraped=scraped,
        expected=expected,
        settings=settings or {},
    )


def consensus_scores(attempts: list[dict]) -> dict:
    """Score logged attempts by agreement with the median event count.

    Args:
        attempts: Attempt records with ``event_count`` and ``settings_used``

    Returns:
        ``{"median": float, "scores": [{id, consensus, event_count, settings}]}``
    """
    if not attempts:
        return {"median": 0, "scores": []}

    mid = median(a.get("event_count", 0) for a in attempts)
    scores = [
        {
            "id": attempt.get("id"),
            "consensus": 1 - abs(attempt.get("event_count", 0) - mid) / mid if mid else 0,
            "event_count": attempt.get("event_count", 0),
            "settings": attempt.get("settings_used", {}),
        }
        for attempt in attempts
    ]
    return {"median": mid, "scores": scores}
