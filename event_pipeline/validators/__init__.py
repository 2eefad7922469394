"""Quality checks for extraction runs."""

from .scoring import compute_score, consensus_scores, get_score_weights

__all__ = ["compute_score", "consensus_scores", "get_score_weights"]
