"""
Open Source Contributor Rating (OSCR).
Combines quality and confidence into a single [0, 1] rating.
"""
from typing import Any, Dict, List, Optional, Sequence

import structlog

from scoring.confidence import compute_confidence
from scoring.models import ContributorScore
from scoring.pool import run_corresponding
from scoring.quality import SPAM_SENTINEL, compute_quality
from scoring.utils import load_scoring_config

log = structlog.get_logger("contrib_stats.oscr")


def combine_oscr(quality: int, confidence: float, config: Optional[Dict[str, Any]] = None) -> float:
    """Weighted blend of confidence and the quality percentage; a spam sentinel zeroes the rating."""
    config = config or load_scoring_config()
    if quality == SPAM_SENTINEL:
        return 0.0
    weights = config['oscr']
    quality_pct = quality / config['quality']['max_score']
    return weights['confidence_weight'] * confidence + weights['quality_weight'] * quality_pct


def compute_oscr(stores, user: str, range_days: int, config: Optional[Dict[str, Any]] = None) -> float:
    return score_contributor(stores, user, range_days, config).oscr


def score_contributor(stores, user: str, range_days: int, config: Optional[Dict[str, Any]] = None) -> ContributorScore:
    """Quality, confidence and OSCR for one user.

    Confidence is not looked up for spam-flagged users since their rating is 0.
    """
    config = config or load_scoring_config()
    quality = compute_quality(stores, user, config)
    if quality == SPAM_SENTINEL:
        return ContributorScore(user, quality, 0.0, 0.0)
    confidence = compute_confidence(stores, user, range_days, config)
    return ContributorScore(user, quality, confidence, combine_oscr(quality, confidence, config))


def score_contributors(
    stores,
    users: Sequence[str],
    range_days: int,
    config: Optional[Dict[str, Any]] = None,
    pool_size: Optional[int] = None,
) -> List[ContributorScore]:
    """Score many users concurrently, highest OSCR first; failing users are logged and omitted."""
    config = config or load_scoring_config()
    tasks = [(lambda u=u: score_contributor(stores, u, range_days, config)) for u in users]
    scores = []
    for user, result in zip(users, run_corresponding(tasks, pool_size)):
        if not result.ok:
            log.error("oscr.user_failed", user=user, error=str(result.error), exc_info=result.error)
            continue
        scores.append(result.value)
    scores.sort(key=lambda s: s.oscr, reverse=True)
    return scores
