"""
Contributor confidence.

Measures how often low-commitment signals (forks and stars) turn into real
contributions. Each sub-score is the share of forked/starred repos the user
also opened a pull request in, plus a bonus when the user contributes to
repos outside that set.
"""
from typing import Any, Dict, Optional

import structlog

from errors import UpstreamFailure
from scoring.utils import load_scoring_config

log = structlog.get_logger("contrib_stats.confidence")


def _contributed_repos(stores, user: str, range_days: int) -> set:
    return {e.repo_name for e in stores.prs_created.list_for_login(user, range_days)}


def _conversion_score(acted_on: set, contributed: set, bonus: float) -> float:
    if not acted_on:
        return 0.0
    score = float(len(acted_on & contributed))
    if not contributed <= acted_on:
        score += bonus
    return min(1.0, score / len(acted_on))


def _sub_score(stores, user: str, kind: str, range_days: int, bonus: float) -> float:
    try:
        acted_on = stores.social.distinct_repos_acted_on(user, kind, range_days)
        if not acted_on:
            return 0.0
        contributed = _contributed_repos(stores, user, range_days)
    except Exception as ex:
        failure = UpstreamFailure(kind, user, ex)
        log.warning("confidence.lookup_failed", kind=kind, user=user, error=str(failure), exc_info=ex)
        return 0.0
    return _conversion_score(acted_on, contributed, bonus)


def forker_confidence(stores, user: str, range_days: int, config: Optional[Dict[str, Any]] = None) -> float:
    cfg = (config or load_scoring_config())['confidence']
    return _sub_score(stores, user, 'fork', range_days, cfg['forker_bonus'])


def stargazer_confidence(stores, user: str, range_days: int, config: Optional[Dict[str, Any]] = None) -> float:
    cfg = (config or load_scoring_config())['confidence']
    return _sub_score(stores, user, 'star', range_days, cfg['stargazer_bonus'])


def compute_confidence(stores, user: str, range_days: int, config: Optional[Dict[str, Any]] = None) -> float:
    """Average of forker and stargazer confidence; range is capped at 90 days."""
    config = config or load_scoring_config()
    range_days = min(range_days, config['confidence']['max_range_days'])
    forker = forker_confidence(stores, user, range_days, config)
    stargazer = stargazer_confidence(stores, user, range_days, config)
    return (forker + stargazer) / 2
