"""
Pull request quality score.
"""
from datetime import timedelta
from typing import Any, Dict, Optional

import structlog

from errors import UpstreamFailure
from scoring.utils import load_scoring_config

log = structlog.get_logger("contrib_stats.quality")

SPAM_SENTINEL = -1


def _is_quick_close(pr, window: timedelta) -> bool:
    if pr.pr_is_merged or pr.pr_closed_at is None or pr.pr_created_at is None:
        return False
    return pr.pr_closed_at <= pr.pr_created_at + window


def compute_quality(stores, user: str, config: Optional[Dict[str, Any]] = None) -> int:
    """Score a user's recent pull requests, newest first.

    Rules per PR, first match wins:
      1. locked as spam -> return the sentinel immediately
      2. closed unmerged within the quick-close window -> penalty
      3. merged -> merged points
      4. still opened -> opened points
    A negative total also yields the sentinel; otherwise the total is capped.
    """
    cfg = (config or load_scoring_config())['quality']
    try:
        page = stores.pull_requests.find_all_by_author(
            user, range_days=cfg['lookback_days'], limit=cfg['max_prs'], skip=0, order='desc'
        )
    except Exception as ex:
        failure = UpstreamFailure('pull_requests', user, ex)
        log.warning("quality.lookup_failed", user=user, error=str(failure), exc_info=ex)
        return 0

    window = timedelta(days=cfg['quick_close_days'])
    total = 0
    for pr in page:
        if pr.pr_active_lock_reason == cfg['spam_lock_reason']:
            log.info("quality.spam_lock", user=user, repo=pr.repo_name, pr=pr.pr_number)
            return SPAM_SENTINEL
        if _is_quick_close(pr, window):
            total -= cfg['quick_close_penalty']
        elif pr.pr_is_merged:
            total += cfg['merged_points']
        elif pr.pr_action == 'opened':
            total += cfg['opened_points']

    # several quick closes collapse to the same outcome as a spam lock
    if total < 0:
        return SPAM_SENTINEL
    return min(total, cfg['max_score'])
