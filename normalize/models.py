"""
Unified data models for normalized developer-activity events.
"""

from datetime import datetime
from typing import Optional

# event categories, one per upstream event kind
PUSH = 'push'
PULL_REQUEST = 'pull_request'
PULL_REQUEST_REVIEW = 'pull_request_review'
ISSUES = 'issues'
COMMIT_COMMENT = 'commit_comment'
ISSUE_COMMENT = 'issue_comment'
PULL_REQUEST_REVIEW_COMMENT = 'pull_request_review_comment'
FORK = 'fork'
STAR = 'star'

CATEGORIES = (
    PUSH,
    PULL_REQUEST,
    PULL_REQUEST_REVIEW,
    ISSUES,
    COMMIT_COMMENT,
    ISSUE_COMMENT,
    PULL_REQUEST_REVIEW_COMMENT,
    FORK,
    STAR,
)

# pushes only count as commits when they land on one of these refs
MAIN_REFS = ('refs/heads/main', 'refs/heads/master')


class EventRecord:
    """
    One attributed action read from an event store.
    """
    def __init__(
        self,
        category: str,
        actor_login: str,
        repo_name: str,
        event_time: datetime,
        action: Optional[str] = None,
        event_id: Optional[str] = None,
        push_ref: Optional[str] = None,
        push_num_commits: int = 0,
        pr_number: Optional[int] = None,
        pr_author_login: Optional[str] = None,
        pr_is_merged: bool = False,
        pr_active_lock_reason: Optional[str] = None,
        pr_created_at: Optional[datetime] = None,
        pr_closed_at: Optional[datetime] = None,
    ):
        self.category = category
        self.actor_login = actor_login
        self.repo_name = repo_name
        self.event_time = event_time  # timezone-aware UTC
        self.action = action  # opened/closed/created/... depending on category
        self.event_id = event_id
        self.push_ref = push_ref
        self.push_num_commits = push_num_commits
        self.pr_number = pr_number
        self.pr_author_login = pr_author_login
        self.pr_is_merged = pr_is_merged
        self.pr_active_lock_reason = pr_active_lock_reason
        self.pr_created_at = pr_created_at
        self.pr_closed_at = pr_closed_at

    @property
    def pr_action(self) -> Optional[str]:
        return self.action

    def __repr__(self):
        return f"EventRecord({self.category!r}, {self.actor_login!r}, {self.repo_name!r}, {self.event_time.isoformat()!r})"
