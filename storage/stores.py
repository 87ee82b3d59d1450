"""
Collaborator stores read by the scoring engine.

Every scorer and aggregator only relies on these read contracts:

* category store: ``count_for_author(username, cohort, range_days, repos=None) -> int``
  and ``list_for_login(username, range_days, repos=None) -> [EventRecord]``
* pull request store: ``find_all_by_author(username, range_days=90, limit=1000, skip=0, order='desc') -> Page``
* social graph store: ``distinct_repos_acted_on(username, kind, range_days) -> set``

The implementations here sit on top of storage.events.EventStore; tests and
other backends can pass any object with the same methods.
"""
from datetime import timedelta
from typing import Callable, List, Optional, Sequence, Tuple

from normalize import models
from normalize.models import EventRecord
from scoring.cohort import cohort_filter, cohort_windows, utc_now
from storage.events import EventStore


class Page:
    """One page of results plus the size of the unpaged result set."""

    def __init__(self, data: list, item_count: int, skip: int, limit: int):
        self.data = data
        self.item_count = item_count
        self.skip = skip
        self.limit = limit

    def __iter__(self):
        return iter(self.data)

    def __len__(self):
        return len(self.data)


class CategoryEventStore:
    """Counts and lists one category of events for a contributor."""

    def __init__(
        self,
        events: EventStore,
        category: str,
        actions: Optional[Sequence[str]] = None,
        refs: Optional[Sequence[str]] = None,
        sum_commits: bool = False,
        clock: Callable = utc_now,
    ):
        self.events = events
        self.category = category
        self.actions = actions
        self.refs = refs
        self.sum_commits = sum_commits  # push counts are the number of commits pushed, not pushes
        self.clock = clock

    def _query(self, username: str, since, until, repos):
        return self.events.query(
            self.category, login=username, since=since, until=until, repos=repos, actions=self.actions, refs=self.refs
        )

    def list_for_login(self, username: str, range_days: int, repos: Optional[Sequence[str]] = None) -> List[EventRecord]:
        now = self.clock()
        return self._query(username, now - timedelta(days=range_days), now, repos)

    def count_for_author(self, username: str, cohort, range_days: int, repos: Optional[Sequence[str]] = None) -> int:
        now = self.clock()
        previous_start, _, _ = cohort_windows(range_days, now)
        # widen by a second; the cohort filter trims to the exact windows
        candidates = self._query(username, previous_start - timedelta(seconds=1), now, repos)
        qualifying = cohort_filter(cohort, range_days, now, time_of=lambda e: e.event_time)(candidates)
        if self.sum_commits:
            return sum(int(e.push_num_commits or 0) for e in qualifying)
        return len(qualifying)


class PullRequestStore:
    """Pull requests authored by a contributor, one entry per PR (its latest event)."""

    def __init__(self, events: EventStore, clock: Callable = utc_now):
        self.events = events
        self.clock = clock

    def find_all_by_author(self, username: str, range_days: int = 90, limit: int = 1000, skip: int = 0, order: str = 'desc') -> Page:
        now = self.clock()
        rows = self.events.query(
            models.PULL_REQUEST,
            login=username,
            login_field='pr_author_login',
            since=now - timedelta(days=range_days),
            until=now,
            newest_first=True,
        )
        latest = []
        seen = set()
        for row in rows:
            key = (row.repo_name, row.pr_number if row.pr_number is not None else row.event_id)
            if key in seen:
                continue
            seen.add(key)
            latest.append(row)
        if (order or 'desc').lower() == 'asc':
            latest.reverse()
        return Page(latest[skip:skip + limit], len(latest), skip, limit)


class SocialGraphStore:
    """Repositories a contributor forked or starred."""

    KINDS = {'fork': models.FORK, 'star': models.STAR}

    def __init__(self, events: EventStore, clock: Callable = utc_now):
        self.events = events
        self.clock = clock

    def distinct_repos_acted_on(self, username: str, kind: str, range_days: int) -> set:
        category = self.KINDS.get(kind)
        if category is None:
            raise ValueError(f"unsupported social graph kind: {kind}")
        now = self.clock()
        rows = self.events.query(category, login=username, since=now - timedelta(days=range_days), until=now)
        return {r.repo_name for r in rows}


class ContributorStores:
    """
    The full set of collaborators the engine fans out to, in slot order.
    """

    # slot name -> attribute holding the category store; order is the fan-out order
    COUNT_SLOTS = (
        'commits',
        'prs_created',
        'prs_reviewed',
        'issues_created',
        'commit_comments',
        'issue_comments',
        'pr_review_comments',
    )

    def __init__(
        self,
        commits,
        prs_created,
        prs_reviewed,
        issues_created,
        commit_comments,
        issue_comments,
        pr_review_comments,
        pull_requests,
        social,
    ):
        self.commits = commits
        self.prs_created = prs_created
        self.prs_reviewed = prs_reviewed
        self.issues_created = issues_created
        self.commit_comments = commit_comments
        self.issue_comments = issue_comments
        self.pr_review_comments = pr_review_comments
        self.pull_requests = pull_requests
        self.social = social

    def slots(self) -> List[Tuple[str, object]]:
        return [(name, getattr(self, name)) for name in self.COUNT_SLOTS]

    @classmethod
    def from_event_store(cls, events: EventStore, clock: Callable = utc_now) -> 'ContributorStores':
        return cls(
            commits=CategoryEventStore(events, models.PUSH, refs=models.MAIN_REFS, sum_commits=True, clock=clock),
            prs_created=CategoryEventStore(events, models.PULL_REQUEST, actions=('opened',), clock=clock),
            prs_reviewed=CategoryEventStore(events, models.PULL_REQUEST_REVIEW, actions=('created',), clock=clock),
            issues_created=CategoryEventStore(events, models.ISSUES, actions=('opened',), clock=clock),
            commit_comments=CategoryEventStore(events, models.COMMIT_COMMENT, clock=clock),
            issue_comments=CategoryEventStore(events, models.ISSUE_COMMENT, clock=clock),
            pr_review_comments=CategoryEventStore(events, models.PULL_REQUEST_REVIEW_COMMENT, clock=clock),
            pull_requests=PullRequestStore(events, clock=clock),
            social=SocialGraphStore(events, clock=clock),
        )
