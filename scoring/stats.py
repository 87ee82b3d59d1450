"""
Contributor stat aggregation.

Fans out to the per-category stores for each user, in parallel within a user,
and merges the corresponding results into ContributorStat snapshots or into
per-repository / per-day breakdowns.
"""
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

import structlog

from errors import UpstreamFailure
from normalize.models import EventRecord
from normalize.util import filter_logins
from scoring.cohort import Cohort, matches_cohort, utc_now
from scoring.models import (
    ContributionStatTimeframe,
    ContributionsByProject,
    ContributorCategoryTimeframe,
    ContributorStat,
    StatsPage,
)
from scoring.pool import SlotResult, run_corresponding
from scoring.utils import default_pool_size
from storage.stores import ContributorStores

log = structlog.get_logger("contrib_stats.stats")

# category tags carried through the timeframe fold
COMMIT = 'commit'
PR = 'pr'
PR_REVIEW = 'pr_review'
ISSUE = 'issue'
COMMIT_COMMENT = 'commit_comment'
ISSUE_COMMENT = 'issue_comment'
PR_REVIEW_COMMENT = 'pr_review_comment'

# slot name -> category tag, in fan-out order
SLOT_TAGS = (
    ('commits', COMMIT),
    ('prs_created', PR),
    ('prs_reviewed', PR_REVIEW),
    ('issues_created', ISSUE),
    ('commit_comments', COMMIT_COMMENT),
    ('issue_comments', ISSUE_COMMENT),
    ('pr_review_comments', PR_REVIEW_COMMENT),
)

_TAG_FIELDS = {tag: slot for slot, tag in SLOT_TAGS}

# slots whose events feed the cohort category timeframe
CATEGORY_TIMEFRAME_SLOTS = ('commits', 'prs_created', 'prs_reviewed', 'issues_created')

ORDER_FIELDS = ('commits', 'prs_created', 'total_contributions')


class StatOptions:
    """
    Query options shared by every aggregation.
    """
    def __init__(self, range_days: int = 30, cohort=Cohort.ALL, repos: Optional[Sequence[str]] = None):
        self.range_days = range_days
        self.cohort = Cohort.parse(cohort)
        self.repos = list(repos) if repos else None


def day_bucket(event_time: datetime) -> str:
    """ISO timestamp of the UTC midnight starting the event's calendar day."""
    day = event_time.astimezone(timezone.utc)
    return day.strftime('%Y-%m-%dT00:00:00.000Z')


def _failure(slot: str, user: str, result: SlotResult) -> UpstreamFailure:
    failure = UpstreamFailure(slot, user, result.error)
    log.warning("stats.category_failed", slot=slot, user=user, error=str(failure), exc_info=result.error)
    return failure


class ContributorStatsService:
    """
    Aggregates per-user contribution statistics from the category stores.
    """

    def __init__(self, stores: ContributorStores, pool_size: Optional[int] = None, clock=utc_now):
        self.stores = stores
        self.pool_size = pool_size or default_pool_size()
        self.clock = clock

    # --- stat snapshots ---

    def compute_contributor_stat(self, user: str, options: StatOptions) -> ContributorStat:
        """Count every category for one user and merge by position.

        A failing category keeps its zero default and is left out of the
        rollups; the failure is logged, never raised.
        """
        slots = self.stores.slots()
        tasks = [
            (lambda store=store: store.count_for_author(user, options.cohort, options.range_days, options.repos))
            for _, store in slots
        ]
        results = run_corresponding(tasks, self.pool_size)

        stat = ContributorStat(user)
        for (slot, _), result in zip(slots, results):
            if not result.ok:
                _failure(slot, user, result)
                continue
            stat.add(slot, int(result.value or 0))
        return stat

    def compute_contributor_stats(self, users: Sequence[str], options: StatOptions) -> List[ContributorStat]:
        """compute_contributor_stat for many users; failing users are logged and omitted."""
        tasks = [(lambda u=u: self.compute_contributor_stat(u, options)) for u in users]
        stats = []
        for user, result in zip(users, run_corresponding(tasks, self.pool_size)):
            if not result.ok:
                log.error("stats.user_failed", user=user, error=str(result.error), exc_info=result.error)
                continue
            stats.append(result.value)
        return stats

    # --- per-user event fan-out used by the breakdowns ---

    def _list_events(self, user: str, range_days: int, repos, slot_names: Sequence[str] = None):
        """Fetch one user's event lists per slot; failed slots come back as None."""
        wanted = [(name, store) for name, store in self.stores.slots() if slot_names is None or name in slot_names]
        tasks = [(lambda store=store: store.list_for_login(user, range_days, repos)) for _, store in wanted]
        lists = []
        for (slot, _), result in zip(wanted, run_corresponding(tasks, self.pool_size)):
            if not result.ok:
                _failure(slot, user, result)
                lists.append((slot, None))
                continue
            lists.append((slot, result.value or []))
        return lists

    def compute_contributions_by_project(self, users: Sequence[str], options: StatOptions) -> Dict[str, ContributionsByProject]:
        """Per-repository totals for a set of users.

        Users are processed one at a time so the shared map only ever has a
        single writer.
        """
        aggregated: Dict[str, ContributionsByProject] = {}
        for user in users:
            for slot, events in self._list_events(user, options.range_days, options.repos):
                if events is None:
                    continue
                for event in events:
                    record = aggregated.get(event.repo_name)
                    if record is None:
                        record = aggregated[event.repo_name] = ContributionsByProject(event.repo_name)
                    record.add(slot)
        return aggregated

    def _add_to_bucket(self, aggregated: Dict[str, ContributionStatTimeframe], event: EventRecord, tag: str):
        field = _TAG_FIELDS.get(tag)
        if field is None:
            log.error("stats.unhandled_category", tag=tag)
            return
        bucket = day_bucket(event.event_time)
        record = aggregated.get(bucket)
        if record is None:
            record = aggregated[bucket] = ContributionStatTimeframe(bucket)
        record.add(field)

    def compute_contributions_by_timeframe(self, users: Sequence[str], options: StatOptions) -> Dict[str, ContributionStatTimeframe]:
        """Per-UTC-day totals for a set of users, keyed by day bucket."""
        aggregated: Dict[str, ContributionStatTimeframe] = {}
        slot_tags = dict(SLOT_TAGS)
        for user in users:
            for slot, events in self._list_events(user, options.range_days, options.repos):
                if events is None:
                    continue
                for event in events:
                    self._add_to_bucket(aggregated, event, slot_tags[slot])
        return aggregated

    # --- cohort membership ---

    def find_contributors_by_type(self, users: Sequence[str], options: StatOptions) -> List[str]:
        """Return the users belonging to the options' cohort.

        Membership is judged from pull-request activity over both cohort
        windows, so ALL only keeps users with a pull request in the current
        window. Users whose lookup fails are left out.
        """
        users = filter_logins(users)
        store = self.stores.prs_created
        tasks = [(lambda u=u: store.list_for_login(u, options.range_days * 2, options.repos)) for u in users]
        now = self.clock()
        members = []
        for user, result in zip(users, run_corresponding(tasks, self.pool_size)):
            if not result.ok:
                _failure('prs_created', user, result)
                continue
            times = [e.event_time for e in result.value or []]
            if matches_cohort(options.cohort, times, options.range_days, now):
                members.append(user)
        return members

    def compute_contributor_categories_by_timeframe(self, users: Sequence[str], options: StatOptions) -> Dict[str, ContributorCategoryTimeframe]:
        """Per-UTC-day event counts split by contributor cohort.

        Each cohort's user list is computed separately; a user's events are
        counted once for every cohort they belong to. Users without pull
        request activity belong to none and are not counted.
        """
        cohorts = (Cohort.ALL, Cohort.ACTIVE, Cohort.NEW, Cohort.ALUMNI)
        members = {
            c: set(self.find_contributors_by_type(users, StatOptions(options.range_days, c, options.repos)))
            for c in cohorts
        }
        aggregated: Dict[str, ContributorCategoryTimeframe] = {}
        for user in sorted(set().union(*members.values())):
            user_cohorts = [c.value for c in cohorts if user in members[c]]
            for _, events in self._list_events(user, options.range_days, options.repos, CATEGORY_TIMEFRAME_SLOTS):
                for event in events or []:
                    bucket = day_bucket(event.event_time)
                    record = aggregated.get(bucket)
                    if record is None:
                        record = aggregated[bucket] = ContributorCategoryTimeframe(bucket)
                    for name in user_cohorts:
                        setattr(record, name, getattr(record, name) + 1)
        return aggregated


def sorted_buckets(aggregated: dict) -> list:
    """Breakdown values ordered newest bucket first."""
    return [aggregated[k] for k in sorted(aggregated, reverse=True)]


def order_contributor_stats(stats: List[ContributorStat], order_by: str = 'total_contributions', direction: str = 'desc') -> List[ContributorStat]:
    """Sort stats in place by one counter; ties keep their input order."""
    if order_by not in ORDER_FIELDS:
        return stats
    stats.sort(key=lambda s: getattr(s, order_by), reverse=(direction or 'desc').lower() == 'desc')
    return stats


def paginate_contributor_stats(stats: List[ContributorStat], skip: int = 0, limit: int = 10) -> StatsPage:
    total = sum(s.total_contributions for s in stats)
    return StatsPage(stats[skip:skip + limit], item_count=len(stats), total_count=total, skip=skip, limit=limit)
