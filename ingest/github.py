"""
GitHub public events ingestion.
Pulls a user's public event feed, normalizes it into EventRecords and loads
them into the event store. Without a token the unauthenticated rate limit applies.
"""
from typing import List, Dict, Any, Optional, Sequence

import structlog

from normalize.models import EventRecord
from normalize.util import filter_logins, normalize_github_event
from storage.cache import rate_limited_get, Cache
from storage.events import EventStore

log = structlog.get_logger("contrib_stats.ingest")

# the events API serves at most 10 pages of 30..100 events
MAX_PAGES = 10


class GitHubEventsClient:
    """Fetches and normalizes public events for GitHub users."""

    def __init__(self, token: Optional[str] = None, base_url: str = None, cache: Optional[Cache] = None, per_page: int = 100):
        self.token = token
        self.base_url = (base_url or "https://api.github.com").rstrip('/')
        self.headers = {"Accept": "application/vnd.github+json"}
        if self.token:
            self.headers["Authorization"] = f"Bearer {self.token}"
        self.cache = cache
        self.per_page = per_page

    def _fetch_page(self, login: str, page: int) -> Dict[str, Any]:
        url = f"{self.base_url}/users/{login}/events/public"
        params = {"page": page, "per_page": self.per_page}
        key = f"github:events:{login}:page:{page}:per:{self.per_page}"
        return rate_limited_get(url, headers=self.headers, params=params, cache=self.cache, cache_key=key)

    def fetch_user_events(self, login: str) -> List[Dict[str, Any]]:
        """Raw event payloads for ``login``, newest first.

        Paging stops at the first short page, a non-200 status or the API's page cap.
        """
        events: List[Dict[str, Any]] = []
        for page in range(1, MAX_PAGES + 1):
            res = self._fetch_page(login, page)
            status = res.get('status', 500)
            data = res.get('response')
            if status != 200 or not isinstance(data, list):
                if status != 200:
                    log.warning("ingest.page_failed", user=login, page=page, status=status)
                break
            events.extend(data)
            if len(data) < self.per_page:
                break
        return events

    def user_records(self, login: str) -> List[EventRecord]:
        records = []
        for raw in self.fetch_user_events(login):
            record = normalize_github_event(raw)
            if record is not None:
                records.append(record)
        return records

    def load_users(self, users: Sequence[str], store: EventStore) -> Dict[str, int]:
        """Ingest every (non-bot) user into ``store``; returns rows inserted per user."""
        inserted = {}
        for login in filter_logins(users):
            records = self.user_records(login)
            inserted[login] = store.add_many(records)
            log.info("ingest.user_loaded", user=login, fetched=len(records), inserted=inserted[login])
        return inserted
