"""
Normalization utility helpers.
Small helpers to normalize logins, repo filters, timestamps and raw GitHub
event payloads into normalize.models entities.
"""
from datetime import datetime, timezone
from typing import Dict, Any, Iterable, List, Optional

from errors import ValidationError
from normalize import models

ALLOWED_RANGES = (7, 30, 90, 180, 360)

# GitHub event type -> event category
_GITHUB_EVENT_TYPES = {
    'PushEvent': models.PUSH,
    'PullRequestEvent': models.PULL_REQUEST,
    'PullRequestReviewEvent': models.PULL_REQUEST_REVIEW,
    'IssuesEvent': models.ISSUES,
    'CommitCommentEvent': models.COMMIT_COMMENT,
    'IssueCommentEvent': models.ISSUE_COMMENT,
    'PullRequestReviewCommentEvent': models.PULL_REQUEST_REVIEW_COMMENT,
    'ForkEvent': models.FORK,
    'WatchEvent': models.STAR,
}


def normalize_login(login: Optional[str]) -> str:
    return (login or '').strip().lower()


def filter_logins(users: Iterable[str]) -> List[str]:
    """Lowercase logins and drop empty names and bot accounts.

    Bot accounts produce enormous event volumes and are never scored.
    Order is preserved and duplicates removed.
    """
    seen = set()
    result = []
    for u in users or []:
        login = normalize_login(u)
        if not login or login.endswith('[bot]') or login in seen:
            continue
        seen.add(login)
        result.append(login)
    return result


def parse_repos(raw: Optional[str]) -> Optional[List[str]]:
    """Split a comma delimited repo filter into lowercased names; None when empty."""
    if raw is None:
        return None
    repos = [r.strip().lower() for r in str(raw).split(',') if r.strip()]
    for r in repos:
        if '/' not in r:
            raise ValidationError(f"repo filter entries must look like owner/name, got '{r}'")
    return repos or None


def validate_range(range_days: int) -> int:
    try:
        value = int(range_days)
    except (TypeError, ValueError):
        raise ValidationError(f"range must be an integer, got {range_days!r}")
    if value not in ALLOWED_RANGES:
        raise ValidationError(f"range must be one of {', '.join(str(r) for r in ALLOWED_RANGES)}; got {value}")
    return value


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string (GitHub uses a trailing Z) or epoch into an aware UTC datetime."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    text = str(value).strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _pull_request_fields(pr: Dict[str, Any]) -> Dict[str, Any]:
    if not isinstance(pr, dict):
        return {}
    return {
        'pr_number': pr.get('number'),
        'pr_author_login': normalize_login((pr.get('user') or {}).get('login')) or None,
        'pr_is_merged': bool(pr.get('merged') or pr.get('merged_at')),
        'pr_active_lock_reason': pr.get('active_lock_reason'),
        'pr_created_at': parse_timestamp(pr.get('created_at')),
        'pr_closed_at': parse_timestamp(pr.get('closed_at')),
    }


def normalize_github_event(raw: Dict[str, Any]) -> Optional[models.EventRecord]:
    """Create an EventRecord from a raw GitHub events API payload.

    Returns None for event types that carry no contribution signal
    (e.g. CreateEvent, ReleaseEvent) or payloads missing an actor/repo.
    """
    if not isinstance(raw, dict):
        return None
    category = _GITHUB_EVENT_TYPES.get(raw.get('type'))
    if not category:
        return None
    actor = normalize_login((raw.get('actor') or {}).get('login'))
    repo = ((raw.get('repo') or {}).get('name') or '').lower()
    event_time = parse_timestamp(raw.get('created_at'))
    if not actor or not repo or event_time is None:
        return None

    payload = raw.get('payload') or {}
    fields: Dict[str, Any] = {}
    if category == models.PUSH:
        fields['push_ref'] = payload.get('ref')
        fields['push_num_commits'] = int(payload.get('distinct_size') or payload.get('size') or 0)
    elif category in (models.PULL_REQUEST, models.PULL_REQUEST_REVIEW, models.PULL_REQUEST_REVIEW_COMMENT):
        fields.update(_pull_request_fields(payload.get('pull_request')))

    return models.EventRecord(
        category=category,
        actor_login=actor,
        repo_name=repo,
        event_time=event_time,
        action=payload.get('action'),
        event_id=str(raw['id']) if raw.get('id') is not None else None,
        **fields,
    )
