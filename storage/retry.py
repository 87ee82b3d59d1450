"""
Retry/backoff and rate-limit-aware HTTP GET helper.
Centralizes request retry logic so callers (e.g. storage.cache) can use it.
"""

import email.utils
import os
import random
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests
import structlog

log = structlog.get_logger("contrib_stats.http")

# retry/backoff defaults from environment
DEFAULT_MAX_RETRIES = int(os.getenv("CONTRIB_MAX_RETRIES", "3"))
DEFAULT_BACKOFF_BASE = float(os.getenv("CONTRIB_BACKOFF_BASE", "0.5"))
_env_jitter = os.getenv("CONTRIB_BACKOFF_JITTER")
DEFAULT_BACKOFF_JITTER = float(_env_jitter) if _env_jitter else None
DEFAULT_MAX_BACKOFF = float(os.getenv("CONTRIB_MAX_BACKOFF", "120.0"))

# never sleep longer than this for a single wait, whatever the server asks for
MAX_SINGLE_WAIT = 300.0

# runtime overrides
_runtime: Dict[str, Optional[float]] = {
    'max_retries': None,
    'backoff_base': None,
    'backoff_jitter': None,
    'max_backoff': None,
}


def configure_retry(
    max_retries: Optional[int] = None,
    backoff_base: Optional[float] = None,
    backoff_jitter: Optional[float] = None,
    max_backoff: Optional[float] = None,
):
    """Configure retry/backoff defaults at runtime (e.g. from CLI)."""
    if max_retries is not None:
        _runtime['max_retries'] = int(max_retries)
    if backoff_base is not None:
        _runtime['backoff_base'] = float(backoff_base)
    if backoff_jitter is not None:
        _runtime['backoff_jitter'] = float(backoff_jitter)
    if max_backoff is not None:
        _runtime['max_backoff'] = float(max_backoff)


def _first_set(*values):
    for v in values:
        if v is not None:
            return v
    return None


def parse_retry_after(raw: Optional[str]) -> Optional[float]:
    """Seconds to wait from a Retry-After header (delta seconds or HTTP date)."""
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        pass
    try:
        dt = email.utils.parsedate_to_datetime(raw)
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return max(0.0, (dt - datetime.now(timezone.utc)).total_seconds())


def _header_number(headers, key: str, cast):
    try:
        val = headers.get(key)
        return cast(val) if val is not None else None
    except (TypeError, ValueError):
        return None


def _rate_limit_wait(resp) -> Optional[float]:
    """Wait demanded by the server, or None when the response is not rate limited."""
    headers = getattr(resp, 'headers', None) or {}
    retry_after = parse_retry_after(headers.get('Retry-After'))
    if retry_after is not None:
        return retry_after
    remaining = _header_number(headers, 'X-RateLimit-Remaining', int)
    if remaining is not None and remaining <= 0:
        reset = _header_number(headers, 'X-RateLimit-Reset', float)
        return max(0.0, reset - time.time()) if reset else 0.0
    if resp.status_code in (429, 503):
        return 0.0
    return None


def _body(resp):
    try:
        return resp.json()
    except ValueError:
        return getattr(resp, 'text', None)


def perform_request_with_retries(
    url: str,
    headers: Dict[str, str],
    params: Dict[str, Any],
    cache=None,
    cache_key: str = '',
    min_wait: float = 0.0,
    max_retries: Optional[int] = None,
    backoff_base: Optional[float] = None,
    backoff_jitter: Optional[float] = None,
    max_backoff: Optional[float] = None,
) -> Dict[str, Any]:
    """GET ``url`` retrying on connection errors and rate limiting.

    Returns ``{'response', 'status', 'timestamp'}``. Successful bodies are
    stored in ``cache`` under ``cache_key`` when both are given. Non-retryable
    error statuses are returned as-is; after the last attempt the most recent
    failure is returned with status 0 for connection errors.
    """
    attempts = int(_first_set(_runtime['max_retries'], max_retries, DEFAULT_MAX_RETRIES))
    base = float(_first_set(backoff_base, min_wait or None, _runtime['backoff_base'], DEFAULT_BACKOFF_BASE))
    jitter = float(_first_set(backoff_jitter, _runtime['backoff_jitter'], DEFAULT_BACKOFF_JITTER, base))
    cap = float(_first_set(max_backoff, _runtime['max_backoff'], DEFAULT_MAX_BACKOFF))

    backoff = base
    last: Dict[str, Any] = {'response': None, 'status': 0, 'timestamp': time.time()}
    for attempt in range(max(1, attempts)):
        try:
            resp = requests.get(url, headers=headers or {}, params=params or {})
        except requests.RequestException as ex:
            log.info("http.request_error", url=url, attempt=attempt + 1, error=str(ex))
            last = {'response': str(ex), 'status': 0, 'timestamp': time.time()}
            wait = backoff
        else:
            if resp.status_code == 200:
                body = _body(resp)
                if cache is not None and cache_key:
                    cache.set(cache_key, body, 200)
                return {'response': body, 'status': 200, 'timestamp': time.time()}
            server_wait = _rate_limit_wait(resp)
            if server_wait is None:
                return {'response': _body(resp), 'status': resp.status_code, 'timestamp': time.time()}
            log.info("http.rate_limited", url=url, status=resp.status_code, attempt=attempt + 1, wait=server_wait)
            last = {'response': getattr(resp, 'text', None), 'status': resp.status_code, 'timestamp': time.time()}
            wait = max(server_wait, backoff)
        if attempt + 1 < attempts:
            time.sleep(min(wait + random.uniform(0, jitter), MAX_SINGLE_WAIT))
            backoff = min(backoff * 2, cap)
    log.warning("http.retries_exhausted", url=url, status=last['status'], attempts=attempts)
    return last


__all__ = ["configure_retry", "perform_request_with_retries", "parse_retry_after"]
