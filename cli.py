"""
CLI entry point for contrib_stats. Wires the pipeline: ingest -> store -> aggregate/score -> report
"""

import argparse
import json
import os
import sys

import structlog

from errors import ContribStatsError
from ingest.github import GitHubEventsClient
from log_config import setup_logging
from normalize.util import ALLOWED_RANGES, filter_logins, parse_repos, validate_range
from report.renderer import (
    CATEGORY_COLUMNS,
    FORMATS,
    PROJECT_COLUMNS,
    SCORE_COLUMNS,
    STAT_COLUMNS,
    TIMEFRAME_COLUMNS,
    render,
)
from scoring.cohort import Cohort
from scoring.oscr import score_contributors
from scoring.stats import (
    ORDER_FIELDS,
    ContributorStatsService,
    StatOptions,
    order_contributor_stats,
    paginate_contributor_stats,
    sorted_buckets,
)
from scoring.utils import configure_pool, load_preset, load_scoring_config
from storage.cache import Cache, configure_retry
from storage.events import EventStore
from storage.stores import ContributorStores

log = structlog.get_logger("contrib_stats.cli")


def _print_json(obj):
    print(json.dumps(obj, indent=2, default=str))


def _remove_cache_key(cache: Cache, key: str, force: bool):
    if not force:
        confirm = input(f"Remove cache key '{key}' from {cache.path}? [y/N]: ")
        if confirm.strip().lower() not in ("y", "yes"):
            print("Aborted cache key removal.")
            return
    removed = cache.delete_key(key)
    if removed:
        print(f"Removed {removed} row(s) for key: {key}")
    else:
        print(f"Cache key not found: {key}")


def _clear_cache(cache: Cache, force: bool):
    if not force:
        confirm = input(f"Clear the cache at {cache.path}? This cannot be undone. [y/N]: ")
        if confirm.strip().lower() not in ("y", "yes"):
            print("Aborted cache clear.")
            return
    cache.clear()
    print(f"Cleared cache at {cache.path}")


def _print_cache_get(cache: Cache, key: str):
    entry = cache.get(key)
    if entry is None:
        print(f"Cache key not found: {key}")
    else:
        _print_json(entry)


def handle_cache_command(args):
    """The ``cache`` subcommand: inspect or manage the HTTP response cache."""
    with Cache(args.cache or "cache.db") as cache:
        flag_actions = [
            (args.info, lambda: _print_json(cache.stats())),
            (args.list, lambda: _print_json(cache.list_keys(limit=1000))),
            (bool(args.get), lambda: _print_cache_get(cache, args.get)),
            (bool(args.remove), lambda: _remove_cache_key(cache, args.remove, args.force)),
            (args.clear, lambda: _clear_cache(cache, args.force)),
        ]
        for enabled, handler in flag_actions:
            if enabled:
                handler()
                return
        _print_json(cache.stats())


def load_users(users_arg: str = '', users_file: str = '') -> list:
    """Collect logins from a comma separated list and/or a file.

    The file may hold a JSON array of logins or one login per line.
    Bots and blanks are dropped.
    """
    users = (users_arg or '').split(',')
    if users_file:
        with open(users_file, 'r', encoding='utf-8') as f:
            content = f.read()
        try:
            parsed = json.loads(content)
        except ValueError:
            parsed = content.splitlines()
        if not isinstance(parsed, list):
            raise ContribStatsError(f"users file {users_file} must hold a list of logins")
        users.extend(str(u) for u in parsed)
    return filter_logins(users)


def _write_report_file(path: str, content: str):
    out_dir = os.path.dirname(path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    # newline='' keeps CSV line endings as rendered
    with open(path, 'w', encoding='utf-8', newline='') as fh:
        fh.write(content)
    print(f"Wrote report to {path}")


def write_output(rendered: str, args):
    """Write to --out-file when given, stdout otherwise."""
    out_file = (getattr(args, 'out_file', '') or '').strip()
    if out_file:
        _write_report_file(out_file, rendered)
    else:
        print(rendered)


def _options(args) -> StatOptions:
    cohort = getattr(args, 'cohort', Cohort.ALL.value)
    return StatOptions(range_days=args.range, cohort=Cohort.parse(cohort), repos=parse_repos(args.repos))


def _scoring_config(args):
    if getattr(args, 'preset', ''):
        return load_preset(args.preset, args.config or None)
    return load_scoring_config(args.config or None)


def run_ingest(args, events: EventStore) -> str:
    users = load_users(args.users, args.users_file)
    token = args.github_token or os.getenv('GITHUB_TOKEN')
    cache = Cache(args.cache) if args.cache else None
    try:
        client = GitHubEventsClient(token, base_url=args.github_url or None, cache=cache)
        inserted = client.load_users(users, events)
    finally:
        if cache:
            cache.close()
    return json.dumps({'inserted': inserted, 'stored': events.stats()}, indent=2)


def run_stats(args, events: EventStore) -> str:
    users = load_users(args.users, args.users_file)
    service = ContributorStatsService(ContributorStores.from_event_store(events))
    stats = service.compute_contributor_stats(users, _options(args))
    order_contributor_stats(stats, args.order_by, args.direction)
    page = paginate_contributor_stats(stats, args.skip, args.limit)
    return render(page, args.output, STAT_COLUMNS, title="Contributor stats")


def run_projects(args, events: EventStore) -> str:
    users = load_users(args.users, args.users_file)
    service = ContributorStatsService(ContributorStores.from_event_store(events))
    projects = service.compute_contributions_by_project(users, _options(args))
    rows = sorted(projects.values(), key=lambda p: (-p.total_contributions, p.repo_name))
    return render(rows, args.output, PROJECT_COLUMNS, title="Contributions by project")


def run_timeframe(args, events: EventStore) -> str:
    users = load_users(args.users, args.users_file)
    service = ContributorStatsService(ContributorStores.from_event_store(events))
    options = _options(args)
    # only members of the requested cohort are bucketed
    members = service.find_contributors_by_type(users, options)
    buckets = service.compute_contributions_by_timeframe(members, options) if members else {}
    return render(sorted_buckets(buckets), args.output, TIMEFRAME_COLUMNS, title="Contributions by day")


def run_categories(args, events: EventStore) -> str:
    users = load_users(args.users, args.users_file)
    service = ContributorStatsService(ContributorStores.from_event_store(events))
    buckets = service.compute_contributor_categories_by_timeframe(users, _options(args))
    return render(sorted_buckets(buckets), args.output, CATEGORY_COLUMNS, title="Contributors by cohort")


def run_score(args, events: EventStore) -> str:
    users = load_users(args.users, args.users_file)
    scores = score_contributors(ContributorStores.from_event_store(events), users, args.range, _scoring_config(args))
    return render(scores, args.output, SCORE_COLUMNS, title="Contributor ratings")


COMMANDS = {
    'ingest': run_ingest,
    'stats': run_stats,
    'projects': run_projects,
    'timeframe': run_timeframe,
    'categories': run_categories,
    'score': run_score,
}


def _range_arg(value: str) -> int:
    try:
        return validate_range(value)
    except ContribStatsError as ex:
        raise argparse.ArgumentTypeError(str(ex))


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--db", type=str, default=os.getenv('CONTRIB_DB', 'events.db'), help="Path to the SQLite event store (env CONTRIB_DB)")
    common.add_argument("--log-level", type=str, default=None, help="Log level (overrides CONTRIB_LOG_LEVEL env)")
    common.add_argument("--log-format", type=str, choices=("console", "json"), default=None, help="Log format (overrides CONTRIB_LOG_FORMAT env)")
    common.add_argument("--pool-size", type=int, default=None, help="Concurrent lookups per user (overrides CONTRIB_POOL_SIZE env)")

    users = argparse.ArgumentParser(add_help=False)
    users.add_argument("--users", type=str, default="", help="Comma separated GitHub logins")
    users.add_argument("--users-file", type=str, default="", help="JSON array or newline separated file of logins")

    report = argparse.ArgumentParser(add_help=False)
    report.add_argument("--range", type=_range_arg, default=30, help=f"Range in days ({', '.join(str(r) for r in ALLOWED_RANGES)})")
    report.add_argument("--output", type=str, choices=FORMATS, default="text", help="Output format")
    report.add_argument("--out-file", type=str, default="", help="Write the report to this path instead of stdout")

    repos = argparse.ArgumentParser(add_help=False)
    repos.add_argument("--repos", type=str, default=None, help="Comma separated owner/name repo filter")

    cohort = argparse.ArgumentParser(add_help=False)
    cohort.add_argument("--cohort", type=str, default=Cohort.ALL.value, help="Contributor cohort: all, active, new, alumni")

    parser = argparse.ArgumentParser(prog="contrib-stats", description="Contributor statistics and ratings from GitHub activity")
    sub = parser.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", parents=[common, users], help="Fetch public GitHub events into the event store")
    ingest.add_argument("--github-token", type=str, default="", help="GitHub token (env GITHUB_TOKEN)")
    ingest.add_argument("--github-url", type=str, default="", help="GitHub API base URL")
    ingest.add_argument("--cache", type=str, default="", help="Path to SQLite HTTP cache file (optional)")
    ingest.add_argument("--max-retries", type=int, default=None, help="Maximum retry attempts for HTTP requests (overrides CONTRIB_MAX_RETRIES env)")
    ingest.add_argument("--backoff-base", type=float, default=None, help="Base backoff seconds (overrides CONTRIB_BACKOFF_BASE env)")
    ingest.add_argument("--backoff-jitter", type=float, default=None, help="Jitter seconds added to backoff (overrides CONTRIB_BACKOFF_JITTER env)")
    ingest.add_argument("--max-backoff", type=float, default=None, help="Maximum backoff cap in seconds (overrides CONTRIB_MAX_BACKOFF env)")

    stats = sub.add_parser("stats", parents=[common, users, report, repos, cohort], help="Per-contributor category counts")
    stats.add_argument("--order-by", type=str, choices=ORDER_FIELDS, default="total_contributions")
    stats.add_argument("--direction", type=str, choices=("asc", "desc"), default="desc")
    stats.add_argument("--skip", type=int, default=0)
    stats.add_argument("--limit", type=int, default=10)

    sub.add_parser("projects", parents=[common, users, report, repos], help="Contributions per repository")
    sub.add_parser("timeframe", parents=[common, users, report, repos, cohort], help="Contributions per UTC day")
    sub.add_parser("categories", parents=[common, users, report, repos], help="Events per day split by contributor cohort")

    score = sub.add_parser("score", parents=[common, users, report], help="Quality, confidence and OSCR per contributor")
    score.add_argument("--config", type=str, default="", help="Scoring YAML (env CONTRIB_SCORING_CONFIG)")
    score.add_argument("--preset", type=str, default="", help="Named preset from the scoring YAML")

    cache = sub.add_parser("cache", help="Inspect or manage the HTTP response cache")
    cache.add_argument("--cache", type=str, default="cache.db", help="Path to SQLite HTTP cache file")
    cache.add_argument("--info", action="store_true", help="Show cache statistics")
    cache.add_argument("--list", action="store_true", help="List cache keys")
    cache.add_argument("--get", type=str, default="", help="Show one cache entry")
    cache.add_argument("--remove", type=str, default="", help="Remove one cache key")
    cache.add_argument("--clear", action="store_true", help="Clear the cache")
    cache.add_argument("--force", action="store_true", help="Skip confirmation for --clear and --remove")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(getattr(args, 'log_level', None), getattr(args, 'log_format', None))

    if args.command == 'cache':
        handle_cache_command(args)
        return 0

    configure_pool(args.pool_size)
    if args.command == 'ingest':
        configure_retry(max_retries=args.max_retries, backoff_base=args.backoff_base, backoff_jitter=args.backoff_jitter, max_backoff=args.max_backoff)

    try:
        with EventStore(args.db) as events:
            rendered = COMMANDS[args.command](args, events)
    except (ContribStatsError, ValueError, OSError) as ex:
        log.error("cli.failed", command=args.command, error=str(ex))
        print(f"error: {ex}", file=sys.stderr)
        return 1
    write_output(rendered, args)
    return 0


if __name__ == "__main__":
    sys.exit(main())
