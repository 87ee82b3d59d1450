"""
Report renderer: text, Markdown, CSV and JSON output for contributor stats,
project and timeframe breakdowns and contributor scores.

Every renderer accepts a list of rows (model objects exposing ``to_dict``
or plain dicts) and a column order.
"""

import csv
import io
import json
from typing import Any, Dict, List, Optional, Sequence

from errors import ValidationError
from scoring.models import (
    COMMENT_FIELDS,
    CONTRIBUTION_FIELDS,
    ContributorScore,
    StatsPage,
)

FORMATS = ('text', 'md', 'csv', 'json')

STAT_COLUMNS = ['login'] + list(CONTRIBUTION_FIELDS) + ['total_contributions'] + list(COMMENT_FIELDS) + ['comments']
PROJECT_COLUMNS = ['repo_name'] + list(CONTRIBUTION_FIELDS) + ['total_contributions'] + list(COMMENT_FIELDS) + ['comments']
TIMEFRAME_COLUMNS = ['bucket'] + list(CONTRIBUTION_FIELDS) + ['total_contributions'] + list(COMMENT_FIELDS) + ['comments']
CATEGORY_COLUMNS = ['bucket', 'all', 'active', 'new', 'alumni']
SCORE_COLUMNS = ['login', 'quality', 'confidence', 'oscr']


def _as_dict(row: Any) -> Dict[str, Any]:
    if isinstance(row, dict):
        return row
    return row.to_dict()


def _cell(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.3f}"
    if value is None:
        return ''
    return str(value)


def render_text(rows: Sequence[Any], columns: Sequence[str]) -> str:
    """Fixed-width plain-text table."""
    table = [[_cell(_as_dict(r).get(c)) for c in columns] for r in rows]
    widths = [max([len(c)] + [len(line[i]) for line in table]) for i, c in enumerate(columns)]
    lines = ["  ".join(c.ljust(w) for c, w in zip(columns, widths))]
    lines.append("  ".join('-' * w for w in widths))
    for line in table:
        lines.append("  ".join(v.ljust(w) for v, w in zip(line, widths)))
    return "\n".join(lines)


def render_markdown(rows: Sequence[Any], columns: Sequence[str], title: Optional[str] = None) -> str:
    md = []
    if title:
        md.append(f"# {title}\n")
    md.append("| " + " | ".join(columns) + " |")
    md.append("|" + "|".join(" --- " for _ in columns) + "|")
    for r in rows:
        d = _as_dict(r)
        md.append("| " + " | ".join(_cell(d.get(c)) for c in columns) + " |")
    return "\n".join(md)


def render_csv(rows: Sequence[Any], columns: Sequence[str]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=list(columns), extrasaction='ignore', lineterminator='\n')
    writer.writeheader()
    for r in rows:
        writer.writerow(_as_dict(r))
    return buf.getvalue()


def render_json(rows: Any) -> str:
    """JSON document; a StatsPage keeps its ``data``/``meta`` envelope."""
    if isinstance(rows, StatsPage):
        payload = rows.to_dict()
    else:
        payload = [_as_dict(r) for r in rows]
    return json.dumps(payload, indent=2)


def _page_footer(page: StatsPage) -> str:
    return (f"items {page.item_count} (skip {page.skip}, limit {page.limit}), "
            f"total contributions {page.total_count}, next page: {'yes' if page.has_next_page else 'no'}")


def render(rows: Any, fmt: str = 'text', columns: Optional[Sequence[str]] = None, title: Optional[str] = None) -> str:
    """Render ``rows`` in one of FORMATS.

    ``rows`` may be a StatsPage, in which case text and Markdown output get a
    paging footer. Columns default to the stat columns, or the score columns
    for ContributorScore rows.
    """
    if fmt not in FORMATS:
        raise ValidationError(f"unknown output format '{fmt}'; expected one of {', '.join(FORMATS)}")
    page = rows if isinstance(rows, StatsPage) else None
    data: List[Any] = list(page.data) if page else list(rows)
    if columns is None:
        columns = SCORE_COLUMNS if data and isinstance(data[0], ContributorScore) else STAT_COLUMNS

    if fmt == 'json':
        return render_json(page if page else data)
    if fmt == 'csv':
        return render_csv(data, columns)
    if fmt == 'md':
        out = render_markdown(data, columns, title)
        return out + "\n\n_" + _page_footer(page) + "_" if page else out
    out = render_text(data, columns)
    if title:
        out = title + "\n\n" + out
    return out + "\n" + _page_footer(page) if page else out
