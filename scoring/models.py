"""
Result models produced by the aggregators and scorers.
"""
from typing import Any, Dict

# fields rolled into total_contributions
CONTRIBUTION_FIELDS = ('commits', 'prs_created', 'prs_reviewed', 'issues_created')
# fields rolled into comments
COMMENT_FIELDS = ('commit_comments', 'issue_comments', 'pr_review_comments')
STAT_FIELDS = CONTRIBUTION_FIELDS + COMMENT_FIELDS


class CategoryCounts:
    """
    Per-category counters shared by every breakdown.
    """
    def __init__(self):
        self.commits = 0
        self.prs_created = 0
        self.prs_reviewed = 0
        self.issues_created = 0
        self.commit_comments = 0
        self.issue_comments = 0
        self.pr_review_comments = 0
        self.comments = 0
        self.total_contributions = 0

    def add(self, field: str, amount: int = 1):
        """Add to one category field and to the rollup it belongs to."""
        if field in CONTRIBUTION_FIELDS:
            self.total_contributions += amount
        elif field in COMMENT_FIELDS:
            self.comments += amount
        else:
            raise KeyError(f"unknown contribution field: {field}")
        setattr(self, field, getattr(self, field) + amount)

    def counts(self) -> Dict[str, int]:
        data = {f: getattr(self, f) for f in STAT_FIELDS}
        data['comments'] = self.comments
        data['total_contributions'] = self.total_contributions
        return data


class ContributorStat(CategoryCounts):
    """
    Snapshot of one user's activity for a (cohort, range, repo filter) query.
    """
    def __init__(self, login: str):
        super().__init__()
        self.login = login

    def to_dict(self) -> Dict[str, Any]:
        return dict(login=self.login, **self.counts())

    def __repr__(self):
        return f"ContributorStat({self.login!r}, total_contributions={self.total_contributions}, comments={self.comments})"


class ContributionsByProject(CategoryCounts):
    """
    Contributions of a set of users to a single repository.
    """
    def __init__(self, repo_name: str):
        super().__init__()
        self.repo_name = repo_name

    def to_dict(self) -> Dict[str, Any]:
        return dict(repo_name=self.repo_name, **self.counts())


class ContributionStatTimeframe(CategoryCounts):
    """
    Contributions of a set of users on one UTC calendar day.
    """
    def __init__(self, bucket: str):
        super().__init__()
        self.bucket = bucket  # ISO timestamp of the day's UTC midnight

    def to_dict(self) -> Dict[str, Any]:
        return dict(bucket=self.bucket, **self.counts())


class ContributorCategoryTimeframe:
    """
    Number of events per contributor cohort on one UTC calendar day.
    """
    def __init__(self, bucket: str, all: int = 0, active: int = 0, new: int = 0, alumni: int = 0):
        self.bucket = bucket
        self.all = all
        self.active = active
        self.new = new
        self.alumni = alumni

    def to_dict(self) -> Dict[str, Any]:
        return {'bucket': self.bucket, 'all': self.all, 'active': self.active, 'new': self.new, 'alumni': self.alumni}


class StatsPage:
    """
    A page of contributor stats plus totals computed over the full list.
    """
    def __init__(self, data: list, item_count: int, total_count: int, skip: int, limit: int):
        self.data = data
        self.item_count = item_count  # users in the full, unpaged list
        self.total_count = total_count  # sum of total_contributions over the full list
        self.skip = skip
        self.limit = limit

    @property
    def has_next_page(self) -> bool:
        return self.skip + self.limit < self.item_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            'data': [s.to_dict() for s in self.data],
            'meta': {
                'item_count': self.item_count,
                'total_count': self.total_count,
                'skip': self.skip,
                'limit': self.limit,
                'has_next_page': self.has_next_page,
            },
        }


class ContributorScore:
    """
    Quality, confidence and OSCR for one user.
    """
    def __init__(self, login: str, quality: int, confidence: float, oscr: float):
        self.login = login
        self.quality = quality
        self.confidence = confidence
        self.oscr = oscr

    def to_dict(self) -> Dict[str, Any]:
        return {'login': self.login, 'quality': self.quality, 'confidence': self.confidence, 'oscr': self.oscr}

    def __str__(self):
        return (
            f"Login: {self.login}\n"
            f"Quality: {self.quality}\n"
            f"Confidence: {self.confidence:.4f}\n"
            f"OSCR: {self.oscr:.4f}"
        )
