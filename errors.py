"""
Error types shared by the scoring engine, stores and CLI.
"""


class ContribStatsError(Exception):
    """Base exception for contributor stats errors."""


class ValidationError(ContribStatsError):
    """Raised when caller supplied options are missing or malformed."""


class UpstreamFailure(ContribStatsError):
    """Raised (and usually recovered) when a collaborator call fails.

    Carries the slot the call was filling and the user it was made for so the
    failure can be logged with context before it is excluded from an aggregate.
    """

    def __init__(self, slot: str, user: str, cause: BaseException):
        self.slot = slot
        self.user = user
        self.cause = cause
        super().__init__(f"{slot} lookup failed for {user}: {cause}")
