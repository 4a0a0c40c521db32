"""
Data models for deployed change aggregation.
"""

from dataclasses import dataclass, field
from pathlib import Path


class DeployedChangesError(Exception):
    """Base exception for deployed change aggregation."""

    pass


class HistoryQueryError(DeployedChangesError):
    """The git history query exited non-zero, timed out or overflowed."""

    pass


class LogParseError(DeployedChangesError):
    """Raw history output could not be turned into commit records."""

    pass


class InputReadError(DeployedChangesError):
    """The input stream itself could not be read. Fatal for the whole run."""

    pass


class SchedulerClosedError(DeployedChangesError):
    """A request was submitted after the scheduler stopped accepting work."""

    pass


@dataclass(frozen=True)
class VersionReference:
    """A parsed ``BRANCH-BUILDDATE-gHASH`` version token."""

    branch: str  # may itself contain "-"
    build_date: str  # opaque build timestamp, e.g. "20200101T000000Z"
    content_hash: str  # abbreviated commit sha
    raw: str  # trimmed input token, kept for display

    def __str__(self) -> str:
        return self.raw


@dataclass(frozen=True)
class VersionParseFailure:
    """Why a version token could not be parsed."""

    token: str
    reason: str

    def __str__(self) -> str:
        return f"{self.reason}: {self.token!r}"


@dataclass(frozen=True)
class ChangeRequest:
    """One service to reconcile against its repository history."""

    service: str
    location: Path
    version: VersionReference
    request_id: str = ""

    def __post_init__(self):
        """Default the request id to the service name."""
        if not self.request_id:
            object.__setattr__(self, "request_id", self.service)


@dataclass
class CommitRecord:
    """A single commit from the history output."""

    hash: str
    message_lines: list[str] = field(default_factory=list)
    ticket_lines: list[str] = field(default_factory=list)


# Oldest commit first
CommitSequence = list[CommitRecord]


@dataclass
class Failure:
    """Terminal failure for one request; never retried."""

    service: str
    version: str
    message: str
    cause: BaseException | None = None

    def __str__(self) -> str:
        return self.message


@dataclass
class RequestOutcome:
    """Result of one request as delivered by the scheduler."""

    request_id: str
    request: ChangeRequest
    result: CommitSequence | Failure

    @property
    def succeeded(self) -> bool:
        """True when the history query produced a commit sequence."""
        return not isinstance(self.result, Failure)

    @property
    def commits(self) -> CommitSequence:
        """Commits for a successful outcome, empty for a failure."""
        if isinstance(self.result, Failure):
            return []
        return self.result

    @property
    def failure(self) -> Failure | None:
        """The failure for an unsuccessful outcome."""
        return self.result if isinstance(self.result, Failure) else None
