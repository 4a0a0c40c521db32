"""
Deployed change aggregation toolkit.

Reconciles deployed service versions against git history and reports the
commits (and their ticket lines) landed upstream since each deployment.
"""

from .config import ChangesConfig
from .data_models import (
    ChangeRequest,
    CommitRecord,
    CommitSequence,
    Failure,
    RequestOutcome,
    VersionParseFailure,
    VersionReference,
)
from .history_query import HistoryQueryExecutor
from .log_parser import parse_commit_log
from .scheduler import ChangeAggregationScheduler, aggregate_changes
from .version_parser import parse_version

__all__ = [
    "ChangesConfig",
    "ChangeRequest",
    "CommitRecord",
    "CommitSequence",
    "Failure",
    "RequestOutcome",
    "VersionParseFailure",
    "VersionReference",
    "HistoryQueryExecutor",
    "ChangeAggregationScheduler",
    "aggregate_changes",
    "parse_commit_log",
    "parse_version",
]
