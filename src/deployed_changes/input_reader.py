"""
Turns ``<service> <version>`` input lines into change requests.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from ..shared_utilities import RepositoryConfigManager, get_logging_manager
from .data_models import ChangeRequest, InputReadError, VersionParseFailure
from .version_parser import parse_version


@dataclass
class SkippedLine:
    """An input line that never became a request."""

    line_number: int
    line: str
    reason: str


@dataclass
class InputReadResult:
    """Requests built from the input plus the lines that were dropped."""

    requests: list[ChangeRequest] = field(default_factory=list)
    skipped: list[SkippedLine] = field(default_factory=list)


def read_requests(
    lines: Iterable[str],
    services: RepositoryConfigManager,
    repo_root: Path,
) -> InputReadResult:
    """Build a request per usable input line.

    Blank lines and ``#`` comments are ignored. Lines with fewer than two
    columns, unknown services, unparseable versions or versions without a
    content hash are logged and skipped.

    Raises:
        InputReadError: If the stream itself cannot be read or decoded
    """
    logging_manager = get_logging_manager()
    result = InputReadResult()

    def skip(line_number: int, line: str, reason: str) -> None:
        logging_manager.log_skipped_input(line_number, line, reason)
        result.skipped.append(SkippedLine(line_number, line, reason))

    try:
        for line_number, raw_line in enumerate(lines, start=1):
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue

            columns = line.split()
            if len(columns) < 2:
                skip(line_number, line, "expected '<service> <version>'")
                continue

            service, token = columns[0], columns[1]
            if not services.is_configured(service):
                skip(line_number, line, f"unknown service '{service}'")
                continue

            version = parse_version(token)
            if isinstance(version, VersionParseFailure):
                skip(line_number, line, f"bad version for {service}: {version}")
                continue
            if not version.content_hash:
                skip(line_number, line, f"empty content hash for {service}")
                continue

            result.requests.append(
                ChangeRequest(
                    service=service,
                    location=services.resolve_location(service, repo_root),
                    version=version,
                    request_id=f"{service}:{line_number}",
                )
            )
    except (OSError, UnicodeDecodeError) as e:
        raise InputReadError(f"failed to read input: {e}") from e

    return result
