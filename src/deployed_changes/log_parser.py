"""
Parsing of raw git history output into commit records.

The history is expected in the form produced by
``git log --pretty=format:"commit %H%n%B"``: a ``commit <sha>`` boundary line
followed by the raw message body. git emits newest first; the parsed
sequence is oldest first.
"""

from collections.abc import Iterable

from .config import DEFAULT_TRAILER_PREFIXES
from .data_models import CommitRecord, CommitSequence, LogParseError

COMMIT_MARKER = "commit "


def is_ticket_line(line: str, trailer_prefixes: Iterable[str]) -> bool:
    """True unless the line is an administrative trailer (prefix, case-sensitive)."""
    return not any(line.startswith(prefix) for prefix in trailer_prefixes)


def decode_log(raw_output: bytes) -> str:
    """Decode captured history output.

    Raises:
        LogParseError: If the output is not valid UTF-8
    """
    try:
        return raw_output.decode("utf-8")
    except UnicodeDecodeError as e:
        raise LogParseError(
            f"history output is not valid UTF-8 at byte {e.start}"
        ) from e


def parse_commit_log(
    raw_log: str,
    trailer_prefixes: Iterable[str] = DEFAULT_TRAILER_PREFIXES,
) -> CommitSequence:
    """Split history text into commits, oldest first.

    Blank lines are dropped, text before the first boundary line is
    discarded, and trailer lines are kept in ``message_lines`` but left out
    of ``ticket_lines``. Input without any boundary yields an empty list.
    """
    prefixes = tuple(trailer_prefixes)
    commits: CommitSequence = []
    current: CommitRecord | None = None

    # Only newlines separate lines; form feeds and similar stay in the message
    for raw_line in raw_log.split("\n"):
        line = raw_line.removesuffix("\r")
        if not line.strip():
            continue

        if line.startswith(COMMIT_MARKER):
            if current is not None:
                commits.insert(0, current)
            fields = line[len(COMMIT_MARKER) :].split()
            current = CommitRecord(hash=fields[0] if fields else "")
            continue

        if current is None:
            # preamble
            continue

        current.message_lines.append(line)
        if is_ticket_line(line, prefixes):
            current.ticket_lines.append(line)

    if current is not None:
        commits.insert(0, current)

    return commits
