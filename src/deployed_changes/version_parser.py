"""
Parsing of deployed version tokens.

A token looks like ``BRANCH-BUILDDATE-gHASH``. The branch may itself contain
dashes, so the token is split from the right.
"""

from .data_models import VersionParseFailure, VersionReference

SEPARATOR = "-"
HASH_MARKER = "g"

MISSING_HASH_MARKER = "missing hash marker"
MALFORMED_HASH_MARKER = "malformed hash marker"
MISSING_BUILD_DATE = "missing build date"


def parse_version(token: str) -> VersionReference | VersionParseFailure:
    """Parse a version token into its branch, build date and content hash.

    Args:
        token: Raw version string as reported by the deployed service

    Returns:
        VersionReference on success, VersionParseFailure describing the
        first problem found otherwise.

    Examples:
        >>> parse_version("release-1.2-20200101T000000Z-gabc1234").branch
        'release-1.2'
    """
    raw = token.strip()

    hash_sep = raw.rfind(SEPARATOR)
    if hash_sep < 0:
        return VersionParseFailure(token=raw, reason=MISSING_HASH_MARKER)

    if raw[hash_sep + 1 : hash_sep + 2] != HASH_MARKER:
        return VersionParseFailure(token=raw, reason=MALFORMED_HASH_MARKER)

    date_sep = raw.rfind(SEPARATOR, 0, hash_sep)
    if date_sep < 0:
        return VersionParseFailure(token=raw, reason=MISSING_BUILD_DATE)

    # An empty branch ("-date-ghash") is accepted as-is
    return VersionReference(
        branch=raw[:date_sep],
        build_date=raw[date_sep + 1 : hash_sep],
        content_hash=raw[hash_sep + 2 :],
        raw=raw,
    )
