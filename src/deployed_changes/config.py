"""
Configuration for deployed change aggregation.
"""

import os
from dataclasses import dataclass, replace
from pathlib import Path

from dotenv import load_dotenv

from ..shared_utilities import get_logger

DEFAULT_CONCURRENCY = 4
DEFAULT_QUERY_TIMEOUT = 10.0  # seconds
DEFAULT_MAX_OUTPUT_BYTES = 100 * 1024
DEFAULT_UPSTREAM_BRANCH = "master"
DEFAULT_TRAILER_PREFIXES = ("Reviewed by:", "Approved by:")

logger = get_logger(__name__)


@dataclass(frozen=True)
class ChangesConfig:
    """Settings passed explicitly to the history executor and scheduler."""

    repo_root: Path = Path(".")
    concurrency: int = DEFAULT_CONCURRENCY
    query_timeout: float = DEFAULT_QUERY_TIMEOUT
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES
    upstream_branch: str = DEFAULT_UPSTREAM_BRANCH
    git_executable: str = "git"
    trailer_prefixes: tuple[str, ...] = DEFAULT_TRAILER_PREFIXES

    def __post_init__(self):
        """Validate and normalise settings."""
        object.__setattr__(self, "repo_root", Path(self.repo_root))
        object.__setattr__(self, "trailer_prefixes", tuple(self.trailer_prefixes))

        if self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {self.concurrency}")
        if self.query_timeout <= 0:
            raise ValueError(
                f"query_timeout must be positive, got {self.query_timeout}"
            )
        if self.max_output_bytes < 1:
            raise ValueError(
                f"max_output_bytes must be positive, got {self.max_output_bytes}"
            )
        if not self.upstream_branch:
            raise ValueError("upstream_branch must not be empty")

    @classmethod
    def from_env(cls, load_env_file: bool = True, **overrides) -> "ChangesConfig":
        """Build a config from DEPLOYED_CHANGES_* environment variables.

        Args:
            load_env_file: Load a .env file first
            **overrides: Explicit values (e.g. from CLI options); None is ignored

        Raises:
            ValueError: If an environment value cannot be converted
        """
        if load_env_file:
            load_dotenv()

        values: dict = {}
        env_map = {
            "repo_root": ("DEPLOYED_CHANGES_REPO_ROOT", Path),
            "concurrency": ("DEPLOYED_CHANGES_CONCURRENCY", int),
            "query_timeout": ("DEPLOYED_CHANGES_TIMEOUT", float),
            "max_output_bytes": ("DEPLOYED_CHANGES_MAX_OUTPUT", int),
            "upstream_branch": ("DEPLOYED_CHANGES_UPSTREAM", str),
            "git_executable": ("DEPLOYED_CHANGES_GIT", str),
        }
        for name, (env_var, convert) in env_map.items():
            raw = os.getenv(env_var)
            if raw is None or raw == "":
                continue
            try:
                values[name] = convert(raw)
            except ValueError as e:
                raise ValueError(f"Invalid value for {env_var}: {raw!r}") from e

        values.update({k: v for k, v in overrides.items() if v is not None})

        config = cls(**values)
        logger.debug(f"Loaded configuration: {config}")
        return config

    def with_overrides(self, **overrides) -> "ChangesConfig":
        """Return a copy with the non-None overrides applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})
