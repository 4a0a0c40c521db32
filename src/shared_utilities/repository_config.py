"""Service to repository mapping shared across tools."""

import json
from pathlib import Path
from typing import TypedDict

from .logging_config import get_logger

logger = get_logger(__name__)


class RepositoryConfig(TypedDict, total=False):
    """Type definition for one service entry in services.json."""

    repo: str
    description: str


class RepositoryConfigManager:
    """Maps deployed service names to repository identifiers and paths."""

    def __init__(self, config_file: Path | None = None):
        """Initialize the repository configuration manager.

        Args:
            config_file: Path to the service table.
                        If None, looks for services.json in standard locations.
        """
        self.config_file = Path(config_file) if config_file else self._find_config_file()
        self.configs: dict[str, RepositoryConfig] = {}
        self._load_configs()

    def _find_config_file(self) -> Path:
        """Find the service table in standard locations.

        Returns:
            Path to the configuration file.

        Raises:
            FileNotFoundError: If no configuration file is found.
        """
        search_paths = [
            Path.cwd() / "services.json",
            Path(__file__).parent.parent / "deployed_changes" / "services.json",
        ]

        for path in search_paths:
            if path.exists():
                logger.debug(f"Found service table at: {path}")
                return path

        raise FileNotFoundError(
            "Could not find services.json in any expected location. "
            f"Searched: {[str(p) for p in search_paths]}"
        )

    def _load_configs(self) -> None:
        """Load the service table from file."""
        try:
            with open(self.config_file, encoding="utf-8") as f:
                data = json.load(f)
        except Exception as e:
            logger.error(f"Failed to load service table {self.config_file}: {e}")
            raise

        if not isinstance(data, dict):
            raise ValueError(
                f"Service table {self.config_file} must be a JSON object"
            )

        for service, entry in data.items():
            # Shorthand form: "service": "repo-id"
            if isinstance(entry, str):
                entry = {"repo": entry}
            if not isinstance(entry, dict) or not entry.get("repo"):
                raise ValueError(f"Service '{service}' has no 'repo' entry")
            self.configs[service] = RepositoryConfig(
                repo=entry["repo"], description=entry.get("description", "")
            )

        logger.debug(f"Loaded {len(self.configs)} service mappings")

    def get_config(self, service: str) -> RepositoryConfig:
        """Get the table entry for a service.

        Raises:
            KeyError: If the service is not in the table.
        """
        if service in self.configs:
            return self.configs[service]
        raise KeyError(f"Service '{service}' not found in service table")

    def list_services(self) -> list[str]:
        """Get list of all configured service names."""
        return list(self.configs.keys())

    def is_configured(self, service: str) -> bool:
        """Check if a service is in the table."""
        return service in self.configs

    def get_repository(self, service: str) -> str:
        """Get the repository identifier for a service."""
        return self.get_config(service)["repo"]

    def resolve_location(self, service: str, repo_root: Path) -> Path:
        """Resolve the on-disk checkout of a service's repository.

        Args:
            service: Deployed service name.
            repo_root: Directory holding all repository checkouts.

        Returns:
            ``repo_root / <repository id>``; existence is not checked here.
        """
        return Path(repo_root) / self.get_repository(service)
