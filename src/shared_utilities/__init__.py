"""
Common utilities shared across tools
"""

from .logging_config import configure_logging, get_logger, get_logging_manager
from .repository_config import RepositoryConfig, RepositoryConfigManager
from .telemetry import get_telemetry_manager, trace_function, trace_operation

__all__ = [
    "configure_logging",
    "get_logger",
    "get_logging_manager",
    "get_telemetry_manager",
    "trace_function",
    "trace_operation",
    "RepositoryConfig",
    "RepositoryConfigManager",
]
