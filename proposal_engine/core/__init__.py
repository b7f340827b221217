"""Core configuration and logging components."""

from proposal_engine.core.config import Settings, get_settings
from proposal_engine.core.logging_config import get_logger, setup_logging

__all__ = [
    "Settings",
    "get_settings",
    "get_logger",
    "setup_logging",
]
