"""Utility modules."""

from estudimen.utils.logger import configure_logging, get_logger, reset_log_context

__all__ = ["configure_logging", "get_logger", "reset_log_context"]
