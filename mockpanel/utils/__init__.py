"""Utility modules for logging and helpers."""

from .logging import setup_logging, parse_log_level

__all__ = ["setup_logging", "parse_log_level"]
