"""
Logging utilities for the mock interview panel.
"""
import os
import logging


def setup_logging(log_file_path: str, console_level: int = logging.CRITICAL) -> str:
    """
    Set up logging to file with minimal console output.

    Args:
        log_file_path: Full path to the log file
        console_level: Level for the console handler (quiet by default so the
            live transcript stays readable)

    Returns:
        Path to the log file
    """
    workdir = os.path.dirname(log_file_path)
    if workdir:
        os.makedirs(workdir, exist_ok=True)

    # Clear any existing handlers
    logging.getLogger().handlers.clear()

    # File handler for detailed logs
    file_handler = logging.FileHandler(log_file_path, mode='w')
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter('%(asctime)s %(levelname)s %(name)s - %(message)s')
    file_handler.setFormatter(file_formatter)

    # Console handler for minimal output only
    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_formatter = logging.Formatter('%(levelname)s %(name)s: %(message)s')
    console_handler.setFormatter(console_formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    # Provider and transport libraries are chatty at DEBUG
    for noisy in ("websockets", "httpx", "google_genai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return log_file_path


def parse_log_level(name: str) -> int:
    """Translate a level name like "info" into a logging constant."""
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO
