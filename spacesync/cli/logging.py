"""
Logging setup for CLI commands.
"""
import logging
import sys

from spacesync.core.logging_config import LogCategory


def setup_cli_logging(command: str, verbose: bool = False) -> logging.Logger:
    """Log to stderr so rich tables on stdout stay readable."""
    level = logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    handler.setLevel(level)

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level if verbose else logging.WARNING)

    for category in LogCategory:
        logging.getLogger(category.value).setLevel(level)

    return logging.getLogger(f"{LogCategory.APP.value}.cli.{command}")
