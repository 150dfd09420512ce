"""Centralized logging configuration for the CLI."""

import logging
import os

# Third-party loggers that are noisy at INFO even in verbose mode
NOISY_LOGGERS = ["httpx", "httpx._client", "httpcore", "httpcore.http11", "urllib3", "openai", "anthropic"]


def configure_logging(verbose: bool) -> None:
    """Configure logging levels based on verbose flag.

    Call once at CLI startup before planning.

    Args:
        verbose: If True, show INFO+ logs. If False, show only WARNING+ logs.
    """
    # Tests manage their own logging
    if os.getenv("PYTEST_CURRENT_TEST"):
        return

    level = logging.INFO if verbose else logging.WARNING
    if not logging.getLogger().handlers:
        logging.basicConfig(level=level, format="%(levelname)s: %(message)s")
    else:
        logging.getLogger().setLevel(level)

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    if not verbose:
        logging.getLogger("flowpilot").setLevel(logging.WARNING)
