"""Logging setup for scripts and examples using multirate."""

import logging
import sys

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: int = logging.INFO, format_string: str = DEFAULT_FORMAT) -> None:
    """Configures basic logging to stdout.

    The library itself only creates module loggers; call this from an
    application or example script to see their records.
    """
    logging.basicConfig(
        level=level,
        format=format_string,
        stream=sys.stdout,
    )
