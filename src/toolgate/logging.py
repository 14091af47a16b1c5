"""
Logging setup for Toolgate.

Every module logs through ``logging.getLogger(__name__)`` under the
``toolgate`` hierarchy; nothing is configured on import. Applications
(and the CLI) call configure_logging() once at startup.

Usage:
    from toolgate.logging import configure_logging

    configure_logging("DEBUG")                   # rich console output
    configure_logging("INFO", rich_output=False)  # plain stderr lines
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

PLAIN_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str = "INFO", rich_output: bool = True) -> logging.Logger:
    """
    Configure the ``toolgate`` logger.

    Calling it again replaces the previously installed handler.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        rich_output: Use rich's console handler instead of plain text

    Returns:
        The configured ``toolgate`` logger
    """
    root = logging.getLogger("toolgate")
    root.setLevel(level.upper())

    for existing in list(root.handlers):
        if getattr(existing, "_toolgate", False):
            root.removeHandler(existing)

    if rich_output:
        handler: logging.Handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))

    handler._toolgate = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    return root
