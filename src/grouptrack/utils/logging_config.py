import logging
import sys

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def configure_logging(verbose: bool = False) -> logging.Logger:
    """Route grouptrack logs to stderr, keeping stdout for command output."""
    logger = logging.getLogger("grouptrack")
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    # Remove any pre-existing handlers to avoid duplicates
    if logger.hasHandlers():
        logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(console_handler)
    return logger
