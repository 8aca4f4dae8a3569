"""
Logging configuration for medianotes.

Keeps third-party HTTP and SDK chatter out of the terminal by default.
"""

import os
import sys
import warnings

_NOISY_LOGGERS = ("httpx", "httpcore", "anthropic", "openai", "urllib3")


def configure_quiet_mode(quiet: bool = True):
    """
    Configure logging to suppress verbose library output.

    Args:
        quiet: If True, suppress verbose output. If False, show everything.
    """
    if quiet:
        # Suppress Python warnings (including deprecation warnings)
        warnings.filterwarnings("ignore")

        import logging
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.ERROR)


def enable_debug_mode():
    """Enable debug-level logging to stderr."""
    import logging

    # Re-enable warnings
    warnings.filterwarnings("default")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Add stderr handler if not already present
    if not any(isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) == sys.stderr
               for h in root_logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%H:%M:%S"
        ))
        root_logger.addHandler(handler)

    for name in ("medianotes",) + _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG)


def verbose_requested() -> bool:
    """True when MEDIANOTES_VERBOSE is set to a truthy value."""
    return os.environ.get("MEDIANOTES_VERBOSE", "").lower() in ("1", "true", "yes")


def configure_ops_log(store_path):
    """Configure a persistent operations log for a medianotes store.

    Writes to {store_path}/medianotes-ops.log using a rotating file handler
    (1MB max, 3 backups). Always active regardless of --verbose.
    Returns the handler so it can be removed on close().
    """
    import logging
    from logging.handlers import RotatingFileHandler
    from pathlib import Path

    log_path = Path(store_path) / "medianotes-ops.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        str(log_path),
        maxBytes=1_000_000,
        backupCount=3,
    )
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    app_logger = logging.getLogger("medianotes")
    app_logger.addHandler(handler)
    # Let INFO through even in quiet mode
    if app_logger.level == logging.NOTSET or app_logger.level > logging.INFO:
        app_logger.setLevel(logging.INFO)

    return handler
