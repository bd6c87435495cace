import logging
import os
import sys

PACKAGE_LOGGER = "permitted"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _level() -> int:
    """PERMITTED_LOG_LEVEL if set, else uvicorn's level, else INFO."""
    configured = os.getenv("PERMITTED_LOG_LEVEL")
    if configured:
        level = logging.getLevelName(configured.upper())
        if isinstance(level, int):
            return level
    return logging.getLogger("uvicorn").level or logging.INFO


def _package_logger() -> logging.Logger:
    root = logging.getLogger(PACKAGE_LOGGER)

    # One stdout handler for the whole package; module loggers propagate to it
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
        root.setLevel(_level())

        # Authorization logs stay off the root handler
        root.propagate = False

    return root


def get_logger(name: str):
    _package_logger()
    if name == "__main__" or not name.startswith(PACKAGE_LOGGER):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)
