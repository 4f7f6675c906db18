"""Logger helpers for pmpoller modules.

All loggers live under the ``pmpoller`` namespace so applications can
configure the whole package with a single ``logging.getLogger("pmpoller")``.
"""

import logging

ROOT_LOGGER_NAME = "pmpoller"


def get_logger(name: str) -> logging.Logger:
    """Return a logger for ``name`` inside the pmpoller namespace.

    Example:
        ```python
        from pmpoller import get_logger

        logger = get_logger(__name__)
        logger.debug("polling %d metrics", 3)
        ```
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(f"{ROOT_LOGGER_NAME}."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


logging.getLogger(ROOT_LOGGER_NAME).addHandler(logging.NullHandler())
