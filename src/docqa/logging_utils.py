from __future__ import annotations

import logging

from docqa.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging() -> None:
    """Configure the root logger once; later calls are no-ops."""
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return

    level = getattr(logging, get_settings().log_level, logging.INFO)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root_logger.setLevel(level)
    root_logger.addHandler(handler)
