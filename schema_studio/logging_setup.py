from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(level: str = "INFO") -> None:
    numeric = logging.getLevelName(str(level).strip().upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric)
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(handler)
