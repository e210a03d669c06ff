from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Route application and library loggers to stderr at ``level``."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    logging.getLogger("image_workflow").setLevel(level.upper())
