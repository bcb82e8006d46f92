from __future__ import annotations

import logging
import sys

from smartshelf.config import settings

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s %(message)s'


def configure_logging(level: str | None = None) -> None:
    root = logging.getLogger()
    root.setLevel((level or settings.log_level).upper())

    # Keep a single handler across repeated calls.
    if any(getattr(handler, '_smartshelf', False) for handler in root.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._smartshelf = True
    root.addHandler(handler)
