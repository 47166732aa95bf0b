from __future__ import annotations

import logging

from videotube.config import settings

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

from videotube.application import app  # noqa: E402

__all__ = ["app"]
