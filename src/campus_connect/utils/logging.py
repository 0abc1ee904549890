from __future__ import annotations

import logging

from campus_connect.config import SETTINGS

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: int | str | None = None) -> None:
    logging.basicConfig(level=level or SETTINGS.log_level, format=LOG_FORMAT)
    # The OpenAI client logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
