from __future__ import annotations

import logging
import os
from typing import Mapping

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

_SENSITIVE_HEADERS = {"authorization", "cookie", "set-cookie"}


def configure_logging(level: str | None = None) -> None:
    resolved = (level or os.getenv("BOOKSHELF_LOG_LEVEL", "INFO")).strip().upper()
    numeric_level = logging.getLevelName(resolved)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logging.basicConfig(level=numeric_level, format=LOG_FORMAT)
    # urllib3 logs every connection at DEBUG, including the full URL.
    logging.getLogger("urllib3").setLevel(max(numeric_level, logging.WARNING))


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    redacted: dict[str, str] = {}
    for name, value in headers.items():
        if name.lower() in _SENSITIVE_HEADERS:
            scheme = value.split(" ", 1)[0] if " " in value else ""
            redacted[name] = f"{scheme} ***".strip()
        else:
            redacted[name] = value
    return redacted
