"""
Structured logging helpers for survey ingestion and classification runs.
"""

from __future__ import annotations

import json
import logging
from typing import Any


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    """
    Emit one structured log line as compact JSON.
    """

    payload = {"event": event, **fields}
    logger.log(level, json.dumps(payload, default=str, sort_keys=True))


def preview(text: str | None, limit: int = 60) -> str:
    """
    Shorten free text for log lines so whole responses never land in logs.
    """

    if not text:
        return ""
    collapsed = " ".join(text.split())
    if len(collapsed) <= limit:
        return collapsed
    return collapsed[: max(0, limit - 3)] + "..."
