"""Logging setup for processes embedding the contract RAG core.

Usage:
    from contract_rag.obs.logging_config import setup_logging

    setup_logging(level="DEBUG", json_output=True)
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

_EXTRA_FIELDS = ("workflow", "phase", "trace_id", "rag_used", "reference_id")


class JSONFormatter(logging.Formatter):
    """Formats log records as JSON lines.

    Output format:
        {"ts": "2026-...", "level": "INFO", "logger": "contract_rag...", "msg": "...", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)

        for key in _EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value

        return json.dumps(entry, default=str)


def setup_logging(level: str = "INFO", json_output: bool = False) -> logging.Logger:
    """Configure the `contract_rag` logger hierarchy and return its root."""

    package_logger = logging.getLogger("contract_rag")
    package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    package_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
        )
    package_logger.addHandler(handler)
    package_logger.propagate = False
    return package_logger
