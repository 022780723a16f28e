"""
Structured logging for the triage pipeline.

Console output uses ``LOG_FORMAT``; when ``LOG_FILE`` is set, the same records
are also written there as one JSON object per line.
"""

import logging
import json
from datetime import datetime
from typing import Optional
from prpo.config import get_config


config = get_config()


class StructuredFormatter(logging.Formatter):
    """One JSON object per record; ``extra`` payloads are merged in."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(getattr(record, "extra", None) or {})
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def _attach(logger: logging.Logger, handler: logging.Handler, formatter: logging.Formatter) -> None:
    handler.setLevel(logger.level)
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def setup_logging(name: str = __name__) -> logging.Logger:
    """Return the named logger, adding handlers the first time only."""
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, config.LOG_LEVEL))

    if logger.handlers:
        return logger

    _attach(logger, logging.StreamHandler(), logging.Formatter(config.LOG_FORMAT))
    if config.LOG_FILE:
        _attach(logger, logging.FileHandler(config.LOG_FILE, encoding="utf-8"), StructuredFormatter())

    return logger


def log_stage_action(
    logger: logging.Logger,
    stage_name: str,
    action: str,
    details: Optional[dict] = None,
) -> None:
    """Log a pipeline stage action with context."""
    extra = {"stage": stage_name, "action": action, **(details or {})}
    logger.info(f"[{stage_name}] {action}", extra={"extra": extra})


def log_pricing_call(
    logger: logging.Logger,
    requisition_id: Optional[str],
    material_number: Optional[str],
    outcome: str,
    unit_price: Optional[float] = None,
) -> None:
    """Log the outcome of an external price-estimation call."""
    extra = {
        "type": "pricing_call",
        "requisition_id": requisition_id,
        "material_number": material_number,
        "outcome": outcome,
        "unit_price": unit_price,
    }
    level = logging.INFO if outcome == "success" else logging.WARNING
    logger.log(
        level,
        f"Pricing call for {material_number}: {outcome}",
        extra={"extra": extra}
    )
