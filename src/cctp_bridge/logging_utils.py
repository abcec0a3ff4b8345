"""
Logging utilities for cross-chain transfer stages.

Features:
- Burn / attestation / mint stage records with timing and outcome
- Address masking
- Plain or JSON-lines output for the CLI and services
"""
from __future__ import annotations

import json
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, AsyncIterator, Dict, Optional

from .config import LoggingSettings, get_settings

logger = logging.getLogger(__name__)

PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class StageContext:
    """One transfer stage as it is logged."""
    transfer_id: str
    stage: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    duration_ms: Optional[float] = None
    success: Optional[bool] = None
    error: Optional[str] = None
    _t0: float = field(default_factory=time.monotonic, repr=False)

    @property
    def finished(self) -> bool:
        return self.success is not None

    def finish(self, error: Optional[str] = None) -> None:
        self.duration_ms = round((time.monotonic() - self._t0) * 1000, 1)
        self.success = error is None
        self.error = error

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("_t0")
        return data


class TransferLogger:
    """
    Structured logger for transfer attempts.

    Each stage runs inside ``stage_context``, which logs a start line at
    DEBUG and a finish line at INFO (or ERROR) carrying the StageContext as
    the ``stage`` record attribute. Addresses are masked when configured.
    """

    def __init__(
        self,
        name: str = "cctp_bridge",
        config: Optional[LoggingSettings] = None,
    ):
        self._logger = logging.getLogger(name)
        self._config = config or get_settings().logging

    def mask(self, address: Optional[str]) -> str:
        if not address:
            return ""
        return mask_address(address) if self._config.mask_addresses else address

    @asynccontextmanager
    async def stage_context(self, stage: str, transfer_id: str, **metadata) -> AsyncIterator[StageContext]:
        """
        Track one stage.

        Usage:
            async with transfer_logger.stage_context("burn", transfer_id) as ctx:
                receipt = await burn_client.burn(...)
                ctx.metadata["tx"] = receipt.source_tx_id
        """
        ctx = StageContext(transfer_id=transfer_id, stage=stage, metadata=metadata)
        self._logger.debug(f"[{transfer_id}] {stage} started", extra={"stage": ctx.to_dict()})
        try:
            yield ctx
        except Exception as e:
            ctx.finish(error=str(e) or type(e).__name__)
            raise
        else:
            ctx.finish()
        finally:
            if not ctx.finished:
                ctx.finish(error="cancelled")
            outcome = "ok" if ctx.success else f"failed: {ctx.error}"
            self._logger.log(
                logging.INFO if ctx.success else logging.ERROR,
                f"[{transfer_id}] {stage} {outcome} ({ctx.duration_ms:.0f}ms)",
                extra={"stage": ctx.to_dict()},
            )

    def log_result(self, result_dict: Dict[str, Any]) -> None:
        """Log the summary line of a finished attempt (steps omitted)."""
        summary = {k: v for k, v in result_dict.items() if k != "steps"}
        self._logger.log(
            logging.INFO if result_dict.get("success") else logging.WARNING,
            f"[{result_dict.get('transfer_id')}] transfer {result_dict.get('state')}: "
            f"{format_log_data(summary)}",
        )


class JsonFormatter(logging.Formatter):
    """One JSON object per line, including a stage record when present."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        stage = getattr(record, "stage", None)
        if stage is not None:
            payload["stage"] = stage
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def mask_address(address: str) -> str:
    """Mask middle portion of address for privacy."""
    if len(address) < 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


def format_log_data(data: Dict[str, Any]) -> str:
    """Render a dict as JSON, stringifying decimals, datetimes and enums."""
    def convert(obj):
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        return obj

    return json.dumps({k: convert(v) for k, v in data.items()}, default=str)


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """
    Configure root logging for the CLI.

    Args:
        level: Log level name
        json_format: Emit JSON lines instead of plain text
    """
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter() if json_format else logging.Formatter(PLAIN_FORMAT))

    # No-op when the host application already configured the root logger
    logging.basicConfig(level=getattr(logging, level.upper()), handlers=[handler])
    logging.getLogger("cctp_bridge").setLevel(getattr(logging, level.upper()))

    # Per-request lines from the HTTP stack drown out stage logs
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


__all__ = [
    "StageContext",
    "TransferLogger",
    "JsonFormatter",
    "mask_address",
    "format_log_data",
    "setup_logging",
]
