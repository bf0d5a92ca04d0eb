from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


@dataclass
class AuditEvent:
    timestamp: str
    level: str
    message: str
    tenant_id: Optional[str] = None
    correlation_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


class InMemoryAuditStore:
    """Events recorded during one run, oldest first. Feeds the end-of-run report."""

    def __init__(self) -> None:
        self._events: List[AuditEvent] = []

    def append(self, event: AuditEvent) -> None:
        self._events.append(event)

    def list(self, message: Optional[str] = None) -> List[AuditEvent]:
        if message is None:
            return list(self._events)
        return [event for event in self._events if event.message == message]


class JsonAuditLogger:
    """Structured logger for inventory run events.

    Logs JSON to stdout, or the given stream, and optionally mirrors events to
    an in-memory store.
    Messages are short event names (``tenant_started``, ``session_released``)
    with context passed as keyword arguments.
    """

    def __init__(
        self,
        name: str = "mdm_inventory",
        level: int = logging.INFO,
        store: Optional[InMemoryAuditStore] = None,
        stream: Any = None,
    ):
        self.logger = logging.getLogger(name)
        handler = next(
            (h for h in self.logger.handlers if isinstance(h.formatter, _JsonFormatter)), None
        )
        if handler is None:
            handler = logging.StreamHandler(stream or sys.stdout)
            handler.setFormatter(_JsonFormatter())
            self.logger.addHandler(handler)
        elif stream is not None and isinstance(handler, logging.StreamHandler):
            handler.setStream(stream)
        self.logger.setLevel(level)
        self.logger.propagate = False
        self.store = store

    def _log(self, level: int, message: str, **kwargs: Any) -> None:
        if self.store is not None:
            self.store.append(self._build_event(level, message, **kwargs))
        self.logger.log(level, message, extra={"extra": kwargs})

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, **kwargs)

    def _build_event(self, level: int, message: str, **kwargs: Any) -> AuditEvent:
        return AuditEvent(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=logging.getLevelName(level),
            message=message,
            tenant_id=kwargs.get("tenant_id"),
            correlation_id=kwargs.get("correlation_id"),
            extra={k: v for k, v in kwargs.items() if k not in {"tenant_id", "correlation_id"}},
        )


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra: Optional[Dict[str, Any]] = getattr(record, "extra", None)  # type: ignore[attr-defined]
        if extra:
            payload.update(extra)

        return json.dumps(payload, default=str)
