from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from datetime import UTC, datetime
from threading import Lock
from typing import Any, Literal, TypedDict
from uuid import uuid4

logger = logging.getLogger(__name__)

EventLevel = Literal["info", "warning", "error"]
ChangeCause = Literal["vote", "delegate", "suggestion_applied"]

SENSITIVE_KEYWORDS = {"token", "authorization", "secret", "password", "api_key"}
REDACTED = "[REDACTED]"
CORRELATION_ID_HEADER = "x-request-id"
_correlation_id_ctx: ContextVar[str | None] = ContextVar("correlation_id", default=None)


@dataclass(frozen=True, slots=True)
class StatusChanged:
    """Emitted after a successful vote or delegation on a proposal."""

    proposal_id: str
    cause: ChangeCause
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))


StatusListener = Callable[[StatusChanged], None]


class StatusEventBus:
    """Synchronous fan-out of StatusChanged events, keyed by proposal."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[StatusListener]] = {}

    def subscribe(self, proposal_id: str, listener: StatusListener) -> Callable[[], None]:
        self._listeners.setdefault(proposal_id, []).append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(proposal_id, [])
            if listener in listeners:
                listeners.remove(listener)
            if not listeners:
                self._listeners.pop(proposal_id, None)

        return unsubscribe

    def publish(self, event: StatusChanged) -> int:
        listeners = list(self._listeners.get(event.proposal_id, []))
        logger.info(
            "Status changed on proposal %s (%s), notifying %d listener(s)",
            event.proposal_id,
            event.cause,
            len(listeners),
            extra={
                "event_type": "status.changed",
                "ops_payload": {"proposal_id": event.proposal_id, "cause": event.cause},
            },
        )
        for listener in listeners:
            listener(event)
        return len(listeners)

    def listener_count(self, proposal_id: str) -> int:
        return len(self._listeners.get(proposal_id, []))


class ActivityEvent(TypedDict):
    timestamp: str
    level: EventLevel
    component: str
    event_type: str
    message: str
    correlation_id: str | None
    payload: dict[str, Any]


def iso_now() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _is_sensitive_key(key: str) -> bool:
    lower = key.lower()
    return any(keyword in lower for keyword in SENSITIVE_KEYWORDS)


def sanitize_value(value: Any, key_hint: str | None = None) -> Any:
    if key_hint and _is_sensitive_key(key_hint):
        return REDACTED
    if isinstance(value, dict):
        return {key: sanitize_value(nested, key) for key, nested in value.items()}
    if isinstance(value, list):
        return [sanitize_value(item) for item in value]
    return value


def get_correlation_id() -> str | None:
    return _correlation_id_ctx.get()


def set_correlation_id(correlation_id: str) -> Token[str | None]:
    return _correlation_id_ctx.set(correlation_id)


def reset_correlation_id(token: Token[str | None]) -> None:
    _correlation_id_ctx.reset(token)


def new_correlation_id() -> str:
    return uuid4().hex


class ActivityBuffer:
    def __init__(self, max_size: int = 500) -> None:
        self._events: deque[ActivityEvent] = deque(maxlen=max_size)
        self._lock = Lock()

    def add(self, event: ActivityEvent) -> None:
        with self._lock:
            self._events.append(event)

    def recent(
        self,
        *,
        limit: int,
        level: EventLevel | None = None,
        event_type: str | None = None,
    ) -> list[ActivityEvent]:
        with self._lock:
            items = list(self._events)
        filtered = [
            item
            for item in items
            if (level is None or item["level"] == level)
            and (event_type is None or event_type in item["event_type"])
        ]
        return list(reversed(filtered[-limit:]))

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


activity_buffer = ActivityBuffer()


class ActivityEventHandler(logging.Handler):
    def emit(self, record: logging.LogRecord) -> None:
        level_name = record.levelname.lower()
        level: EventLevel = "info"
        if level_name in {"warning", "error", "critical"}:
            level = "warning" if level_name == "warning" else "error"

        payload = sanitize_value(getattr(record, "ops_payload", {}))
        if not isinstance(payload, dict):
            payload = {"value": payload}

        activity_buffer.add(
            {
                "timestamp": iso_now(),
                "level": level,
                "component": record.name,
                "event_type": str(getattr(record, "event_type", record.name)),
                "message": record.getMessage(),
                "correlation_id": getattr(record, "correlation_id", None) or get_correlation_id(),
                "payload": payload,
            }
        )


def configure_activity_logging(max_size: int) -> None:
    global activity_buffer
    activity_buffer = ActivityBuffer(max_size=max_size)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        if isinstance(handler, ActivityEventHandler):
            return

    root_logger.addHandler(ActivityEventHandler())
