from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from threading import RLock
from typing import Callable, Dict, List, Type

from payflow.observability import observe_notification


EventHandler = Callable[["DomainEvent"], None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    occurred_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        normalized_event_id = str(self.event_id or "").strip() or uuid.uuid4().hex
        normalized_occurred_at = self.occurred_at if isinstance(self.occurred_at, datetime) else _utc_now()
        if normalized_occurred_at.tzinfo is None:
            normalized_occurred_at = normalized_occurred_at.replace(tzinfo=timezone.utc)
        object.__setattr__(self, "event_id", normalized_event_id)
        object.__setattr__(self, "occurred_at", normalized_occurred_at.astimezone(timezone.utc))

    def to_payload(self) -> Dict[str, object]:
        payload: Dict[str, object] = {}
        for key, value in asdict(self).items():
            if isinstance(value, datetime):
                payload[key] = value.isoformat().replace("+00:00", "Z")
            else:
                payload[key] = value
        return payload


@dataclass(frozen=True, kw_only=True)
class RequestStatusChanged(DomainEvent):
    """Change-feed notice for views; never used to drive the workflow."""

    request_id: str
    new_status: str | None
    previous_status: str | None = None
    action: str = ""
    table: str = "requests"


class EventBus:
    def __init__(self) -> None:
        self._lock = RLock()
        self._handlers: Dict[Type[DomainEvent], List[EventHandler]] = {}
        self._logger = logging.getLogger("payflow")
        self.enabled = True

    def subscribe(self, event_type: Type[DomainEvent], handler: EventHandler) -> None:
        with self._lock:
            handlers = self._handlers.setdefault(event_type, [])
            handlers.append(handler)

    def unsubscribe(self, event_type: Type[DomainEvent], handler: EventHandler) -> None:
        with self._lock:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

    def publish(self, event: DomainEvent) -> None:
        if not self.enabled:
            return
        event_type = type(event).__name__
        with self._lock:
            handlers = list(self._handlers.get(type(event), []))
        observe_notification(event_type)
        for handler in handlers:
            try:
                handler(event)
            except Exception:  # noqa: BLE001
                observe_notification(event_type, failed=True)
                self._logger.exception(
                    "event_handler_failed",
                    extra={"event_type": event_type, "event_id": event.event_id},
                )

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()


_DEFAULT_EVENT_BUS = EventBus()


def get_event_bus() -> EventBus:
    return _DEFAULT_EVENT_BUS


def reset_event_bus_for_tests() -> None:
    _DEFAULT_EVENT_BUS.clear()
    _DEFAULT_EVENT_BUS.enabled = True
