# blueprints/notifications/events.py
"""
Синхронная шина уведомлений.

Сервисы публикуют события после коммита своей транзакции. Доставка
(SMS, почта) - забота подписчиков; упавший подписчик только логируется
и не откатывает уже сохранённое состояние.
"""
from __future__ import annotations
import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List

log = logging.getLogger(__name__)


class EventType(str, Enum):
    OTP_ISSUED = "otp_issued"
    RESET_TOKEN_ISSUED = "reset_token_issued"
    SWAP_REQUESTED = "swap_requested"
    SWAP_STATUS_CHANGED = "swap_status_changed"


@dataclass
class Event:
    type: EventType
    payload: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Handler = Callable[[Event], None]

# ключи payload, которые не пишем в лог доставки
SECRET_KEYS = {"secret", "otp", "token"}


def log_delivery(event: Event) -> None:
    """Подписчик по умолчанию: фиксирует, кому и по какому каналу ушло бы уведомление."""
    safe = {k: v for k, v in event.payload.items() if k not in SECRET_KEYS}
    log.info("notification queued", extra={"event": event.type.value, "reason": safe})


class EventBus:
    def __init__(self):
        self._handlers: Dict[EventType, List[Handler]] = defaultdict(list)
        self._lock = threading.Lock()

    def init_app(self, app) -> None:
        with self._lock:
            self._handlers.clear()
        for et in EventType:
            self.subscribe(et, log_delivery)
        app.extensions["events"] = self

    def subscribe(self, event_type: EventType, handler: Handler) -> None:
        with self._lock:
            if handler not in self._handlers[event_type]:
                self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: EventType, handler: Handler) -> None:
        with self._lock:
            if handler in self._handlers[event_type]:
                self._handlers[event_type].remove(handler)

    def publish(self, event_type: EventType, **payload) -> int:
        """Возвращает число подписчиков, отработавших без ошибки."""
        event = Event(type=event_type, payload=payload)
        with self._lock:
            handlers = list(self._handlers[event_type])
        delivered = 0
        for handler in handlers:
            try:
                handler(event)
                delivered += 1
            except Exception:
                log.exception("notification handler failed",
                              extra={"event": event_type.value, "reason": getattr(handler, "__name__", "?")})
        return delivered
