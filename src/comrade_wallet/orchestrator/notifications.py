"""
comrade_wallet.orchestrator.notifications

User-facing notification sinks.

Responsibilities:
- Define the fire-and-forget `NotificationSink` contract.
- Log sink for headless use; buffered sink drained by the local API.
"""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from comrade_wallet.domain.models import Severity
from comrade_wallet.observability.logging import get_logger

log = get_logger(__name__)


class NotificationSink(Protocol):
    def notify(self, message: str, severity: Severity) -> None: ...


@dataclass(frozen=True, slots=True)
class Notification:
    message: str
    severity: Severity
    created_at: float


class LogNotificationSink:
    def notify(self, message: str, severity: Severity) -> None:
        if severity is Severity.error:
            log.warning("notification", message=message, severity=severity.value)
        else:
            log.info("notification", message=message, severity=severity.value)


class BufferedNotificationSink:
    """
    Bounded buffer of notifications waiting to be shown.

    Display timing lives here, not in the orchestrator: entries older than
    `ttl_seconds` are auto-dismissed, and an identical message repeated within
    `dedupe_seconds` is collapsed into the first one.
    """

    def __init__(
        self,
        *,
        max_size: int = 50,
        ttl_seconds: float = 6.0,
        dedupe_seconds: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._items: deque[Notification] = deque(maxlen=max_size)
        self._ttl = ttl_seconds
        self._dedupe = dedupe_seconds
        self._clock = clock

    def notify(self, message: str, severity: Severity) -> None:
        now = self._clock()
        self._expire(now)
        if self._items:
            last = self._items[-1]
            if (
                last.message == message
                and last.severity is severity
                and now - last.created_at < self._dedupe
            ):
                return
        self._items.append(Notification(message=message, severity=severity, created_at=now))

    def pending(self) -> list[Notification]:
        self._expire(self._clock())
        return list(self._items)

    def drain(self) -> list[Notification]:
        items = self.pending()
        self._items.clear()
        return items

    def _expire(self, now: float) -> None:
        while self._items and now - self._items[0].created_at >= self._ttl:
            self._items.popleft()


class FanoutNotificationSink:
    def __init__(self, *sinks: NotificationSink) -> None:
        self._sinks = sinks

    def notify(self, message: str, severity: Severity) -> None:
        for sink in self._sinks:
            sink.notify(message, severity)
