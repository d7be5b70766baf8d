"""Event reporting for reconciliation outcomes."""

import logging
import threading
from abc import ABC, abstractmethod
from collections import deque
from typing import Dict, Iterable, List, Optional, Set, Tuple

import requests

from .models import Event, OwnerReference

logger = logging.getLogger(__name__)


class EventReporter(ABC):
    """
    Sink for reconciliation events.

    ``report`` is fire-and-forget: implementations log delivery failures
    instead of raising them into the reconciliation cycle.
    """

    @abstractmethod
    def report(self, event: Event, owner: OwnerReference) -> None:
        """Record ``event`` against ``owner``."""


class NullEventReporter(EventReporter):
    """Discards every event."""

    def report(self, event: Event, owner: OwnerReference) -> None:
        return None


class LoggingEventReporter(EventReporter):
    """Writes events to the ``diskmaker.events`` logger."""

    def report(self, event: Event, owner: OwnerReference) -> None:
        extra = {
            'reason': event.reason,
            'device': event.device_path,
            'owner': owner.key,
        }
        if event.is_error:
            logger.warning(f"[{event.reason}] {event.message}", extra=extra)
        else:
            logger.info(f"[{event.reason}] {event.message}", extra=extra)


class RecordingEventReporter(EventReporter):
    """Keeps the most recent events in memory."""

    def __init__(self, max_events: int = 500):
        self._events = deque(maxlen=max_events)
        self._lock = threading.Lock()

    def report(self, event: Event, owner: OwnerReference) -> None:
        with self._lock:
            self._events.append((event, owner))

    def records(self) -> List[Tuple[Event, OwnerReference]]:
        with self._lock:
            return list(self._events)

    def events(self) -> List[Event]:
        return [event for event, _ in self.records()]

    def reasons(self) -> List[str]:
        return [event.reason for event in self.events()]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class WebhookEventReporter(EventReporter):
    """POSTs each event as JSON to a webhook URL."""

    def __init__(self, url: str, timeout: float = 10, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def report(self, event: Event, owner: OwnerReference) -> None:
        payload = {
            'owner': owner.to_dict(),
            'event': event.to_dict(),
        }
        try:
            response = self.session.post(self.url, json=payload, timeout=self.timeout)
            if response.status_code >= 300:
                logger.error(f"Webhook event delivery failed with status {response.status_code}")
        except requests.RequestException as e:
            logger.error(f"Error delivering event {event.reason} to webhook: {e}")


class DeduplicatingEventReporter(EventReporter):
    """
    Forwards each distinct event only once per owner.

    A condition that persists across cycles (a broken by-id link, an existing
    symlink) would otherwise be reported again on every tick.
    """

    def __init__(self, delegate: EventReporter):
        self.delegate = delegate
        self._reported: Set[str] = set()
        self._lock = threading.Lock()

    def report(self, event: Event, owner: OwnerReference) -> None:
        event_key = f"{owner.key}:{event.key}"
        with self._lock:
            if event_key in self._reported:
                return
            self._reported.add(event_key)
        self.delegate.report(event, owner)

    def reset(self) -> None:
        with self._lock:
            self._reported.clear()


class CompositeEventReporter(EventReporter):
    """Fans events out to several reporters."""

    def __init__(self, reporters: Iterable[EventReporter]):
        self.reporters = list(reporters)

    def report(self, event: Event, owner: OwnerReference) -> None:
        for reporter in self.reporters:
            try:
                reporter.report(event, owner)
            except Exception as e:
                logger.error(f"Error reporting event via {type(reporter).__name__}: {e}")


def build_event_reporter(webhook_url: str = "",
                         recorder: Optional[RecordingEventReporter] = None,
                         deduplicate: bool = True) -> EventReporter:
    """
    Assemble the daemon's reporter chain.

    Events always go to the log; the recorder and webhook are added when given.
    De-duplication applies to the webhook only, so the log and status history
    still show every cycle's outcome.
    """
    reporters: List[EventReporter] = [LoggingEventReporter()]
    if recorder is not None:
        reporters.append(recorder)
    if webhook_url:
        webhook: EventReporter = WebhookEventReporter(webhook_url)
        if deduplicate:
            webhook = DeduplicatingEventReporter(webhook)
        reporters.append(webhook)
    return CompositeEventReporter(reporters)


def summarize_events(events: Iterable[Event]) -> Dict[str, int]:
    """Count events by reason."""
    counts: Dict[str, int] = {}
    for event in events:
        counts[event.reason] = counts.get(event.reason, 0) + 1
    return counts
