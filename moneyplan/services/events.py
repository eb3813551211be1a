"""
Change notifications for the presentation layer.

Consumers subscribe per collection (``plans``, ``sections`` ...) instead
of observing model fields. Services publish only after a successful
commit, so a failed mutation never reaches a subscriber.
"""

from datetime import datetime
from typing import Callable, Dict, List, NamedTuple

from moneyplan.logging_config import get_logger

logger = get_logger(__name__)

__all__ = [
    'Event', 'EventBus', 'event_bus',
    'BUDGETS', 'CURRENT_PERIOD', 'SECTIONS', 'PLANS', 'TRANSACTIONS', 'SUMMARY',
]

BUDGETS = "budgets"
CURRENT_PERIOD = "current_period"
SECTIONS = "sections"
PLANS = "plans"
TRANSACTIONS = "transactions"
SUMMARY = "summary"


class Event(NamedTuple):
    name: str
    ts: str
    payload: dict


class EventBus:
    def __init__(self):
        self._subscribers: Dict[str, List[Callable[[Event], None]]] = {}

    def subscribe(self, name: str, handler: Callable[[Event], None]) -> None:
        if name not in self._subscribers:
            self._subscribers[name] = []
        self._subscribers[name].append(handler)

    def unsubscribe(self, name: str, handler: Callable[[Event], None]) -> None:
        if name in self._subscribers:
            if handler in self._subscribers[name]:
                self._subscribers[name].remove(handler)

    def publish(self, name: str, payload: dict) -> Event:
        event = Event(name=name, ts=datetime.now().isoformat(), payload=payload)
        for handler in list(self._subscribers.get(name, [])):
            try:
                handler(event)
            except Exception:
                # A broken subscriber must not undo a committed mutation
                logger.exception(f"Subscriber for '{name}' failed")
        return event


# Process-wide bus used by the API layer; tests construct their own
event_bus = EventBus()
