"""
events.py — Progress channel between the orchestrator and whatever renders it.

Topics:
  panel:<n>  — image requests for panel n
  copy:<n>   — copy refinement for panel n
  resize     — the standalone resize tool
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List

logger = logging.getLogger(__name__)

# Stages
PREPARING = "preparing"
REQUESTING = "requesting"
WAITING = "waiting"
SUCCEEDED = "succeeded"
FAILED = "failed"
DISCARDED = "discarded"


def panel_topic(panel_id: int) -> str:
    return f"panel:{panel_id}"


def copy_topic(panel_id: int) -> str:
    return f"copy:{panel_id}"


RESIZE_TOPIC = "resize"


@dataclass(frozen=True)
class ProgressEvent:
    topic: str
    stage: str
    message: str = ""
    attempt: int = 0


Subscriber = Callable[[ProgressEvent], None]


class EventBus:
    """Fan-out of progress events to subscribers, in subscription order."""

    def __init__(self) -> None:
        self._subscribers: List[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def publish(self, event: ProgressEvent) -> None:
        logger.debug("%s %s %s", event.topic, event.stage, event.message)
        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
            except Exception:
                # subscriber errors never reach the publisher
                logger.exception("Progress subscriber failed on %s", event.topic)

    def emit(self, topic: str, stage: str, message: str = "", attempt: int = 0) -> None:
        self.publish(ProgressEvent(topic=topic, stage=stage, message=message, attempt=attempt))
