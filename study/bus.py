"""Change notification bus: 'data of kind X changed, re-fetch'."""

import logging
from typing import Callable, Dict, List

from study.kinds import EntityKind

logger = logging.getLogger("rootly.bus")

Callback = Callable[[EntityKind], None]
Unsubscribe = Callable[[], None]


class ChangeBus:
    """
    Synchronous in-process publish/subscribe with one topic per entity kind.

    Used in local mode, where every mutation originates in this process.
    Subscribers are called in subscription order; one failing subscriber is
    logged and does not stop delivery to the rest.
    """

    def __init__(self):
        self._subscribers: Dict[EntityKind, List[Callback]] = {k: [] for k in EntityKind}

    def subscribe(self, kind: EntityKind, callback: Callback) -> Unsubscribe:
        kind = EntityKind(kind)
        self._subscribers[kind].append(callback)

        def unsubscribe() -> None:
            try:
                self._subscribers[kind].remove(callback)
            except ValueError:
                pass

        return unsubscribe

    def publish(self, kind: EntityKind) -> None:
        self._deliver(EntityKind(kind))

    def _deliver(self, kind: EntityKind) -> None:
        # Copy: callbacks may unsubscribe while we iterate.
        for callback in list(self._subscribers[kind]):
            try:
                callback(kind)
            except Exception:
                logger.exception("Change subscriber failed for %s", kind.value)

    def subscriber_count(self, kind: EntityKind) -> int:
        return len(self._subscribers[EntityKind(kind)])
