"""
Realtime change hub: per-tenant, per-table change channels.

Every RemoteStore write broadcasts on (user_id, kind). Any client of the same
tenant that listens on that channel is told to re-fetch, whichever client
made the write. Payloads carry no row data, only the table that changed.
"""

import logging
import threading
from typing import Dict, List, Tuple

from study.bus import Callback, ChangeBus, Unsubscribe
from study.kinds import EntityKind

logger = logging.getLogger("rootly.bus")

Channel = Tuple[str, EntityKind]


class RealtimeHub:
    """Thread-safe process-wide channel registry."""

    def __init__(self):
        self._lock = threading.Lock()
        self._channels: Dict[Channel, List[Callback]] = {}

    def listen(self, tenant: str, kind: EntityKind, callback: Callback) -> Unsubscribe:
        channel = (tenant, EntityKind(kind))
        with self._lock:
            self._channels.setdefault(channel, []).append(callback)

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._channels.get(channel)
                if listeners and callback in listeners:
                    listeners.remove(callback)
                    if not listeners:
                        del self._channels[channel]

        return unsubscribe

    def broadcast(self, tenant: str, kind: EntityKind) -> None:
        kind = EntityKind(kind)
        with self._lock:
            listeners = list(self._channels.get((tenant, kind), ()))
        # Delivered outside the lock so callbacks may re-fetch or unsubscribe.
        for callback in listeners:
            try:
                callback(kind)
            except Exception:
                logger.exception("Realtime listener failed for %s/%s", tenant, kind.value)

    def listener_count(self, tenant: str, kind: EntityKind) -> int:
        with self._lock:
            return len(self._channels.get((tenant, EntityKind(kind)), ()))


class RemoteChangeBus(ChangeBus):
    """ChangeBus view of one tenant's hub channels."""

    def __init__(self, hub: RealtimeHub, tenant: str):
        super().__init__()
        self.hub = hub
        self.tenant = tenant

    def subscribe(self, kind: EntityKind, callback: Callback) -> Unsubscribe:
        return self.hub.listen(self.tenant, kind, callback)

    def publish(self, kind: EntityKind) -> None:
        self.hub.broadcast(self.tenant, kind)

    def subscriber_count(self, kind: EntityKind) -> int:
        return self.hub.listener_count(self.tenant, kind)


_default_hub = None
_hub_lock = threading.Lock()


def get_hub() -> RealtimeHub:
    """Process-wide hub shared by every RemoteStore built without an explicit one."""
    global _default_hub
    with _hub_lock:
        if _default_hub is None:
            _default_hub = RealtimeHub()
        return _default_hub
