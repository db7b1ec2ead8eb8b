from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict, Optional
from uuid import uuid4

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[str, int, Dict[str, Any]], None]


@dataclass
class Subscription:
    """A single listener attached to one meeting."""

    id: str
    meeting_id: str
    callback: SnapshotCallback
    user_id: Optional[str] = None


class SnapshotHub:
    """Fan committed meeting snapshots out to subscribers.

    Subscribers only ever see versions strictly greater than the last one
    delivered for that meeting, so a slow writer publishing an older commit
    cannot roll a client's view backwards.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        # Key: meeting_id, Value: {subscription_id: Subscription}
        self.subscriptions: Dict[str, Dict[str, Subscription]] = {}
        self._delivered_versions: Dict[str, int] = {}

    def subscribe(
        self,
        meeting_id: str,
        callback: SnapshotCallback,
        *,
        user_id: Optional[str] = None,
    ) -> str:
        subscription_id = str(uuid4())
        with self._lock:
            meeting_subscriptions = self.subscriptions.setdefault(meeting_id, {})
            meeting_subscriptions[subscription_id] = Subscription(
                id=subscription_id,
                meeting_id=meeting_id,
                callback=callback,
                user_id=user_id,
            )
        logger.debug(
            "Snapshot subscriber added: meeting_id=%s subscription_id=%s user_id=%s",
            meeting_id,
            subscription_id,
            user_id,
        )
        return subscription_id

    def unsubscribe(self, meeting_id: str, subscription_id: str) -> None:
        with self._lock:
            meeting_subscriptions = self.subscriptions.get(meeting_id)
            if not meeting_subscriptions:
                return
            if meeting_subscriptions.pop(subscription_id, None) is not None:
                logger.debug(
                    "Snapshot subscriber removed: meeting_id=%s subscription_id=%s",
                    meeting_id,
                    subscription_id,
                )
            if not meeting_subscriptions:
                self.subscriptions.pop(meeting_id, None)

    def last_version(self, meeting_id: str) -> int:
        with self._lock:
            return self._delivered_versions.get(meeting_id, 0)

    def publish(self, meeting_id: str, version: int, payload: Dict[str, Any]) -> bool:
        """Deliver a committed snapshot; returns False when it was superseded."""
        with self._lock:
            if version <= self._delivered_versions.get(meeting_id, 0):
                logger.debug(
                    "Skipping stale snapshot: meeting_id=%s version=%s",
                    meeting_id,
                    version,
                )
                return False
            self._delivered_versions[meeting_id] = version
            targets = list(self.subscriptions.get(meeting_id, {}).values())

        failed: list[str] = []
        for subscription in targets:
            try:
                subscription.callback(meeting_id, version, payload)
            except Exception:
                logger.warning(
                    "Dropping snapshot subscriber after delivery failure: "
                    "meeting_id=%s subscription_id=%s",
                    meeting_id,
                    subscription.id,
                    exc_info=True,
                )
                failed.append(subscription.id)

        for subscription_id in failed:
            self.unsubscribe(meeting_id, subscription_id)
        return True


# Create a singleton instance
snapshot_hub = SnapshotHub()
