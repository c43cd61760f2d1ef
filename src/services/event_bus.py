"""
Event Bus Service - single-threaded publish/subscribe

Key behaviors (tested in test_services/test_event_bus.py):
- Weak references for automatic subscriber cleanup (WeakMethod for bound methods)
- Synchronous dispatch on the caller's event loop, no worker thread
- Callback ID tracking for proper unsubscribe
- A failing callback never prevents delivery to the others
"""

import logging
import weakref
from collections.abc import Callable
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class Events(Enum):
    """Events published by the round lifecycle"""

    # Round state machine
    ROUND_STATE_CHANGED = "round.state_changed"
    ROUND_COMMITTED = "round.committed"
    ROUND_STARTED = "round.started"
    ROUND_FAILED = "round.failed"
    ROUND_COMPLETED = "round.completed"  # Carries the immutable GameResult

    # Playback
    PLAYBACK_STARTED = "playback.started"
    PLAYBACK_STEP = "playback.step"
    PLAYBACK_COMPLETE = "playback.complete"
    PLAYBACK_CANCELLED = "playback.cancelled"

    # Reveal / verification
    REVEAL_COMPLETED = "reveal.completed"
    REVEAL_FAILED = "reveal.failed"
    VERIFICATION_PREPARED = "verification.prepared"
    VERIFICATION_SUCCEEDED = "verification.succeeded"
    VERIFICATION_FAILED = "verification.failed"


class EventBus:
    """
    In-process event bus.

    Everything in this client runs on one cooperative asyncio loop, so
    publish() delivers to subscribers immediately, in subscription order.
    """

    def __init__(self):
        # Subscribers stored as (callback_id, weak_ref_or_callback) tuples
        self._subscribers: dict[Events, list[tuple[int, Any]]] = {}

        self._stats = {
            "events_published": 0,
            "events_processed": 0,
            "errors": 0,
        }

        logger.debug("EventBus initialized")

    def subscribe(self, event: Events, callback: Callable, weak: bool = True):
        """
        Subscribe to an event.

        Args:
            event: Event to subscribe to
            callback: Callback function
            weak: Use weak reference for automatic cleanup (default True)
        """
        entries = self._subscribers.setdefault(event, [])
        cb_id = self._callback_id(callback)

        # Skip if already subscribed (prevent duplicates)
        for existing_id, ref in entries:
            if existing_id == cb_id and self._resolve_callback(ref) is not None:
                logger.debug(f"Already subscribed to {event.value}, skipping duplicate")
                return

        entries[:] = [(cid, ref) for cid, ref in entries if cid != cb_id]

        if weak:
            try:
                if hasattr(callback, "__self__") and hasattr(callback, "__func__"):
                    ref = weakref.WeakMethod(callback)
                else:
                    ref = weakref.ref(callback)
            except TypeError:
                # Callback not weak-referenceable, store directly
                ref = callback
        else:
            ref = callback

        entries.append((cb_id, ref))
        logger.debug(f"Subscribed to {event.value}")

    def unsubscribe(self, event: Events, callback: Callable):
        """Unsubscribe from an event using callback ID matching."""
        if event not in self._subscribers:
            logger.debug(f"No subscribers for {event.value}, nothing to unsubscribe")
            return

        cb_id = self._callback_id(callback)
        self._subscribers[event] = [
            (cid, ref) for cid, ref in self._subscribers[event] if cid != cb_id
        ]
        if not self._subscribers[event]:
            self._subscribers.pop(event, None)
        logger.debug(f"Unsubscribed from {event.value}")

    def publish(self, event: Events, data: Any = None):
        """Publish an event to all subscribers."""
        self._stats["events_published"] += 1
        self._dispatch(event, data)

    def _dispatch(self, event: Events, data: Any):
        """Dispatch event to live subscribers, pruning dead weak references."""
        callbacks_to_call = []
        if event in self._subscribers:
            alive_entries = []
            for cb_id, ref in self._subscribers[event]:
                callback = self._resolve_callback(ref)
                if callback is not None:
                    callbacks_to_call.append(callback)
                    alive_entries.append((cb_id, ref))
            self._subscribers[event] = alive_entries

        for callback in callbacks_to_call:
            try:
                callback({"name": event.value, "data": data})
                self._stats["events_processed"] += 1
            except Exception as e:
                self._stats["errors"] += 1
                logger.error(f"Error in callback for {event.value}: {e}", exc_info=True)

    @staticmethod
    def _callback_id(callback: Callable) -> int:
        """Stable identity for plain functions and bound methods alike"""
        if hasattr(callback, "__self__") and hasattr(callback, "__func__"):
            return hash((id(callback.__self__), id(callback.__func__)))
        return id(callback)

    def _resolve_callback(self, ref):
        """Safely resolve weak or direct callback reference"""
        if isinstance(ref, weakref.ReferenceType):
            return ref()
        if callable(ref):
            return ref
        return None

    def get_stats(self) -> dict[str, Any]:
        """Get event bus statistics including processing counters."""
        stats = {
            "subscriber_count": sum(len(entries) for entries in self._subscribers.values()),
            "event_types": len(self._subscribers),
        }
        stats.update(self._stats)
        return stats

    def has_subscribers(self, event: Events) -> bool:
        """Return True if there are any live subscribers for an event."""
        entries = self._subscribers.get(event)
        if not entries:
            return False

        alive_entries = [
            (cb_id, ref) for cb_id, ref in entries if self._resolve_callback(ref) is not None
        ]
        if alive_entries:
            self._subscribers[event] = alive_entries
            return True

        self._subscribers.pop(event, None)
        return False

    def clear_all(self):
        """Clear all subscribers (for testing/cleanup)."""
        self._subscribers.clear()
        logger.debug("All subscribers cleared")


# Global instance
event_bus = EventBus()
