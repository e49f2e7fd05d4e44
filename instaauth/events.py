"""
Event System
=============
Subscription interface for auth state transitions.

Endpoint modules register against SESSION_INVALIDATED to rebuild any
cached per-session data after login, two-factor, challenge, restore
or logout. Callback failures are logged and never reach the engine.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union


logger = logging.getLogger("instaauth.events")


class EventType(str, Enum):
    """Event types emitted by the auth engine."""

    # Transition events
    LOGIN = "login"
    TWO_FACTOR = "two_factor"
    CHALLENGE = "challenge"
    LOGOUT = "logout"
    REGISTRATION = "registration"

    # Session events
    SESSION_INVALIDATED = "session_invalidated"
    SESSION_RESTORED = "session_restored"

    ERROR = "error"


@dataclass
class EventData:
    """
    Event payload passed to callbacks.

    Attributes:
        event_type: Type of event
        timestamp: Unix timestamp when event occurred
        state: Engine state after the transition
        outcome: Outcome code of the operation (if any)
        error: Exception attached to the event (if error event)
        extra: Additional context data
    """

    event_type: EventType
    timestamp: float = field(default_factory=time.time)
    state: str = ""
    outcome: str = ""
    error: Optional[Exception] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def __repr__(self) -> str:
        parts = [f"EventData({self.event_type.value}"]
        if self.state:
            parts.append(f", state={self.state!r}")
        if self.outcome:
            parts.append(f", outcome={self.outcome!r}")
        if self.error:
            parts.append(f", error={self.error!r}")
        parts.append(")")
        return "".join(parts)


EventCallback = Callable[[EventData], Any]


class EventEmitter:
    """
    Synchronous event emitter.

    Usage:
        emitter = EventEmitter()
        emitter.on(EventType.SESSION_INVALIDATED, lambda e: cache.clear())
        emitter.emit(EventType.SESSION_INVALIDATED, state="authenticated")
    """

    def __init__(self):
        self._listeners: Dict[EventType, List[EventCallback]] = {}
        self._global_listeners: List[EventCallback] = []

    def on(self, event_type: Union[EventType, str], callback: EventCallback) -> "EventEmitter":
        """Register a callback for an event type. Returns self for chaining."""
        if isinstance(event_type, str):
            event_type = EventType(event_type)
        self._listeners.setdefault(event_type, []).append(callback)
        return self

    def on_all(self, callback: EventCallback) -> "EventEmitter":
        """Register a callback for ALL events."""
        self._global_listeners.append(callback)
        return self

    def off(self, event_type: Union[EventType, str], callback: EventCallback) -> "EventEmitter":
        """Remove a callback for an event type."""
        if isinstance(event_type, str):
            event_type = EventType(event_type)
        listeners = self._listeners.get(event_type, [])
        if callback in listeners:
            listeners.remove(callback)
        return self

    def off_all(self, event_type: Optional[Union[EventType, str]] = None) -> "EventEmitter":
        """Remove all callbacks for a given event type, or all events."""
        if event_type is None:
            self._listeners.clear()
            self._global_listeners.clear()
        else:
            if isinstance(event_type, str):
                event_type = EventType(event_type)
            self._listeners.pop(event_type, None)
        return self

    def emit(self, event_type: Union[EventType, str], **kwargs) -> None:
        """Build EventData from kwargs and call every registered listener."""
        if isinstance(event_type, str):
            event_type = EventType(event_type)

        event = EventData(event_type=event_type, **kwargs)
        callbacks = self._listeners.get(event_type, []) + self._global_listeners

        for cb in callbacks:
            try:
                cb(event)
            except Exception as e:
                logger.warning(f"Event callback error ({event_type.value}): {e}")

    @property
    def listener_count(self) -> int:
        """Total number of registered listeners."""
        count = len(self._global_listeners)
        for listeners in self._listeners.values():
            count += len(listeners)
        return count

    def has_listeners(self, event_type: Union[EventType, str]) -> bool:
        if isinstance(event_type, str):
            event_type = EventType(event_type)
        return bool(self._listeners.get(event_type)) or bool(self._global_listeners)
