"""
Event Bus - Handler Routing
Producers emit named events, handlers register for the names they care about.
Used to fan change-feed events out to view handlers and to publish session changes.
"""

from typing import Callable, Dict, List, Any
import logging

logger = logging.getLogger(__name__)


class EventBus:
    """
    Synchronous event bus. Handlers run in registration order; a failing
    handler is logged and never stops the others.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Callable]] = {}

    def on(self, event_name: str, handler: Callable):
        """
        Register a handler for an event.

        Args:
            event_name: Name of the event to listen for
            handler: Callable that receives event_data dict
        """
        if event_name not in self._handlers:
            self._handlers[event_name] = []
        self._handlers[event_name].append(handler)
        logger.debug(f"Registered handler for event '{event_name}': {getattr(handler, '__name__', handler)!s}")

    def emit(self, event_name: str, event_data: Dict[str, Any] = None) -> int:
        """
        Emit an event to all registered handlers.

        Args:
            event_name: Name of the event
            event_data: Optional dict of data to pass to handlers
        Returns: number of handlers that completed without raising
        """
        if event_data is None:
            event_data = {}

        logger.debug(f"Emitting event '{event_name}'")

        completed = 0
        for handler in self._handlers.get(event_name, []):
            try:
                handler(event_data)
                completed += 1
            except Exception as e:
                logger.error(f"Error in handler {getattr(handler, '__name__', handler)!s} for event '{event_name}': {e}")
        return completed

    def off(self, event_name: str, handler: Callable) -> bool:
        """Unregister a handler. Returns False if it was not registered."""
        handlers = self._handlers.get(event_name, [])
        if handler not in handlers:
            return False
        handlers.remove(handler)
        return True

    def handles(self, event_name: str) -> bool:
        return bool(self._handlers.get(event_name))

    def clear(self):
        """Clear all handlers."""
        self._handlers.clear()


# =============================================================================
# STANDARD EVENTS
# =============================================================================

# Change feed
EVENT_CHANGE = 'change'
EVENT_INSERT = 'INSERT'
EVENT_UPDATE = 'UPDATE'
EVENT_DELETE = 'DELETE'

# Auth
EVENT_SESSION_CHANGED = 'session_changed'
