from typing import Dict, List, Callable, Any
import logging

logger = logging.getLogger(__name__)

class EventBus:
    """
    In-process publish/subscribe hub for ledger events.

    Services publish only after their unit of work has committed. Handler
    failures are logged and never reach the publisher.
    """
    def __init__(self):
        self._handlers: Dict[str, List[Callable]] = {}

    def subscribe(self, event_type: str, handler: Callable):
        if event_type not in self._handlers:
            self._handlers[event_type] = []
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: str, handler: Callable):
        if event_type in self._handlers:
            self._handlers[event_type].remove(handler)

    def publish(self, event_type: str, data: Dict[str, Any]):
        for handler in list(self._handlers.get(event_type, [])):
            try:
                handler(data)
            except Exception as e:
                logger.error(f"Error in event handler {getattr(handler, '__name__', handler)} for {event_type}: {e}", exc_info=True)

event_bus = EventBus()
