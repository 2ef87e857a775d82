"""Named-event dispatch shared by uploaders and transfer units"""

from typing import Callable, Dict, List, Optional


class EventEmitter:
    """Minimal named-event dispatcher"""

    def __init__(self):
        self._handlers: Dict[str, List[Callable]] = {}

    def bind(self, event: str, handler: Callable):
        self._handlers.setdefault(event.lower(), []).append(handler)

    def unbind(self, event: Optional[str] = None, handler: Optional[Callable] = None):
        """Remove one handler, all handlers of an event, or everything"""
        if event is None:
            self._handlers.clear()
            return

        event = event.lower()
        if handler is None:
            self._handlers.pop(event, None)
        elif handler in self._handlers.get(event, []):
            self._handlers[event].remove(handler)

    def has_listeners(self, event: str) -> bool:
        return bool(self._handlers.get(event.lower()))

    def trigger(self, event: str, *args):
        # Copy so handlers may unbind themselves
        for handler in list(self._handlers.get(event.lower(), [])):
            handler(*args)
