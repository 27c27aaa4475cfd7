# services/grid/events.py

from collections import defaultdict
from typing import Any, Callable


CELL_EDITED = "cell_edited"
LOOKUP_REQUESTED = "lookup_requested"
ROWS_SELECTED = "rows_selected"
DATA_CHANGED = "data_changed"
TABLE_EXPANDED = "table_expanded"


class EventBus:
    def __init__(self):
        self._handlers: dict[str, list[Callable[[Any], None]]] = defaultdict(list)

    def subscribe(self, event: str, handler: Callable[[Any], None]) -> Callable[[], None]:
        self._handlers[event].append(handler)

        def _unsubscribe():
            if handler in self._handlers[event]:
                self._handlers[event].remove(handler)

        return _unsubscribe

    def publish(self, event: str, payload: Any = None) -> None:
        for handler in list(self._handlers.get(event, ())):
            handler(payload)
