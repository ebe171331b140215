from enum import Enum
from typing import Any, Dict, List, Protocol

from ..utils.logger import logger


class DeleteKind(Enum):
    SOFT = "soft"
    HARD = "hard"


class RecordObserver(Protocol):
    """Lifecycle listener registered on a RecordEngine; every method is optional"""

    def after_create(self, record: Dict[str, Any]) -> None: ...

    def after_update(self, record: Dict[str, Any], previous: Dict[str, Any]) -> None: ...

    def after_delete(self, record: Dict[str, Any], kind: DeleteKind) -> None: ...


class ObserverRegistry:
    """
    Fan-out of lifecycle notifications

    A failing observer is logged and skipped; the write it reports on has
    already happened and is not undone.
    """

    def __init__(self):
        self._observers: List[RecordObserver] = []

    def add(self, observer: RecordObserver) -> None:
        self._observers.append(observer)

    def remove(self, observer: RecordObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def notify(self, event: str, *args) -> None:
        for observer in list(self._observers):
            handler = getattr(observer, event, None)
            if handler is None:
                continue
            try:
                handler(*args)
            except Exception as e:
                logger.error(f"Observer {type(observer).__name__}.{event} failed: {e}")
