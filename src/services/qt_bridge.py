"""
Qt Bridge - Re-emits WatchCell updates as Qt signals.

Cell subscribers run on the writer's thread (usually the dispatch worker).
Emitting a signal from there is safe: Qt queues the call to receivers
living on the GUI thread.
"""

import logging
from typing import Callable, Optional

from PyQt6.QtCore import QObject, pyqtSignal

from models.progress import ProgressEvent, WatchCell

logger = logging.getLogger(__name__)


class CellSignalBridge(QObject):
    """Emits value_changed(object) for every new value of a cell."""

    value_changed = pyqtSignal(object)

    def __init__(self, cell: WatchCell, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.cell = cell
        self._unsubscribe: Optional[Callable[[], None]] = cell.subscribe(self._on_value)

    def _on_value(self, value) -> None:
        self.value_changed.emit(value)

    def detach(self) -> None:
        """Stop forwarding updates."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
            logger.debug(f"Detached bridge for cell '{self.cell.name}'")


class ProgressSignalBridge(CellSignalBridge):
    """
    Progress cell bridge.

    progress_changed(ProgressEvent) fires for every event;
    operation_finished(message, is_error) fires once an event reaches 1.0.
    """

    progress_changed = pyqtSignal(object)        # ProgressEvent
    operation_finished = pyqtSignal(str, bool)   # message, is_error

    def _on_value(self, value) -> None:
        super()._on_value(value)
        if not isinstance(value, ProgressEvent):
            return
        self.progress_changed.emit(value)
        if value.finished:
            self.operation_finished.emit(value.message, value.error)
