"""
Exceptions raised by the editor and its backends.

Every error here is recoverable: the session catches it, leaves the model in
its previous state and reports a notice.
"""


class EditorError(Exception):
    """Base class for editor errors."""


class IngestionError(EditorError):
    """A file could not be added (unsupported type, too large, corrupt)."""

    def __init__(self, name: str, reason: str):
        super().__init__(f"{name}: {reason}")
        self.name = name
        self.reason = reason


class DecodeError(EditorError):
    """An image or signature could not be decoded."""


class RestoreError(EditorError):
    """A structural history snapshot could not be re-rendered."""


class ExportError(EditorError):
    """The output document could not be built."""


class BusyError(EditorError):
    """An asynchronous operation is already running."""
