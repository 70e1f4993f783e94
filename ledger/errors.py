"""
Error types for the Allocation Ledger.

Every failure surfaces synchronously to the caller. Operations that raise
leave the object graph and the free-space counters exactly as they were
before the call.
"""

from typing import Any, Optional


class LedgerError(Exception):
    """Base class for all ledger failures"""


class InvalidSize(LedgerError):
    """
    Raised when a payload size is negative or not an integer.

    The caller must fix its input; the size is never clamped.
    """

    def __init__(self, size: Any):
        super().__init__(f"invalid payload size: {size!r}")
        self.size = size


class UnknownObject(LedgerError):
    """Raised when an operation names an object id that is not in the graph"""

    def __init__(self, object_id: Any, context: Optional[str] = None):
        message = f"unknown object: {object_id!r}"
        if context:
            message = f"{message} ({context})"
        super().__init__(message)
        self.object_id = object_id


class CorruptGraph(LedgerError):
    """
    Raised when an internal invariant of the object graph is broken.

    This is a programming error. The graph instance that raised it is
    poisoned and refuses further mutation or collection.
    """


class ConfigurationError(LedgerError):
    """Raised for invalid size-class tables or pool parameters"""
