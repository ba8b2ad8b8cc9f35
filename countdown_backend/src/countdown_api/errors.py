from __future__ import annotations


# PUBLIC_INTERFACE
class StoreError(Exception):
    """
    A storage backend could not complete an operation (I/O failure, database
    error, unreadable data). Never raised for a missing record; stores report
    that through their return values.
    """

    def __init__(self, message: str, backend: str = "unknown") -> None:
        super().__init__(message)
        self.message = message
        self.backend = backend


# PUBLIC_INTERFACE
class StoreCapacityError(StoreError):
    """The backing medium is full or a configured quota would be exceeded."""
