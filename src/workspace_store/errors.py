"""
Error types for workspace storage operations.

All errors are explicit and never silent.
"""


class WorkspaceStoreError(Exception):
    """Base exception for all workspace storage errors."""
    pass


class ObjectNotFoundError(WorkspaceStoreError):
    """Raised when a requested object does not exist."""

    def __init__(self, object_hash: str):
        self.object_hash = object_hash
        super().__init__(f"Object not found: {object_hash}")


class ObjectCorruptedError(WorkspaceStoreError):
    """Raised when a stored blob cannot be decoded or no longer matches its hash."""

    def __init__(self, object_hash: str, reason: str):
        self.object_hash = object_hash
        self.reason = reason
        super().__init__(f"Object corrupted: {object_hash}\nReason: {reason}")


class InvalidHashError(WorkspaceStoreError):
    """Raised when a string is not a well-formed object hash."""

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Invalid object hash: {value!r}")


class StorageError(WorkspaceStoreError):
    """Raised when filesystem operations fail."""

    def __init__(self, operation: str, path: str, cause: Exception = None):
        self.operation = operation
        self.path = path
        self.cause = cause
        msg = f"Storage error during {operation}: {path}"
        if cause:
            msg += f"\nCause: {cause}"
        super().__init__(msg)


class ObjectNotTextError(WorkspaceStoreError):
    """
    Raised when text is requested for an object holding binary content.

    The blob itself is intact; read it with read_bytes() instead.
    """

    def __init__(self, object_hash: str, reason: str):
        self.object_hash = object_hash
        self.reason = reason
        super().__init__(f"Object is not UTF-8 text: {object_hash}\nReason: {reason}")


class TransactionError(WorkspaceStoreError):
    """Base exception for import transaction failures."""
    pass


class TransactionStateError(TransactionError):
    """Raised when an operation is not allowed in the transaction's current state."""

    def __init__(self, state: str, operation: str):
        self.state = state
        self.operation = operation
        super().__init__(f"Cannot {operation}: transaction is {state}")


class InvalidPathError(TransactionError):
    """Raised when a relative path has nothing left after sanitization."""

    def __init__(self, path: str, reason: str = "empty after sanitization"):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid file path: {path!r} ({reason})")


class CommitError(TransactionError):
    """
    Raised when moving a staged file into the destination fails.

    The staging directory is left intact so the commit can be retried
    or the transaction rolled back.
    """

    def __init__(self, relative_path: str, cause: Exception = None):
        self.relative_path = relative_path
        self.cause = cause
        msg = f"Commit failed for {relative_path}"
        if cause:
            msg += f"\nCause: {cause}"
        super().__init__(msg)


class InsufficientDiskSpaceError(TransactionError):
    """Raised when an import is refused by the disk-space precheck."""

    def __init__(self, message: str):
        self.details = message
        super().__init__(message)
