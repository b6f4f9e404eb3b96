"""
Workspace Store - durable-storage core of the Midlight document editor.

This package provides:
- A deduplicating, gzip-compressed, SHA-256 addressed object store
- Caller-driven mark-and-sweep garbage collection
- Staged, all-or-nothing import transactions with rollback
- An advisory disk-space precheck

Main entry point:
    WorkspaceStorage - per-workspace interface for all operations

Example usage:
    from workspace_store import WorkspaceStorage

    storage = WorkspaceStorage('/path/to/workspace')
    storage.initialize()

    ref = storage.store_snapshot('# Notes', {'marks': []})
    content, sidecar = storage.load_snapshot(ref)

    with storage.begin_import('Imported', estimated_bytes=4096) as tx:
        tx.stage_file('notes/a.md', '# A')

    storage.collect_garbage([ref])
"""

from .config import DEFAULT_CONFIG, StoreConfig, setup_logging
from .engine import SnapshotRef, WorkspaceStorage
from .errors import (
    WorkspaceStoreError,
    ObjectNotFoundError,
    ObjectCorruptedError,
    InvalidHashError,
    StorageError,
    ObjectNotTextError,
    TransactionError,
    TransactionStateError,
    InvalidPathError,
    CommitError,
    InsufficientDiskSpaceError,
)
from .storage.gc import GarbageCollector, select_garbage
from .storage.object_store import ObjectStore
from .transaction.disk_space import DiskSpaceResult, validate_disk_space
from .transaction.import_transaction import (
    ImportTransaction,
    StagedFile,
    TransactionState,
    TransactionStats,
)

__version__ = '0.1.0'

__all__ = [
    # Main engine
    'WorkspaceStorage',
    'SnapshotRef',

    # Components
    'ObjectStore',
    'GarbageCollector',
    'select_garbage',
    'ImportTransaction',
    'StagedFile',
    'TransactionState',
    'TransactionStats',
    'validate_disk_space',
    'DiskSpaceResult',

    # Configuration
    'StoreConfig',
    'DEFAULT_CONFIG',
    'setup_logging',

    # Errors
    'WorkspaceStoreError',
    'ObjectNotFoundError',
    'ObjectCorruptedError',
    'InvalidHashError',
    'StorageError',
    'ObjectNotTextError',
    'TransactionError',
    'TransactionStateError',
    'InvalidPathError',
    'CommitError',
    'InsufficientDiskSpaceError',
]
