"""
Workspace storage engine.

Main entry point coordinating the object store and import transactions
for one workspace.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from .config import DEFAULT_CONFIG, StoreConfig
from .errors import InsufficientDiskSpaceError
from .integrity.canonical import canonical_json_str
from .storage.object_store import ObjectStore
from .transaction.disk_space import validate_disk_space
from .transaction.import_transaction import ImportTransaction


@dataclass(frozen=True)
class SnapshotRef:
    """
    Hashes of one stored document snapshot.

    Checkpoint records keep these as foreign keys into the object store.
    """
    content_hash: str
    sidecar_hash: str

    def hashes(self) -> Tuple[str, str]:
        return (self.content_hash, self.sidecar_hash)


class WorkspaceStorage:
    """
    Durable-storage core of one workspace.

    This is the primary interface for:
    - Storing and loading document snapshots (content + sidecar)
    - Garbage collecting snapshots no checkpoint references
    - Opening import transactions after a disk-space precheck
    """

    def __init__(self, workspace_root: Union[str, Path], config: Optional[StoreConfig] = None):
        """
        Initialize storage for a workspace.

        Args:
            workspace_root: directory holding the documents and .midlight/
            config: optional StoreConfig, defaults to DEFAULT_CONFIG
        """
        self.config = config or DEFAULT_CONFIG
        self.workspace_root = Path(workspace_root).resolve()
        self.objects = ObjectStore(self.workspace_root, self.config)

    def initialize(self) -> None:
        """
        Initialize the store.

        Safe to call multiple times (idempotent).
        """
        self.objects.init()

    # ========== Snapshots ==========

    def store_snapshot(self, content: str, sidecar: Union[str, Dict[str, Any]]) -> SnapshotRef:
        """
        Store a document snapshot as two objects.

        Args:
            content: document text (markdown)
            sidecar: formatting metadata, as JSON text or a dict that is
                     serialized canonically so equal metadata dedups

        Returns SnapshotRef with both hashes.
        """
        sidecar_text = sidecar if isinstance(sidecar, str) else canonical_json_str(sidecar)
        return SnapshotRef(
            content_hash=self.objects.write(content),
            sidecar_hash=self.objects.write(sidecar_text),
        )

    def load_snapshot(self, ref: SnapshotRef) -> Tuple[str, Dict[str, Any]]:
        """
        Load a snapshot's content and parsed sidecar.

        Raises ObjectNotFoundError if either object was collected.
        """
        content = self.objects.read(ref.content_hash)
        sidecar = json.loads(self.objects.read(ref.sidecar_hash))
        return content, sidecar

    def has_snapshot(self, ref: SnapshotRef) -> bool:
        """Check that both objects of a snapshot are present."""
        return all(self.objects.exists(h) for h in ref.hashes())

    # ========== Garbage Collection ==========

    def collect_garbage(self, retained: Iterable[SnapshotRef], dry_run: bool = False) -> dict:
        """
        Delete every object not referenced by a retained snapshot.

        The caller must pass a consistent set, e.g. with checkpoint
        writes paused.

        Returns the collector's report (deleted, freed_bytes, errors...).
        """
        live = set()
        for ref in retained:
            live.update(ref.hashes())
        return self.objects.collect(live, dry_run=dry_run)

    # ========== Imports ==========

    def begin_import(self, destination: Union[str, Path], estimated_bytes: int = 0) -> ImportTransaction:
        """
        Open an initialized import transaction into destination.

        Relative destinations are taken relative to the workspace root.

        Raises InsufficientDiskSpaceError if the precheck fails.
        """
        destination = Path(destination)
        if not destination.is_absolute():
            destination = self.workspace_root / destination

        if estimated_bytes > 0:
            check = validate_disk_space(destination, estimated_bytes, self.config)
            if not check.valid:
                raise InsufficientDiskSpaceError(check.error)

        transaction = ImportTransaction(destination, self.config)
        transaction.initialize()
        return transaction

    # ========== Statistics ==========

    def get_statistics(self) -> Dict[str, Any]:
        """Get object store statistics."""
        stats = self.objects.get_stats()
        stats['workspace_root'] = str(self.workspace_root)
        return stats

    def __repr__(self) -> str:
        return f"WorkspaceStorage(path={self.workspace_root})"
