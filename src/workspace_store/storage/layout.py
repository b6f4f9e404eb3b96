"""
Filesystem layout for object storage.

Implements content-addressed storage with directory sharding.
"""

from pathlib import Path
from typing import Iterator, Optional, Tuple

from ..config import DEFAULT_CONFIG, StoreConfig
from ..errors import StorageError
from ..integrity.hashing import ensure_valid_hash, get_hash_prefix, is_valid_hash


SHARD_PREFIX_LENGTH = 2


class StorageLayout:
    """
    Manages filesystem layout for content-addressed objects.

    Layout:
        workspace_root/
            .midlight/
                objects/
                    <first 2 hex chars>/
                        <remaining 62 hex chars>    # gzip blob
    """

    def __init__(self, workspace_root: str | Path, config: Optional[StoreConfig] = None):
        """Initialize storage layout for the given workspace."""
        self.config = config or DEFAULT_CONFIG
        self.workspace_root = Path(workspace_root).resolve()
        self.metadata_dir = self.workspace_root / self.config.metadata_dir
        self.objects_dir = self.metadata_dir / self.config.objects_dir

    def initialize(self) -> None:
        """
        Initialize storage directory structure.

        Idempotent - safe to call multiple times.
        """
        try:
            self.objects_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError("initialize", str(self.objects_dir), e)

    def get_object_path(self, obj_hash: str) -> Path:
        """
        Get filesystem path for an object by its hash.

        The first two characters name the shard directory and the
        remaining 62 name the file, like git's loose objects.
        """
        ensure_valid_hash(obj_hash)
        prefix = get_hash_prefix(obj_hash, SHARD_PREFIX_LENGTH)
        return self.objects_dir / prefix / obj_hash[SHARD_PREFIX_LENGTH:]

    def ensure_object_directory(self, obj_hash: str) -> Path:
        """Ensure the shard directory for an object exists and return it."""
        shard_dir = self.get_object_path(obj_hash).parent
        try:
            shard_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError("mkdir", str(shard_dir), e)
        return shard_dir

    def iter_objects(self) -> Iterator[Tuple[str, Path]]:
        """
        Yield (hash, path) for every stored object.

        The hash is rebuilt from the shard directory name plus the file
        name. Anything that does not form a valid hash (temporary files
        from an interrupted write, stray files) is skipped.
        """
        if not self.objects_dir.is_dir():
            return

        try:
            shard_dirs = sorted(self.objects_dir.iterdir())
        except OSError as e:
            raise StorageError("list_objects", str(self.objects_dir), e)

        for shard_dir in shard_dirs:
            if len(shard_dir.name) != SHARD_PREFIX_LENGTH or not shard_dir.is_dir():
                continue

            try:
                entries = sorted(shard_dir.iterdir())
            except OSError as e:
                raise StorageError("list_objects", str(shard_dir), e)

            for obj_file in entries:
                obj_hash = shard_dir.name + obj_file.name
                if is_valid_hash(obj_hash) and obj_file.is_file():
                    yield obj_hash, obj_file

    def list_all_objects(self) -> list[str]:
        """List all object hashes in the store."""
        return [obj_hash for obj_hash, _ in self.iter_objects()]

    def object_exists(self, obj_hash: str) -> bool:
        """Check if an object exists in storage. Malformed hashes never exist."""
        if not is_valid_hash(obj_hash):
            return False
        return self.get_object_path(obj_hash).is_file()

    def remove_empty_shards(self) -> int:
        """
        Remove shard directories left empty by deletions.

        Returns number of directories removed.
        """
        removed = 0

        if not self.objects_dir.is_dir():
            return removed

        for shard_dir in self.objects_dir.iterdir():
            if not shard_dir.is_dir():
                continue
            try:
                next(shard_dir.iterdir())
            except StopIteration:
                try:
                    shard_dir.rmdir()
                    removed += 1
                except OSError:
                    # Repopulated or locked since the listing; keep it.
                    continue

        return removed

    def get_storage_stats(self) -> dict:
        """
        Get storage statistics.

        Returns dict with:
        - total_objects: number of objects
        - total_size_bytes: total on-disk (compressed) size in bytes
        """
        stats = {
            'total_objects': 0,
            'total_size_bytes': 0,
        }

        for _, obj_path in self.iter_objects():
            try:
                size = obj_path.stat().st_size
            except FileNotFoundError:
                continue  # Deleted between listing and stat
            stats['total_objects'] += 1
            stats['total_size_bytes'] += size

        return stats
