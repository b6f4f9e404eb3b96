"""
Content-addressed object storage.

Stores immutable document content gzip-compressed under its SHA-256 hash.
"""

import gzip
import logging
import os
import tempfile
import zlib
from pathlib import Path
from typing import Iterable, List, Optional

from ..config import DEFAULT_CONFIG, StoreConfig
from ..errors import (
    ObjectCorruptedError,
    ObjectNotFoundError,
    ObjectNotTextError,
    StorageError,
)
from ..integrity.hashing import Content, compute_hash, is_valid_hash, to_bytes
from .gc import GarbageCollector
from .layout import StorageLayout


logger = logging.getLogger(__name__)


class ObjectStore:
    """
    Content-addressed object store with immutable objects.

    Objects are stored by their content hash under
    <workspace>/.midlight/objects/. Writing content that is already
    present is a no-op; once written, objects only go away through gc().
    """

    def __init__(self, workspace_root: str | Path, config: Optional[StoreConfig] = None):
        """Initialize object store for the given workspace root."""
        self.config = config or DEFAULT_CONFIG
        self.layout = StorageLayout(workspace_root, self.config)
        self.collector = GarbageCollector(
            list_all_func=self.get_all_hashes,
            delete_object_func=self.delete,
        )

    @property
    def objects_dir(self) -> Path:
        return self.layout.objects_dir

    def init(self) -> None:
        """
        Create the objects directory.

        Idempotent - safe to call multiple times.
        """
        self.layout.initialize()

    def hash(self, content: Content) -> str:
        """Calculate SHA-256 hash of content without touching the store."""
        return compute_hash(to_bytes(content))

    def write(self, content: Content) -> str:
        """
        Store content and return its hash.

        The object is stored immutably:
        - Hash is computed from the exact bytes (text as UTF-8)
        - If the hash already exists, nothing is written (deduplication)
        - New blobs are written atomically, gzip-compressed

        Returns the content hash.
        """
        data = to_bytes(content)
        obj_hash = compute_hash(data)
        obj_path = self.layout.get_object_path(obj_hash)

        if obj_path.is_file():
            logger.debug("Object %s already in store, skipped", obj_hash[:8])
            return obj_hash

        self.layout.ensure_object_directory(obj_hash)
        compressed = gzip.compress(data, compresslevel=self.config.compression_level, mtime=0)
        self._write_object_atomic(obj_path, compressed)

        logger.debug(
            "Stored object %s (%d bytes, %d compressed)",
            obj_hash[:8], len(data), len(compressed),
        )
        return obj_hash

    def read(self, obj_hash: str) -> str:
        """
        Retrieve text content by hash.

        Raises ObjectNotFoundError if the object doesn't exist.
        Raises ObjectCorruptedError if the blob cannot be decompressed.
        Raises ObjectNotTextError if the content is intact but not UTF-8;
        binary objects are read with read_bytes().
        """
        data = self.read_bytes(obj_hash)
        try:
            return data.decode('utf-8')
        except UnicodeDecodeError as e:
            raise ObjectNotTextError(obj_hash, str(e)) from e

    def read_bytes(self, obj_hash: str) -> bytes:
        """
        Retrieve raw content by hash.

        Raises ObjectNotFoundError if the object doesn't exist.
        Raises ObjectCorruptedError if decompression fails.
        """
        if not is_valid_hash(obj_hash):
            raise ObjectNotFoundError(obj_hash)

        obj_path = self.layout.get_object_path(obj_hash)

        try:
            compressed = obj_path.read_bytes()
        except (FileNotFoundError, NotADirectoryError):
            raise ObjectNotFoundError(obj_hash)
        except OSError as e:
            raise StorageError("read_object", str(obj_path), e)

        try:
            return gzip.decompress(compressed)
        except (OSError, EOFError, zlib.error) as e:
            # gzip.BadGzipFile is an OSError
            raise ObjectCorruptedError(obj_hash, f"decompression failed: {e}")

    def exists(self, obj_hash: str) -> bool:
        """Check if an object exists in the store. Never raises."""
        try:
            return self.layout.object_exists(obj_hash)
        except OSError:
            return False

    def verify(self, obj_hash: str) -> bool:
        """
        Verify an object's integrity.

        Returns True if the decompressed content still hashes to obj_hash.
        Raises ObjectCorruptedError if it does not.
        """
        data = self.read_bytes(obj_hash)
        actual = compute_hash(data)
        if actual != obj_hash:
            raise ObjectCorruptedError(obj_hash, f"content hashes to {actual}")
        return True

    def delete(self, obj_hash: str) -> int:
        """
        Delete an object from the store.

        This is used by garbage collection.

        Returns the number of bytes freed, 0 if it didn't exist.
        """
        obj_path = self.layout.get_object_path(obj_hash)

        try:
            size = obj_path.stat().st_size
            obj_path.unlink()
        except FileNotFoundError:
            return 0
        except OSError as e:
            raise StorageError("delete_object", str(obj_path), e)

        return size

    def get_storage_size(self) -> int:
        """Get total on-disk (compressed) size of the object store in bytes."""
        return self.layout.get_storage_stats()['total_size_bytes']

    def get_object_count(self) -> int:
        """Get count of objects in store."""
        return self.layout.get_storage_stats()['total_objects']

    def get_all_hashes(self) -> List[str]:
        """Get all hashes currently in the store."""
        return self.layout.list_all_objects()

    def gc(self, live_hashes: Iterable[str]) -> int:
        """
        Garbage collection: remove objects not referenced by any checkpoint.

        Args:
            live_hashes: hashes that are still in use

        Returns number of bytes freed.
        """
        result = self.collect(live_hashes)
        return result['freed_bytes']

    def collect(self, live_hashes: Iterable[str], dry_run: bool = False) -> dict:
        """
        Run garbage collection and return the collector's full report.

        Shard directories emptied by the sweep are removed.
        """
        result = self.collector.collect(live_hashes, dry_run=dry_run)
        if result['deleted']:
            self.layout.remove_empty_shards()
        return result

    def get_stats(self) -> dict:
        """Get storage statistics."""
        return self.layout.get_storage_stats()

    def _write_object_atomic(self, path: Path, data: bytes) -> None:
        """
        Write object file atomically.

        Uses temp file + rename so the canonical path never holds a
        partial blob.
        """
        fd = None
        temp_path = None
        try:
            fd, temp_path = tempfile.mkstemp(
                dir=str(path.parent),
                prefix='.tmp_',
            )

            with os.fdopen(fd, 'wb') as f:
                fd = None  # Owned by the file object now
                f.write(data)
                f.flush()
                os.fsync(f.fileno())

            os.replace(temp_path, path)
            temp_path = None

        except OSError as e:
            raise StorageError("write_file", str(path), e)

        finally:
            if fd is not None:
                try:
                    os.close(fd)
                except OSError:
                    pass
            if temp_path is not None and os.path.exists(temp_path):
                try:
                    os.unlink(temp_path)
                except OSError:
                    pass

    def __repr__(self) -> str:
        return f"ObjectStore(path={self.objects_dir})"
