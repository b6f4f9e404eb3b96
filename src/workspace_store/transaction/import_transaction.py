"""
Import transaction manager.

Provides atomic import operations with rollback capability. Files are
staged in a hidden sibling of the destination and only moved into place
on commit, so the destination is never observed half-written.
"""

import errno
import logging
import os
import secrets
import shutil
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from ..config import DEFAULT_CONFIG, StoreConfig
from ..errors import (
    CommitError,
    InvalidPathError,
    StorageError,
    TransactionStateError,
)
from ..integrity.hashing import hash_file, to_bytes
from .paths import is_path_safe, sanitize_relative_path


logger = logging.getLogger(__name__)


class TransactionState(Enum):
    NEW = 'new'
    ACTIVE = 'active'
    COMMITTED = 'committed'
    ROLLED_BACK = 'rolled back'


@dataclass
class StagedFile:
    """A file waiting in the staging directory."""
    relative_path: str
    staging_path: Path
    final_path: Path
    size: int
    moved: bool = False


@dataclass(frozen=True)
class TransactionStats:
    files_staged: int
    total_bytes: int
    is_committed: bool
    is_rolled_back: bool


class ImportTransaction:
    """
    Manages atomic file imports using a staging directory.

    Usage:
        tx = ImportTransaction(dest_path)
        tx.initialize()
        try:
            tx.stage_file('notes/file.md', content)
            tx.stage_file('attachments/image.png', data)
            tx.commit()
        except Exception:
            tx.rollback()
            raise

    or, equivalently:
        with ImportTransaction(dest_path) as tx:
            tx.stage_file('notes/file.md', content)

    Commit policy: an existing destination file is overwritten, each
    file replaced atomically by rename. If any move fails the staging
    directory is kept, so commit() can be retried or rollback() called.
    """

    def __init__(self, destination_dir: Union[str, Path], config: Optional[StoreConfig] = None):
        """Bind the transaction to destination_dir. Touches no filesystem."""
        self.config = config or DEFAULT_CONFIG
        self._destination = Path(os.path.abspath(destination_dir))
        self._staging_dir: Optional[Path] = None
        self._staged: Dict[str, StagedFile] = {}
        self._state = TransactionState.NEW

    @property
    def destination_dir(self) -> Path:
        return self._destination

    @property
    def staging_dir(self) -> Optional[Path]:
        """Staging directory path, None before initialize()."""
        return self._staging_dir

    @property
    def state(self) -> TransactionState:
        return self._state

    def initialize(self) -> None:
        """
        Create the staging directory.

        It is a hidden sibling of the destination, on the same volume,
        so commit can move files by rename.
        """
        if self._state is not TransactionState.NEW:
            raise TransactionStateError(self._state.value, "initialize")

        unique = f"{int(time.time() * 1000)}-{secrets.token_hex(4)}"
        staging_dir = self._destination.parent / f"{self.config.staging_prefix}{unique}"

        try:
            staging_dir.parent.mkdir(parents=True, exist_ok=True)
            staging_dir.mkdir()
        except OSError as e:
            raise StorageError("initialize", str(staging_dir), e)

        self._staging_dir = staging_dir
        self._state = TransactionState.ACTIVE
        logger.debug("Opened import staging at %s", staging_dir)

    def stage_file(self, relative_path: str, content: Union[str, bytes]) -> Path:
        """
        Stage a file (write it into the staging directory).

        Args:
            relative_path: path within the destination, e.g. 'notes/file.md'
            content: str is written as UTF-8, bytes as-is

        Returns the staging path the file was written to.
        """
        self._ensure_active("stage file")
        data = to_bytes(content)
        entry = self._prepare_entry(relative_path)

        try:
            self._replace_atomic(entry.staging_path, lambda temp: temp.write_bytes(data))
        except OSError as e:
            raise StorageError("stage_file", str(entry.staging_path), e)

        entry.size = len(data)
        return self._record(entry)

    def stage_copy(self, source_path: Union[str, Path], relative_path: str) -> Path:
        """
        Stage a copy of an existing file.

        Permission bits (including the executable bit) are preserved.

        Returns the staging path the file was copied to.
        """
        self._ensure_active("stage copy")
        entry = self._prepare_entry(relative_path)

        try:
            self._replace_atomic(entry.staging_path, lambda temp: shutil.copy2(source_path, temp))
            entry.size = entry.staging_path.stat().st_size
        except OSError as e:
            raise StorageError("stage_copy", str(source_path), e)

        return self._record(entry)

    def verify_copy(self, path_a: Union[str, Path], path_b: Union[str, Path]) -> bool:
        """
        Verify a copy by comparing SHA-256 checksums.

        Returns True iff both files exist and have identical bytes.
        """
        try:
            return (
                hash_file(path_a, self.config.hash_chunk_size)
                == hash_file(path_b, self.config.hash_chunk_size)
            )
        except OSError as e:
            logger.debug("verify_copy could not read %s / %s: %s", path_a, path_b, e)
            return False

    def commit(self) -> None:
        """
        Move all staged files to their final locations.

        Raises CommitError if a file cannot be moved; files moved before
        the failure stay in place, the rest stay staged.
        """
        self._ensure_active("commit")
        pending = [entry for entry in self._staged.values() if not entry.moved]

        for entry in pending:
            try:
                entry.final_path.parent.mkdir(parents=True, exist_ok=True)
                self._move_into_place(entry)
            except OSError as e:
                logger.error(
                    "Commit stopped at %s; staging kept at %s",
                    entry.relative_path, self._staging_dir,
                )
                raise CommitError(entry.relative_path, e) from e
            entry.moved = True

        self._state = TransactionState.COMMITTED
        self._remove_staging(strict=False)
        logger.info(
            "Committed %d files (%d bytes) into %s",
            len(self._staged), sum(f.size for f in self._staged.values()), self._destination,
        )

    def rollback(self) -> None:
        """
        Roll back the transaction (delete the staging directory).

        Safe to call any number of times, before initialize() and after
        commit(); the destination is never touched.
        """
        if self._state is TransactionState.COMMITTED:
            logger.debug("Rollback after commit ignored for %s", self._destination)
            return

        was_active = self._state is TransactionState.ACTIVE
        self._state = TransactionState.ROLLED_BACK
        self._remove_staging(strict=True)

        if was_active:
            logger.info(
                "Rolled back import into %s (%d staged files discarded)",
                self._destination, len(self._staged),
            )

    def get_stats(self) -> TransactionStats:
        """Get transaction statistics."""
        return TransactionStats(
            files_staged=len(self._staged),
            total_bytes=sum(f.size for f in self._staged.values()),
            is_committed=self._state is TransactionState.COMMITTED,
            is_rolled_back=self._state is TransactionState.ROLLED_BACK,
        )

    def get_staged_files(self) -> Tuple[StagedFile, ...]:
        """Get staged files in staging order."""
        return tuple(self._staged.values())

    def __enter__(self) -> 'ImportTransaction':
        if self._state is TransactionState.NEW:
            self.initialize()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            self.rollback()
            return False
        if self._state is TransactionState.ACTIVE:
            self.commit()
        return False

    # ========== Internals ==========

    def _ensure_active(self, operation: str) -> None:
        if self._state is not TransactionState.ACTIVE:
            raise TransactionStateError(self._state.value, operation)

    def _prepare_entry(self, relative_path: str) -> StagedFile:
        sanitized = sanitize_relative_path(relative_path, self.config.max_filename_length)
        if not sanitized:
            raise InvalidPathError(relative_path)

        staging_path = self._staging_dir.joinpath(*sanitized.split('/'))
        final_path = self._destination.joinpath(*sanitized.split('/'))

        if not is_path_safe(staging_path, self._staging_dir):
            raise InvalidPathError(relative_path, "resolves outside the staging directory")
        if not is_path_safe(final_path, self._destination):
            raise InvalidPathError(relative_path, "resolves outside the destination")

        try:
            staging_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError("mkdir", str(staging_path.parent), e)

        return StagedFile(
            relative_path=sanitized,
            staging_path=staging_path,
            final_path=final_path,
            size=0,
        )

    def _record(self, entry: StagedFile) -> Path:
        if self._state is not TransactionState.ACTIVE:
            # Rolled back while this write was in flight; the staging
            # tree may have been recreated by mkdir, so remove it again.
            self._remove_staging(strict=False)
            raise TransactionStateError(self._state.value, "stage file")

        # Re-staging a path replaces the earlier entry; keep its position.
        self._staged[entry.relative_path] = entry
        logger.debug("Staged %s (%d bytes)", entry.relative_path, entry.size)
        return entry.staging_path

    def _move_into_place(self, entry: StagedFile) -> None:
        try:
            os.replace(entry.staging_path, entry.final_path)
            return
        except OSError as e:
            if e.errno != errno.EXDEV:
                raise

        # Cross-device: copy next to the target under a hidden name tied
        # to this transaction, then rename over it.
        self._replace_atomic(
            entry.final_path,
            lambda temp: shutil.copy2(entry.staging_path, temp),
        )
        entry.staging_path.unlink()

    def _replace_atomic(self, target: Path, fill) -> None:
        """
        Produce target through a temporary file in its directory.

        fill(temp_path) writes the content; target only changes by
        os.replace, so it holds either its old bytes or the new ones.
        """
        # fill() creates the file, so it gets the usual umask mode.
        temp_path = target.parent / f"{self._staging_dir.name}-{secrets.token_hex(4)}.partial"
        try:
            fill(temp_path)
            os.replace(temp_path, target)
        except BaseException:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    def _remove_staging(self, strict: bool) -> None:
        if self._staging_dir is None:
            return
        try:
            shutil.rmtree(self._staging_dir)
        except FileNotFoundError:
            return
        except OSError as e:
            if strict:
                raise StorageError("remove_staging", str(self._staging_dir), e)
            logger.warning("Failed to clean up staging directory %s: %s", self._staging_dir, e)

    def __repr__(self) -> str:
        return (
            f"ImportTransaction(destination={self._destination}, "
            f"state={self._state.value}, staged={len(self._staged)})"
        )
