"""
Advisory free-space check run before opening an import transaction.
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..config import DEFAULT_CONFIG, StoreConfig


logger = logging.getLogger(__name__)

_MB = 1024 * 1024


@dataclass(frozen=True)
class DiskSpaceResult:
    """Outcome of validate_disk_space."""
    valid: bool
    error: Optional[str] = None
    available_bytes: Optional[int] = None

    def __bool__(self) -> bool:
        return self.valid


def _nearest_existing(path: Path) -> Path:
    # The destination usually does not exist yet; measure its volume
    # through the closest ancestor that does.
    for candidate in (path, *path.parents):
        if candidate.exists():
            return candidate
    return path


def validate_disk_space(
    path: str | Path,
    required_bytes: int,
    config: Optional[StoreConfig] = None,
) -> DiskSpaceResult:
    """
    Check if the volume holding path has room for required_bytes.

    A safety buffer (config.disk_space_buffer, 10% by default) is added
    to the requirement. Never raises: if free space cannot be determined
    the check passes and a warning is logged, since callers only use it
    to fail fast.
    """
    config = config or DEFAULT_CONFIG

    try:
        probe = _nearest_existing(Path(path).absolute())
        available_bytes = shutil.disk_usage(probe).free
        required_with_buffer = int(required_bytes * config.disk_space_buffer)
    except (OSError, ValueError, TypeError, OverflowError) as e:
        logger.warning("Could not check disk space for %s: %s", path, e)
        return DiskSpaceResult(valid=True)

    if available_bytes < required_with_buffer:
        available_mb = round(available_bytes / _MB)
        required_mb = round(required_with_buffer / _MB)
        return DiskSpaceResult(
            valid=False,
            error=(
                f"Insufficient disk space: need {required_mb} MB, "
                f"only {available_mb} MB available"
            ),
            available_bytes=available_bytes,
        )

    return DiskSpaceResult(valid=True, available_bytes=available_bytes)
