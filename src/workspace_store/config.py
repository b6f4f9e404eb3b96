"""
Configuration for workspace storage.

Values are fixed defaults that can be overridden per process through
WORKSPACE_STORE_* environment variables.
"""

import logging
import os
from dataclasses import dataclass, fields, replace


ENV_PREFIX = "WORKSPACE_STORE_"


@dataclass(frozen=True)
class StoreConfig:
    """
    Tunable constants shared by the object store and import transactions.

    metadata_dir: hidden directory under the workspace root
    objects_dir: object directory inside metadata_dir
    staging_prefix: name prefix of import staging directories
    compression_level: gzip level used for new blobs (0-9)
    disk_space_buffer: multiplier applied to required bytes by the precheck
    max_filename_length: longest path segment kept by sanitization
    hash_chunk_size: read size when hashing files
    """
    metadata_dir: str = ".midlight"
    objects_dir: str = "objects"
    staging_prefix: str = ".import-staging-"
    compression_level: int = 6
    disk_space_buffer: float = 1.1
    max_filename_length: int = 255
    hash_chunk_size: int = 64 * 1024

    def __post_init__(self):
        if not 0 <= self.compression_level <= 9:
            raise ValueError(f"compression_level must be 0-9, got {self.compression_level}")
        if self.disk_space_buffer < 1.0:
            raise ValueError(f"disk_space_buffer must be >= 1.0, got {self.disk_space_buffer}")
        if self.max_filename_length < 1 or self.hash_chunk_size < 1:
            raise ValueError("max_filename_length and hash_chunk_size must be positive")

    @classmethod
    def from_env(cls, environ=None) -> 'StoreConfig':
        """
        Build a config from defaults plus WORKSPACE_STORE_<FIELD> overrides.

        Example: WORKSPACE_STORE_COMPRESSION_LEVEL=9
        """
        environ = os.environ if environ is None else environ
        overrides = {}

        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None or raw == "":
                continue
            try:
                overrides[f.name] = f.type(raw)
            except ValueError as e:
                raise ValueError(f"Invalid value for {ENV_PREFIX}{f.name.upper()}: {raw!r}") from e

        return replace(cls(), **overrides)


DEFAULT_CONFIG = StoreConfig()


def setup_logging(level: int | str = logging.INFO) -> None:
    """
    Configure root logging for applications embedding the store.

    The library itself only creates module loggers and never adds handlers.
    """
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=level,
    )
