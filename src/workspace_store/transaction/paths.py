"""
Path sanitization for staged imports.

Unsafe relative paths are normalized into a safe equivalent inside the
staging root instead of being rejected.
"""

import os
import re
import unicodedata
from pathlib import Path
from urllib.parse import unquote

from ..config import DEFAULT_CONFIG


UNNAMED = '_unnamed_'

WINDOWS_RESERVED_NAMES = frozenset(
    ['CON', 'PRN', 'AUX', 'NUL']
    + [f'COM{i}' for i in range(1, 10)]
    + [f'LPT{i}' for i in range(1, 10)]
)

_CONTROL_CHARS = re.compile(r'[\x00-\x1f\x80-\x9f]')
_TRAILING_DOTS_SPACES = re.compile(r'[. ]+$')
_DOTS_ONLY = re.compile(r'^\.+$')
_DRIVE_PREFIX = re.compile(r'^[a-zA-Z]:')
_PERCENT_ESCAPE = re.compile(r'%[0-9a-fA-F]{2}')
_MAX_DECODE_ROUNDS = 3


def sanitize_filename(filename: str, max_length: int = DEFAULT_CONFIG.max_filename_length) -> str:
    """
    Make a single path segment safe on every platform.

    Strips directory components, null bytes and control characters,
    prefixes Windows reserved device names, drops trailing dots and
    spaces and truncates to max_length while keeping the extension.
    Returns UNNAMED when nothing usable is left.
    """
    if not filename or not isinstance(filename, str):
        return UNNAMED

    safe = filename.replace('\\', '/').rsplit('/', 1)[-1]
    safe = _CONTROL_CHARS.sub('', safe)

    if not safe or _DOTS_ONLY.match(safe):
        return UNNAMED

    if os.path.splitext(safe)[0].upper() in WINDOWS_RESERVED_NAMES:
        safe = '_' + safe

    safe = _TRAILING_DOTS_SPACES.sub('', safe)
    if not safe:
        return UNNAMED

    if len(safe) > max_length:
        root, ext = os.path.splitext(safe)
        if len(ext) >= max_length:
            ext = ''
        safe = root[:max_length - len(ext)] + ext

    return safe


def _percent_decode(value: str) -> str:
    # Several rounds so %252e%252e cannot survive as ".."
    decoded = value
    for _ in range(_MAX_DECODE_ROUNDS):
        previous = decoded
        decoded = unquote(decoded, errors='strict')
        if decoded == previous:
            break
    return decoded


def sanitize_relative_path(relative_path: str, max_length: int = DEFAULT_CONFIG.max_filename_length) -> str:
    """
    Normalize a relative path so it cannot escape its root.

    Handles:
    - percent-encoding bypass attempts (decoded up to three times)
    - Unicode lookalikes (NFC normalization)
    - null bytes and control characters
    - absolute paths and drive letters (made relative)
    - '.', '..' and dot-only segments (dropped)
    - Windows separators and trailing dots/spaces

    Returns a forward-slash separated path, or '' if nothing is left.
    """
    if not relative_path or not isinstance(relative_path, str):
        return ''

    try:
        sanitized = _percent_decode(relative_path)
    except UnicodeDecodeError:
        sanitized = _PERCENT_ESCAPE.sub('', relative_path)

    sanitized = unicodedata.normalize('NFC', sanitized)
    sanitized = sanitized.replace('\0', '')
    sanitized = sanitized.replace('\\', '/')
    sanitized = _DRIVE_PREFIX.sub('', sanitized)

    segments = []
    for segment in sanitized.split('/'):
        segment = segment.strip()
        if not segment or _DOTS_ONLY.match(segment):
            continue
        clean = sanitize_filename(segment, max_length)
        if clean != UNNAMED:
            segments.append(clean)

    return '/'.join(segments)


def is_path_safe(dest_path: str | Path, base_path: str | Path) -> bool:
    """
    Check that dest_path resolves to base_path or somewhere inside it.

    Symlinks are resolved on both sides, so a link planted in the tree
    cannot redirect a write outside the base.
    """
    if not dest_path or not base_path:
        return False

    try:
        resolved_dest = Path(dest_path).resolve()
        resolved_base = Path(base_path).resolve()
    except (OSError, RuntimeError):
        return False

    return resolved_dest == resolved_base or resolved_base in resolved_dest.parents
