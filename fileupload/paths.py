"""
Path generation and sanitization for stored uploads
"""

import os
import re
from pathlib import Path, PurePosixPath
from typing import Union

from .errors import StorageError

# Longest stem kept from a generated filename
MAX_STEM_LENGTH = 100

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]+")


def get_extension(filename: str) -> str:
    """
    Return the lower-cased extension of a filename without the leading dot.

    Args:
        filename: Original filename

    Returns:
        Extension, or an empty string if the name has none
    """
    name = os.path.basename(filename or '')
    if '.' not in name.strip('.'):
        return ''
    return name.rsplit('.', 1)[1].lower()


def sanitize_filename(filename: str) -> str:
    """
    Make a generated filename safe to join onto an upload directory.

    Filename generators are supplied by the host, so anything may come back:
    only the last path component is kept, runs of unsafe characters in the
    stem become a single '_', and the extension is lower-cased.

    Args:
        filename: Name returned by a filename generator

    Returns:
        A single path component, e.g. ``42-avatar.png``
    """
    stem, dot, extension = PurePosixPath(filename.replace('\\', '/')).name.rpartition('.')
    if not dot:
        stem, extension = extension, ''

    stem = _UNSAFE_CHARS.sub('_', stem).strip('_')[:MAX_STEM_LENGTH] or 'file'
    extension = _UNSAFE_CHARS.sub('', extension).lower()
    return f"{stem}.{extension}" if extension else stem


def normalize_upload_dir(upload_dir: str) -> str:
    """
    Normalize an upload directory to a relative POSIX path ending with '/'.

    Raises:
        ValueError: If the directory is absolute or climbs out of the web root
    """
    upload_dir = (upload_dir or '').replace('\\', '/').strip()
    if upload_dir.startswith('/'):
        raise ValueError(f"Upload directory must be relative: {upload_dir}")
    parts = [part for part in upload_dir.split('/') if part and part != '.']
    if '..' in parts:
        raise ValueError(f"Upload directory must stay inside the web root: {upload_dir}")
    if not parts:
        return ''
    return '/'.join(parts) + '/'


def build_destination(upload_dir: str, filename: str) -> str:
    """
    Build the relative path stored in the record field.

    Args:
        upload_dir: Normalized upload directory (ends with '/')
        filename: Generated filename

    Returns:
        Path relative to the web root, e.g. ``avatars/42-avatar.png``
    """
    return f"{upload_dir}{sanitize_filename(filename)}"


def get_absolute_path(web_root: Union[str, Path], relative_path: str) -> Path:
    """
    Resolve a path stored in a record field against the web root.

    Raises:
        StorageError: If the resolved path is not below the web root
    """
    root = Path(web_root).resolve()
    target = root.joinpath(relative_path).resolve()
    if target != root and root not in target.parents:
        raise StorageError(f"Path escapes the web root: {relative_path}")
    return target


def resolve_stored_path(web_root: Union[str, Path], upload_dir: str, stored_value: str) -> Path:
    """
    Resolve the absolute location of a stored field value.

    Values written by the manager already include the upload directory.
    Bare filenames (e.g. values imported from elsewhere) are looked up
    inside the upload directory.
    """
    stored_value = str(stored_value)
    if upload_dir and not stored_value.startswith(upload_dir):
        stored_value = f"{upload_dir}{stored_value}"
    return get_absolute_path(web_root, stored_value)
