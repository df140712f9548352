"""Path sanitizing and resolution — pure functions, no I/O.

This is the ONE place where storage-relative paths are derived from
user-supplied names. Everything that writes ``Folder.path`` or
``File.file_path`` calls into this module.

Layout:
    user_<sanitized owner name>/<sanitized folder>/.../<token>_<sanitized file name>

    - Folder segments keep only ``[A-Za-z0-9_-]``; anything else becomes ``_``
    - A segment is never empty (``_`` placeholder), so path levels never collapse
    - File basenames additionally keep ``.`` and are prefixed with a random
      token, so two uploads with the same name never collide
"""

from __future__ import annotations

import re
import uuid
from typing import Optional

_UNSAFE_SEGMENT_CHARS = re.compile(r"[^A-Za-z0-9_-]")
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]")
_SAFE_CHAR = re.compile(r"[A-Za-z0-9_-]")

PLACEHOLDER = "_"
USER_ROOT_PREFIX = "user_"

# 16 hex chars = 64 bits of randomness per upload.
TOKEN_LENGTH = 16


def sanitize(name: str) -> str:
    """Convert an arbitrary display name into a single safe path segment.

    Examples:
        ``"Tax Returns 2024"`` -> ``"Tax_Returns_2024"``
        ``"été"``              -> ``"_t_"``
        ``""`` / ``"???"``     -> ``"_"``
    """
    if not name or not _SAFE_CHAR.search(name):
        return PLACEHOLDER
    return _UNSAFE_SEGMENT_CHARS.sub("_", name)


def sanitize_filename(name: str) -> str:
    """Sanitize a file name for use as (part of) an on-disk basename.

    Like :func:`sanitize` but keeps dots. Leading dots are replaced so the
    result is never ``.``, ``..`` or a hidden file.
    """
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", name or "")
    stripped = cleaned.lstrip(".")
    cleaned = "_" * (len(cleaned) - len(stripped)) + stripped
    if not cleaned or not _SAFE_CHAR.search(cleaned):
        return PLACEHOLDER
    return cleaned


def user_root(display_name: str) -> str:
    """Root storage namespace of a user."""
    return f"{USER_ROOT_PREFIX}{sanitize(display_name)}"


def resolve_folder_path(
    folder_name: str,
    parent_path: Optional[str],
    owner_display_name: str,
) -> str:
    """Storage path of a folder.

    Anchored on the parent's *persisted* path rather than recomputed from the
    whole ancestor chain, so a parent rename must cascade to descendants.
    """
    base = parent_path if parent_path else user_root(owner_display_name)
    return f"{base}/{sanitize(folder_name)}"


def generate_token() -> str:
    return uuid.uuid4().hex[:TOKEN_LENGTH]


def resolve_file_path(directory: str, original_name: str) -> str:
    """Generated, collision-free storage path for a new upload in *directory*."""
    return f"{directory}/{generate_token()}_{sanitize_filename(original_name)}"


def split_extension(name: str) -> tuple[str, str]:
    """Split ``"report.final.pdf"`` into ``("report.final", "pdf")``.

    Names without an extension (or dotfiles such as ``".env"``) return ``(name, "")``.
    """
    stem, dot, ext = name.rpartition(".")
    if not dot or not stem.strip("."):
        return name, ""
    return stem, ext


def rename_file_path(old_file_path: str, new_name: str) -> str:
    """New storage path for a file renamed to *new_name*.

    Stays in the same directory, gets a fresh token, and always keeps the
    original extension. If *new_name* already ends in that extension it is not
    doubled (``"notes.pdf"`` -> ``<token>_notes.pdf``, not ``notes.pdf.pdf``).
    """
    directory, _, old_basename = old_file_path.rpartition("/")
    _, extension = split_extension(old_basename)

    stem = new_name
    if extension:
        new_stem, new_ext = split_extension(new_name)
        if new_ext.lower() == extension.lower():
            stem = new_stem

    basename = f"{generate_token()}_{sanitize_filename(stem)}"
    if extension:
        basename = f"{basename}.{extension}"
    return f"{directory}/{basename}" if directory else basename


def rebase_path(path: str, old_prefix: str, new_prefix: str) -> str:
    """Replace the folder prefix *old_prefix* of *path* with *new_prefix*.

    The relative suffix below the prefix is preserved verbatim.

    Raises:
        ValueError: If *path* is not *old_prefix* or below it.
    """
    if path == old_prefix:
        return new_prefix
    if not path.startswith(f"{old_prefix}/"):
        raise ValueError(f"'{path}' is not under '{old_prefix}'")
    return f"{new_prefix}{path[len(old_prefix):]}"
