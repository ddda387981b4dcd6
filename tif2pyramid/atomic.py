"""Atomic placement of files at their final destination.

A reader of the output tree must never observe a partially written
file at a final path.  All writes go to a uniquely named temporary file
in the *same directory* as the final path and are published with a
single :func:`os.replace`, which is atomic within one filesystem.

Temp names look like ``<final>.tmp.<hex>`` so they never carry the
output extension and are ignored by reconciliation if a crash leaves
one behind.
"""

from __future__ import annotations

import logging
import os
import secrets
import shutil
from pathlib import Path

from tif2pyramid.errors import AtomicWriteError

_log = logging.getLogger("atomic")

_TEMP_MARKER = ".tmp."
"""Infix between the final filename and the random suffix."""

_TEMP_SUFFIX_BYTES = 4
"""Random bytes in the temp suffix (rendered as 8 hex characters)."""


def temp_path_for(final_path: Path) -> Path:
    """Return a fresh, unique temp path next to *final_path*.

    Each call yields a different name, so concurrent writers targeting
    the same final path never collide.
    """
    token = secrets.token_hex(_TEMP_SUFFIX_BYTES)
    return final_path.with_name(f"{final_path.name}{_TEMP_MARKER}{token}")


def is_temp_file(name: str) -> bool:
    """Return ``True`` if *name* looks like a leftover temp file."""
    return _TEMP_MARKER in name


def remove_quietly(*paths: Path) -> None:
    """Delete each existing file in *paths*, ignoring errors.

    Used on cleanup paths where the primary error is already being
    reported; a failed cleanup is logged at debug level only.
    """
    for path in paths:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            _log.debug("Could not remove %s: %s", path, exc)


def commit(temp_path: Path, final_path: Path) -> None:
    """Publish *temp_path* at *final_path* with a single rename.

    On failure the temp file is removed and *final_path* is left
    untouched.

    Raises:
        AtomicWriteError: If the rename fails.
    """
    try:
        os.replace(temp_path, final_path)
    except OSError as exc:
        remove_quietly(temp_path)
        raise AtomicWriteError(
            "Failed to rename temp file into place",
            path=final_path,
            original=exc,
        ) from exc
    _log.debug("Committed %s", final_path)


def atomic_place(source: Path, final_path: Path) -> None:
    """Copy *source* to *final_path* atomically.

    Steps: ensure the parent directory exists, copy *source* into a temp
    file beside *final_path* (this may cross filesystems), then
    :func:`commit`.  The source file is left in place; the caller owns
    its cleanup.

    Raises:
        AtomicWriteError: If the directory, copy, or rename step fails.
            Any temp file has been removed and *final_path* is unchanged.
    """
    try:
        final_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise AtomicWriteError(
            "Failed to create destination directory",
            path=final_path.parent,
            original=exc,
        ) from exc

    temp_path = temp_path_for(final_path)
    try:
        shutil.copyfile(source, temp_path)
    except OSError as exc:
        remove_quietly(temp_path)
        raise AtomicWriteError(
            "Failed to copy into temp file",
            path=temp_path,
            original=exc,
        ) from exc

    commit(temp_path, final_path)
