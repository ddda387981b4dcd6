"""Local staging area for the cache-through conversion strategy.

Manages a scratch directory on fast local storage (``/tmp/cache`` by
default) with ``input/`` and ``output/`` subdirectories.  Each in-flight
conversion gets its own :class:`StagingSlot` (a pair of uniquely named
scratch files), so workers never contend on the same staging path and
no locking is needed.

The staging root is fully owned by this process: it is emptied when a
run starts and again when it ends.
"""

from __future__ import annotations

import logging
import secrets
import shutil
from dataclasses import dataclass
from pathlib import Path

from tif2pyramid.atomic import remove_quietly

_log = logging.getLogger("workdir")


@dataclass(frozen=True)
class StagingSlot:
    """Scratch paths for one in-flight conversion.

    Owned exclusively by the worker handling the item; released (both
    files deleted) no later than when that worker finishes.
    """

    staged_input: Path
    staged_output: Path

    def paths(self) -> tuple[Path, Path]:
        return self.staged_input, self.staged_output


class StagingArea:
    """Owns the staging root and hands out per-item slots.

    The directory tree is not created until :meth:`prepare` is called.
    """

    _INPUT_SUBDIR = "input"
    _OUTPUT_SUBDIR = "output"
    _TOKEN_BYTES = 6

    def __init__(self, root: Path) -> None:
        """Wrap a staging root directory.

        Args:
            root: Scratch directory; its contents may be deleted at any
                time by :meth:`prepare` and :meth:`clear`.
        """
        self._root = root
        self._input_path = root / self._INPUT_SUBDIR
        self._output_path = root / self._OUTPUT_SUBDIR

    @property
    def root(self) -> Path:
        return self._root

    @property
    def input_path(self) -> Path:
        return self._input_path

    @property
    def output_path(self) -> Path:
        return self._output_path

    # -- Lifecycle ------------------------------------------------------------

    def prepare(self) -> None:
        """Empty the staging root and create the ``input``/``output`` dirs."""
        self.clear()
        self._input_path.mkdir(parents=True, exist_ok=True)
        self._output_path.mkdir(parents=True, exist_ok=True)
        _log.info("Staging area ready: %s", self._root)

    def clear(self) -> None:
        """Remove everything below the staging root.

        The root itself is kept (it may be a mount point).  Safe to call
        even if the directory does not exist yet.
        """
        if not self._root.is_dir():
            return
        for child in self._root.iterdir():
            if child.is_dir() and not child.is_symlink():
                shutil.rmtree(child, ignore_errors=True)
            else:
                remove_quietly(child)
        _log.debug("Staging area cleared: %s", self._root)

    # -- Slots ----------------------------------------------------------------

    def slot_for(self, source: Path, output_name: str) -> StagingSlot:
        """Allocate a unique slot for converting *source*.

        Args:
            source: The real source file (only its name is used).
            output_name: Filename of the final output (e.g. ``b.tif``).
        """
        token = secrets.token_hex(self._TOKEN_BYTES)
        return StagingSlot(
            staged_input=self._input_path / f"{token}_{source.name}",
            staged_output=self._output_path / f"{token}_{output_name}",
        )

    def release(self, slot: StagingSlot) -> None:
        """Delete both scratch files of *slot* (if present)."""
        remove_quietly(*slot.paths())
