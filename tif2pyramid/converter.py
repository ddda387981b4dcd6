"""Adapter around the external ``vips`` image converter.

Invokes ``vips tiffsave`` once per item as a blocking subprocess with a
fixed option set: deflate compression, 256x256 tiles, pyramidal layout.
The pixel-level work is entirely opaque to this package.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

from tif2pyramid.atomic import remove_quietly
from tif2pyramid.errors import ConversionError

_log = logging.getLogger("converter")

DEFAULT_VIPS_EXECUTABLE = "vips"
"""Executable name (or path) of the libvips command-line tool."""

TILE_SIZE = 256
"""Tile width and height in pixels."""

TIFFSAVE_OPTIONS: tuple[str, ...] = (
    "--compression=deflate",
    "--tile",
    f"--tile-width={TILE_SIZE}",
    f"--tile-height={TILE_SIZE}",
    "--pyramid",
)
"""Fixed ``tiffsave`` options producing a tiled, pyramidal, deflate TIFF."""

_STDERR_TAIL_CHARS = 2000
"""Maximum stderr characters carried into a :class:`ConversionError`."""


@runtime_checkable
class Converter(Protocol):
    """Anything that can turn *source* into a pyramidal TIFF at *dest*.

    Implementations must raise on failure and must not leave a usable
    file at *dest* when they do.
    """

    def convert(self, source: Path, dest: Path) -> None:
        ...


def _tail(text: str, limit: int = _STDERR_TAIL_CHARS) -> str:
    text = text.strip()
    if len(text) <= limit:
        return text
    return "..." + text[-limit:]


class VipsConverter:
    """Run ``vips tiffsave`` on a (source, destination) pair.

    No retries: one invocation per call.  Output of the tool is
    captured; stderr is attached to the raised error on failure.

    Usage::

        converter = VipsConverter()
        converter.convert(Path("in.tiff"), Path("out.tif.tmp.1a2b3c4d"))
    """

    def __init__(
        self,
        executable: str = DEFAULT_VIPS_EXECUTABLE,
        extra_args: Sequence[str] = (),
    ) -> None:
        self._executable = executable
        self._extra_args = tuple(extra_args)

    def build_command(self, source: Path, dest: Path) -> list[str]:
        """Return the argv used to convert *source* into *dest*."""
        return [
            self._executable, "tiffsave",
            str(source), str(dest),
            *TIFFSAVE_OPTIONS,
            *self._extra_args,
        ]

    def convert(self, source: Path, dest: Path) -> None:
        """Convert *source* to a pyramidal TIFF at *dest*.

        Raises:
            ConversionError: On non-zero exit, a missing executable, or
                any OS error.  Any partial file at *dest* is removed
                before raising.
        """
        cmd = self.build_command(source, dest)
        _log.debug("  Running: %s", " ".join(cmd))
        try:
            proc = subprocess.run(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                check=False,
            )
        except OSError as exc:
            remove_quietly(dest)
            raise ConversionError(
                f"Could not run {self._executable!r}",
                path=source,
                original=exc,
            ) from exc

        if proc.returncode != 0:
            remove_quietly(dest)
            detail = _tail(proc.stderr or "")
            message = f"{self._executable} exited with status {proc.returncode}"
            if detail:
                message += f": {detail}"
            raise ConversionError(message, path=source)
