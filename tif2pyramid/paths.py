"""Path mapping between the input tree and the output tree.

Every caller that needs to know "where does this input go" or "which
input does this output belong to" goes through this module, so that
key derivation is identical on both sides of the reconciliation join.

An *output key* is a path relative to its root with the basename's
extension stripped (``a/b`` for both ``/in/a/b.tiff`` and
``/out/a/b.tif``).  Matching ignores the original extension on purpose:
an input renamed from ``.tiff`` to ``.tif`` still matches its previously
produced output.
"""

from __future__ import annotations

import os
from pathlib import Path

INPUT_SUFFIXES: tuple[str, ...] = (".tif", ".tiff")
"""Recognized input extensions (matched case-insensitively)."""

OUTPUT_SUFFIX = ".tif"
"""Canonical extension of converted output files."""


def is_input_file(name: str) -> bool:
    """Return ``True`` if *name* looks like a convertible source image."""
    return name.lower().endswith(INPUT_SUFFIXES)


def is_output_file(name: str) -> bool:
    """Return ``True`` if *name* bears the canonical output extension.

    Case-sensitive: only files this tool could have produced count as
    prior completions.  Temporary ``*.tif.tmp.XXXX`` files never match.
    """
    return name.endswith(OUTPUT_SUFFIX)


def strip_extension(name: str) -> str:
    """Strip everything after the last ``.`` in a basename.

    Names without a dot are returned unchanged.
    """
    stem, dot, _ext = name.rpartition(".")
    return stem if dot else name


def _relative_to(path: Path, root: Path) -> Path | None:
    """Compute *path* relative to *root*, or ``None`` if it is not under it.

    Tries the paths as given first; falls back to fully resolved paths
    so that a symlinked root or source still maps into the tree.
    """
    try:
        relative = path.relative_to(root)
    except ValueError:
        try:
            relative = path.resolve().relative_to(root.resolve())
        except (ValueError, OSError):
            return None
    if relative == Path("."):
        return None
    return relative


def output_path_for(
    source: str | os.PathLike[str],
    input_root: str | os.PathLike[str],
    output_root: str | os.PathLike[str],
    suffix: str = OUTPUT_SUFFIX,
) -> Path:
    """Map a source file to its canonical output path.

    The relative subdirectory structure under *input_root* is preserved
    under *output_root*, and the extension is replaced with *suffix*.
    When *source* cannot be expressed relative to *input_root*, only the
    filename is kept (placed directly under *output_root*).

    Raises:
        ValueError: If *source* is empty.

    Example::

        >>> output_path_for("/in/a/b.tiff", "/in", "/out")
        PosixPath('/out/a/b.tif')
    """
    if not os.fspath(source):
        raise ValueError("output_path_for() requires a non-empty source path")
    src = Path(source)
    relative = _relative_to(src, Path(input_root))
    if relative is None:
        relative = Path(src.name)
    return Path(output_root) / relative.with_name(
        strip_extension(relative.name) + suffix,
    )


def output_key_of(
    path: str | os.PathLike[str],
    root: str | os.PathLike[str],
) -> str:
    """Derive the output key of *path* relative to *root*.

    The *root* prefix is stripped (a missing trailing separator is
    tolerated), then the basename's extension.  If *path* is not under
    *root*, the key falls back to the bare basename without extension.

    Raises:
        ValueError: If *path* is empty.
    """
    path_str = os.fspath(path)
    if not path_str:
        raise ValueError("output_key_of() requires a non-empty path")

    prefix = os.fspath(root).rstrip(os.sep) + os.sep
    if path_str.startswith(prefix):
        relative = path_str[len(prefix):]
    else:
        relative = os.path.basename(path_str)

    head, tail = os.path.split(relative)
    stem = strip_extension(tail)
    return os.path.join(head, stem) if head else stem
