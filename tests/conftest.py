"""Shared test fixtures and helpers for tif2pyramid tests."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from tif2pyramid.errors import ConversionError

FAKE_PYRAMID = b"II*\x00pyramid"
"""Bytes written by :class:`FakeConverter` in place of a real TIFF."""


class FakeConverter:
    """Converter double: writes :data:`FAKE_PYRAMID` or fails on demand.

    Args:
        fail_names: Source basenames for which ``convert`` raises
            :class:`ConversionError`.  Staged sources carry a random
            prefix, so matching uses ``endswith``.
        partial_on_failure: Write garbage to *dest* before failing, to
            prove callers clean up partially written files.
    """

    def __init__(
        self,
        fail_names: set[str] | None = None,
        *,
        partial_on_failure: bool = False,
    ) -> None:
        self.fail_names = set(fail_names or ())
        self.partial_on_failure = partial_on_failure
        self.calls: list[tuple[Path, Path]] = []
        self._lock = threading.Lock()

    def _should_fail(self, source: Path) -> bool:
        return any(source.name.endswith(name) for name in self.fail_names)

    def convert(self, source: Path, dest: Path) -> None:
        with self._lock:
            self.calls.append((source, dest))
        if self._should_fail(source):
            if self.partial_on_failure:
                dest.write_bytes(b"partial")
            raise ConversionError("forced failure", path=source)
        assert source.exists(), f"converter got missing source {source}"
        dest.write_bytes(FAKE_PYRAMID)

    @property
    def call_count(self) -> int:
        return len(self.calls)


def make_tree(root: Path, relpaths: list[str], content: bytes = b"tiff") -> list[Path]:
    """Create files under *root* and return their absolute paths."""
    created: list[Path] = []
    for rel in relpaths:
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        created.append(path)
    return created


def list_files(root: Path) -> list[str]:
    """Return all file paths under *root*, relative and POSIX-style, sorted."""
    if not root.exists():
        return []
    return sorted(p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file())


@pytest.fixture
def roots(tmp_path: Path) -> tuple[Path, Path, Path]:
    """``(input_root, output_root, cache_dir)`` under a temp directory."""
    input_root = tmp_path / "input"
    output_root = tmp_path / "output"
    cache_dir = tmp_path / "cache"
    input_root.mkdir()
    return input_root, output_root, cache_dir
