"""Exception hierarchy for batch conversion.

Fatal errors (:class:`ConfigurationError`, :class:`DiscoveryError`,
:class:`DispatchError`) abort a run before or instead of dispatching.
Per-item errors (:class:`ConversionError`, :class:`AtomicWriteError`)
are raised inside a worker and recorded as a failed outcome by the
dispatcher. They never reach the orchestrator.
"""

from __future__ import annotations

from pathlib import Path


class Tif2PyramidError(Exception):
    """Base class for all errors raised by this package.

    Carries an optional *path* and the *original* exception (if any) so
    that log lines point at the offending file without a traceback.
    """

    def __init__(
        self,
        message: str,
        *,
        path: Path | None = None,
        original: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.path = path
        self.original = original

    def __str__(self) -> str:
        parts = [self.message]
        if self.path is not None:
            parts.append(f"path: {self.path}")
        if self.original is not None:
            parts.append(f"{type(self.original).__name__}: {self.original}")
        return " | ".join(parts)


# -- Fatal --------------------------------------------------------------------


class ConfigurationError(Tif2PyramidError):
    """Invalid configuration (e.g. missing input root, bad thread count)."""


class DiscoveryError(Tif2PyramidError):
    """The input tree could not be enumerated."""


class DispatchError(Tif2PyramidError):
    """The worker pool cannot run at all (e.g. zero workers)."""


# -- Per item -----------------------------------------------------------------


class ConversionError(Tif2PyramidError):
    """The external converter failed for a single item."""


class AtomicWriteError(Tif2PyramidError):
    """Copying or renaming into the final destination failed."""


class StagingError(Tif2PyramidError):
    """Copying a source file into the local staging area failed."""
