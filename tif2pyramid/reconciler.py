"""Reconcile discovered inputs against previously produced outputs.

The output tree is scanned **once** and every recognized output file is
reduced to its output key.  Each input is then checked against that
in-memory set: O(inputs + outputs) instead of one stat call per input,
which matters on network filesystems where stat latency dominates.

The completion set is a read-only snapshot of prior runs: outputs
written by the current run are never added back into it.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from tif2pyramid.atomic import is_temp_file
from tif2pyramid.paths import is_output_file, output_key_of

_log = logging.getLogger("reconciler")

DEFAULT_PROGRESS_EVERY = 1000
"""Log a progress line every N files during scanning and matching."""


@dataclass
class ReconcileResult:
    """Partition of the discovered inputs into done and pending."""

    pending: list[Path] = field(default_factory=list)
    """Inputs with no matching output, in scan order."""

    completed_count: int = 0
    """Inputs whose output key was found in the completion set."""

    outputs_scanned: int = 0
    """Number of recognized output files found in the output tree."""

    duplicates: list[Path] = field(default_factory=list)
    """Pending inputs whose output key was already taken by an earlier
    input in scan order (e.g. ``a.tif`` next to ``a.tiff``).  Never
    dispatched."""

    @property
    def total(self) -> int:
        return self.completed_count + len(self.pending) + len(self.duplicates)


def scan_completions(
    output_root: Path,
    progress_every: int = DEFAULT_PROGRESS_EVERY,
) -> frozenset[str]:
    """Scan *output_root* once and collect the keys of all prior outputs.

    Only files passing :func:`~tif2pyramid.paths.is_output_file` count.
    A missing or empty output tree yields an empty set (zero prior
    completions), not an error.  Unreadable subdirectories are logged
    and skipped.
    """
    if not output_root.is_dir():
        _log.info("Output directory %s does not exist yet -- 0 prior outputs",
                  output_root)
        return frozenset()

    def _on_error(exc: OSError) -> None:
        _log.warning("Skipping unreadable output directory: %s", exc)

    keys: set[str] = set()
    count = 0
    leftovers = 0
    for dirpath, _dirnames, filenames in os.walk(output_root, onerror=_on_error):
        for name in filenames:
            if not is_output_file(name):
                if is_temp_file(name):
                    leftovers += 1
                continue
            keys.add(output_key_of(os.path.join(dirpath, name), output_root))
            count += 1
            if progress_every and count % progress_every == 0:
                _log.info("  Scanned %d output file(s)...", count)

    _log.info("Output scan complete: %d finished file(s) found", count)
    if leftovers:
        _log.warning("Ignoring %d leftover temp file(s) from interrupted runs",
                     leftovers)
    return frozenset(keys)


def partition(
    all_inputs: Sequence[Path],
    input_root: Path,
    completions: frozenset[str],
    progress_every: int = DEFAULT_PROGRESS_EVERY,
) -> ReconcileResult:
    """Split *all_inputs* by membership of their key in *completions*.

    Pure with respect to the filesystem: uses only path arithmetic.
    Only the first pending input per output key (in the order given) is
    kept; later ones land in ``duplicates`` so that no two workers ever
    target the same final path.
    """
    result = ReconcileResult(outputs_scanned=len(completions))
    total = len(all_inputs)
    claimed: dict[str, Path] = {}
    for checked, source in enumerate(all_inputs, start=1):
        key = output_key_of(source, input_root)
        if key in completions:
            result.completed_count += 1
        elif key in claimed:
            _log.warning("Duplicate output key %r: %s ignored, %s wins",
                         key, source, claimed[key])
            result.duplicates.append(source)
        else:
            claimed[key] = source
            result.pending.append(source)
        if progress_every and checked % progress_every == 0:
            _log.info("  Checked %d/%d input file(s)...", checked, total)
    return result


def reconcile(
    all_inputs: Sequence[Path],
    input_root: Path,
    output_root: Path,
    progress_every: int = DEFAULT_PROGRESS_EVERY,
) -> ReconcileResult:
    """Compute which of *all_inputs* still need conversion.

    Scans *output_root* exactly once (:func:`scan_completions`) and then
    partitions the inputs (:func:`partition`).

    Returns:
        :class:`ReconcileResult` with the pending list and completed count.
    """
    _log.info("Reconciling %d input file(s) against %s", len(all_inputs),
              output_root)
    completions = scan_completions(output_root, progress_every)
    result = partition(all_inputs, input_root, completions, progress_every)
    result.outputs_scanned = len(completions)
    return result
