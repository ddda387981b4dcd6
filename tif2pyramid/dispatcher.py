"""Bounded worker pool that runs each pending item exactly once.

Workers are threads from a :class:`~concurrent.futures.ThreadPoolExecutor`;
each runs one item's full convert-and-place sequence before taking the
next.  The heavy lifting happens in the external converter process, so
threads are enough to keep all cores busy.

Outcomes flow back to the calling thread through futures, and that
thread is the single writer of the aggregate counters, so no locks or
lock files.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path

from tif2pyramid.errors import DispatchError
from tif2pyramid.logcontext import (
    clear_item_context,
    set_item_context,
    set_prefix_width,
)
from tif2pyramid.models import ConversionOutcome, OutcomeStatus
from tif2pyramid.strategies import ExecutionStrategy

_log = logging.getLogger("dispatcher")

_CEILING_PER_CPU = 2
"""Upper bound on workers per available CPU."""

_MAX_PREFIX_WIDTH = 40
"""Cap on the padded ``[item]`` log prefix width."""


def max_worker_ceiling() -> int:
    """Return the largest worker count the dispatcher will honour."""
    return _CEILING_PER_CPU * (os.cpu_count() or 1)


def resolve_workers(requested: int, item_count: int) -> int:
    """Clamp *requested* to the CPU ceiling and the number of items.

    Raises:
        DispatchError: If *requested* is below 1.
    """
    if requested < 1:
        raise DispatchError(f"Worker count must be at least 1, got {requested}")
    ceiling = max_worker_ceiling()
    if requested > ceiling:
        _log.warning(
            "Requested %d workers exceeds ceiling of %d (2 per CPU); using %d",
            requested, ceiling, ceiling,
        )
    return max(1, min(requested, ceiling, item_count))


@dataclass
class DispatchStats:
    """Aggregate outcome counts of one dispatch.

    Order-independent: the same set of outcomes yields the same counts
    regardless of completion order.
    """

    pending: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    failures: list[ConversionOutcome] = field(default_factory=list)

    def record(self, outcome: ConversionOutcome) -> None:
        if outcome.status is OutcomeStatus.SUCCEEDED:
            self.succeeded += 1
        elif outcome.status is OutcomeStatus.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1
            self.failures.append(outcome)

    @property
    def counts(self) -> tuple[int, int, int]:
        """``(succeeded, failed, skipped)``."""
        return self.succeeded, self.failed, self.skipped

    @property
    def processed(self) -> int:
        return self.succeeded + self.failed + self.skipped


class Dispatcher:
    """Run a pending set through a fixed-size worker pool.

    Usage::

        dispatcher = Dispatcher(strategy, mapper, max_workers=4)
        stats = dispatcher.run_all(pending)
    """

    def __init__(
        self,
        strategy: ExecutionStrategy,
        output_path_for: Callable[[Path], Path],
        *,
        max_workers: int,
        on_outcome: Callable[[ConversionOutcome], None] | None = None,
    ) -> None:
        """
        Args:
            strategy: How a single item is converted and published.
            output_path_for: Maps a source path to its final output path.
            max_workers: Requested concurrency (clamped, must be >= 1).
            on_outcome: Optional callback invoked from the collecting
                thread once per finished item (e.g. a job log).
        """
        self._strategy = strategy
        self._output_path_for = output_path_for
        self._max_workers = max_workers
        self._on_outcome = on_outcome

    def process_one(self, source: Path) -> ConversionOutcome:
        """Attempt a single item; never raises for per-item problems.

        Re-checks the final output right before converting to absorb the
        race where another process finished it after reconciliation.
        """
        set_item_context(source.name)
        t0 = time.monotonic()
        output = self._output_path_for(source)
        try:
            if output.exists():
                _log.info("⊙ Skipped (output appeared): %s", output)
                return ConversionOutcome(source, OutcomeStatus.SKIPPED, output)

            _log.debug("  Converting (%s) -> %s", self._strategy.name, output)
            self._strategy.execute(source, output)
            elapsed = time.monotonic() - t0
            _log.info("✓ %s (%.1fs)", output.name, elapsed)
            return ConversionOutcome(
                source, OutcomeStatus.SUCCEEDED, output, elapsed_seconds=elapsed,
            )
        except Exception as e:
            elapsed = time.monotonic() - t0
            _log.error("✗ %s: %s: %s", source.name, type(e).__name__, e)
            return ConversionOutcome(
                source, OutcomeStatus.FAILED, output,
                elapsed_seconds=elapsed, error=f"{type(e).__name__}: {e}",
            )
        finally:
            clear_item_context()

    def run_all(self, pending: Sequence[Path]) -> DispatchStats:
        """Process every item in *pending* once and aggregate outcomes.

        A single item's failure never cancels or blocks other items.

        Raises:
            DispatchError: If the pool cannot run (fewer than 1 worker).
        """
        stats = DispatchStats(pending=len(pending))
        workers = resolve_workers(self._max_workers, len(pending))
        if not pending:
            return stats

        _log.info(
            "Dispatching %d item(s) with %d worker(s) [%s strategy]",
            len(pending), workers, self._strategy.name,
        )

        if workers == 1:
            for source in pending:
                self._collect(stats, self.process_one(source))
            return stats

        set_prefix_width(
            min(max(len(p.name) for p in pending) + 2, _MAX_PREFIX_WIDTH),  # +2 for []
        )
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="convert",
        ) as executor:
            futures = [executor.submit(self.process_one, source) for source in pending]
            for future in as_completed(futures):
                self._collect(stats, future.result())
        return stats

    def _collect(self, stats: DispatchStats, outcome: ConversionOutcome) -> None:
        """Fold *outcome* into *stats* and notify the callback."""
        stats.record(outcome)
        if self._on_outcome is not None:
            try:
                self._on_outcome(outcome)
            except OSError as exc:
                _log.warning("Outcome callback failed for %s: %s",
                             outcome.source, exc)
        done = stats.processed
        if done % 100 == 0 or done == stats.pending:
            _log.info(
                "Progress: %d/%d (%d ok, %d failed, %d skipped)",
                done, stats.pending, stats.succeeded, stats.failed, stats.skipped,
            )
