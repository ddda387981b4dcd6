"""Batch conversion pipeline: discover -> reconcile -> dispatch -> report.

:class:`BatchPipeline` wires the path mapper, reconciler, dispatcher,
and execution strategy into one run and tracks progress through an
explicit :class:`RunState` machine::

    INIT -> DISCOVERING -> RECONCILING -> DISPATCHING -> REPORTING -> DONE
      \\           \\
       +-----------+---> FAILED

Only configuration errors (``INIT``), discovery errors
(``DISCOVERING``), and an unusable worker pool are fatal.  Per-item
failures are recorded in the report and never abort the run.
"""

from __future__ import annotations

import functools
import logging
import os
import time
from enum import Enum
from pathlib import Path

from tif2pyramid.config import RunConfig
from tif2pyramid.converter import Converter, VipsConverter
from tif2pyramid.dispatcher import Dispatcher, DispatchStats
from tif2pyramid.errors import ConfigurationError, DiscoveryError, Tif2PyramidError
from tif2pyramid.joblog import JobLog
from tif2pyramid.models import RunReport, format_summary
from tif2pyramid.paths import is_input_file, output_path_for
from tif2pyramid.reconciler import ReconcileResult, reconcile
from tif2pyramid.strategies import DirectStrategy, ExecutionStrategy, StagedStrategy
from tif2pyramid.workdir import StagingArea

_log = logging.getLogger("pipeline")

_SUMMARY_SEP = "=" * 60
"""Separator line for the run summary block."""


class RunState(Enum):
    """Lifecycle states of a single run."""

    INIT = "init"
    DISCOVERING = "discovering"
    RECONCILING = "reconciling"
    DISPATCHING = "dispatching"
    REPORTING = "reporting"
    DONE = "done"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover_inputs(input_root: Path) -> list[Path]:
    """Recursively find source images under *input_root*.

    Traversal is deterministic (directory entries sorted by name).  Only
    regular files whose name ends in a recognized input extension are
    returned, case-insensitively.

    Raises:
        DiscoveryError: If the root or any subdirectory cannot be read.
    """
    if not input_root.is_dir():
        raise DiscoveryError("Input directory is not readable", path=input_root)

    def _on_error(exc: OSError) -> None:
        raise DiscoveryError(
            "Failed to enumerate input directory",
            path=Path(exc.filename) if exc.filename else input_root,
            original=exc,
        ) from exc

    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(input_root, onerror=_on_error):
        dirnames.sort()
        for name in sorted(filenames):
            if is_input_file(name):
                found.append(Path(dirpath) / name)
    return found


def build_strategy(
    config: RunConfig,
    converter: Converter,
) -> tuple[ExecutionStrategy, StagingArea | None]:
    """Pick the execution strategy configured by *config*.

    Returns:
        The strategy and, for staged execution, its staging area.
    """
    if config.use_local_cache:
        staging = StagingArea(config.cache_dir)
        return StagedStrategy(converter, staging), staging
    return DirectStrategy(converter), None


# ---------------------------------------------------------------------------
# BatchPipeline
# ---------------------------------------------------------------------------


class BatchPipeline:
    """One resumable batch conversion run.

    Usage::

        config = RunConfig(Path("/data/in"), Path("/data/out"), threads=8)
        report = BatchPipeline(config).run()
        sys.exit(report.exit_code)

    Args:
        config: Run settings.  Roots are resolved to absolute paths.
        converter: Converter adapter; defaults to :class:`VipsConverter`
            using ``config.vips_executable``.
    """

    def __init__(
        self,
        config: RunConfig,
        converter: Converter | None = None,
    ) -> None:
        self._config = config.resolved()
        self._converter = converter or VipsConverter(self._config.vips_executable)
        self._state = RunState.INIT
        self._mapper = functools.partial(
            output_path_for,
            input_root=self._config.input_root,
            output_root=self._config.output_root,
        )

    @property
    def config(self) -> RunConfig:
        return self._config

    @property
    def state(self) -> RunState:
        return self._state

    def output_path_for(self, source: Path) -> Path:
        """Final output path of *source* under this run's roots."""
        return self._mapper(source)

    # -- public API --------------------------------------------------------

    def check(self) -> ReconcileResult:
        """Discover and reconcile only: no conversion, no writes.

        Raises:
            ConfigurationError: If the input root is missing.
            DiscoveryError: If the input tree cannot be enumerated.
        """
        self._config.validate()
        inputs = discover_inputs(self._config.input_root)
        return reconcile(
            inputs,
            self._config.input_root,
            self._config.output_root,
            self._config.progress_every,
        )

    def run(self) -> RunReport:
        """Execute a full run and return its report.

        Raises:
            ConfigurationError: Invalid config (state ``FAILED``).
            DiscoveryError: Input tree unreadable (state ``FAILED``).
            DispatchError: Worker pool unusable (state ``FAILED``).
        """
        start = time.monotonic()
        report = RunReport()
        staging: StagingArea | None = None
        try:
            # -- INIT ------------------------------------------------------
            self._state = RunState.INIT
            self._config.validate()
            self._log_config()
            strategy, staging = build_strategy(self._config, self._converter)
            joblog: JobLog | None = None
            try:
                self._config.output_root.mkdir(parents=True, exist_ok=True)
                if staging is not None:
                    staging.prepare()
                if self._config.joblog is not None:
                    joblog = JobLog(self._config.joblog)
                    joblog.open()
            except OSError as exc:
                raise ConfigurationError(
                    "Cannot prepare output, staging, or job log location",
                    original=exc,
                ) from exc

            # -- DISCOVERING -----------------------------------------------
            self._state = RunState.DISCOVERING
            _log.info("Searching for TIFF files in %s ...", self._config.input_root)
            inputs = discover_inputs(self._config.input_root)
            report.total = len(inputs)
            _log.info("Found %d TIFF file(s)", report.total)
            if not inputs:
                _log.info("No TIFF files found -- nothing to do.")
                return self._finish(report, start)

            # -- RECONCILING -----------------------------------------------
            self._state = RunState.RECONCILING
            rec = reconcile(
                inputs,
                self._config.input_root,
                self._config.output_root,
                self._config.progress_every,
            )
            report.completed = rec.completed_count
            report.pending = len(rec.pending)
            report.duplicates = len(rec.duplicates)
            _log.info("  ✓ Already complete: %d file(s)", report.completed)
            _log.info("  … Pending:          %d file(s)", report.pending)
            if report.duplicates:
                _log.warning("  ⚠ Duplicate keys:   %d file(s) not dispatched",
                             report.duplicates)
            if not rec.pending:
                _log.info("All files already converted -- nothing to do.")
                return self._finish(report, start)

            # -- DISPATCHING -----------------------------------------------
            self._state = RunState.DISPATCHING
            stats = self._dispatch(strategy, rec.pending, joblog)

            # -- REPORTING -------------------------------------------------
            self._state = RunState.REPORTING
            report.succeeded = stats.succeeded
            report.failed = stats.failed
            report.skipped = stats.skipped
            report.failures = list(stats.failures)
            return self._finish(report, start)

        except Tif2PyramidError:
            self._state = RunState.FAILED
            raise
        finally:
            if staging is not None:
                staging.clear()

    # -- internal methods --------------------------------------------------

    def _dispatch(
        self,
        strategy: ExecutionStrategy,
        pending: list[Path],
        joblog: JobLog | None,
    ) -> DispatchStats:
        dispatcher = Dispatcher(
            strategy,
            self._mapper,
            max_workers=self._config.threads,
            on_outcome=joblog,
        )
        return dispatcher.run_all(pending)

    def _finish(self, report: RunReport, start: float) -> RunReport:
        """Log the summary, stamp the final state, and return *report*."""
        report.elapsed_seconds = time.monotonic() - start
        self._log_summary(report)
        self._state = RunState.DONE
        report.final_state = self._state.value
        return report

    def _log_config(self) -> None:
        cfg = self._config
        _log.info("Configuration:")
        _log.info("  Threads:     %d", cfg.threads)
        _log.info("  Local cache: %s", cfg.use_local_cache)
        if cfg.use_local_cache:
            _log.info("  Cache dir:   %s", cfg.cache_dir)
        _log.info("  Input:       %s", cfg.input_root)
        _log.info("  Output:      %s", cfg.output_root)

    @staticmethod
    def _log_summary(report: RunReport) -> None:
        _log.info("")
        _log.info(_SUMMARY_SEP)
        for line in format_summary(report).split("\n"):
            _log.info(line)
        _log.info(_SUMMARY_SEP)
        for outcome in report.failures:
            _log.error("  ✗ %s: %s", outcome.source, outcome.error)
        if report.failed:
            _log.warning("⚠ %d file(s) failed to convert", report.failed)
        else:
            _log.info("✓ All files processed")
