"""Outcome records and run-level reporting for batch conversion."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class OutcomeStatus(Enum):
    """Result of one conversion attempt."""

    SUCCEEDED = "succeeded"
    """The item was converted and published at its final path."""

    FAILED = "failed"
    """Conversion or placement failed; no file was left at the final path."""

    SKIPPED = "skipped"
    """The final output appeared between reconciliation and dispatch."""


@dataclass(frozen=True)
class ConversionOutcome:
    """Per-item outcome produced by a dispatcher worker.

    Ephemeral: exists only for the duration of a run and is folded into
    the aggregate counts by the collector.
    """

    source: Path
    status: OutcomeStatus
    output: Path
    elapsed_seconds: float = 0.0
    error: str | None = None


@dataclass
class RunReport:
    """Aggregate counts for one full run.

    ``completed`` counts items already done by prior runs (found during
    reconciliation); ``duplicates`` counts inputs never dispatched because
    an earlier input maps to the same output;
    ``succeeded``/``failed``/``skipped`` cover only the items dispatched
    by this run.
    """

    total: int = 0
    completed: int = 0
    pending: int = 0
    duplicates: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    elapsed_seconds: float = 0.0
    final_state: str = "done"
    failures: list[ConversionOutcome] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        """0 when no item failed, 1 otherwise."""
        return 1 if self.failed > 0 else 0


def fmt_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string.

    Examples: ``"45s"``, ``"2m 15s"``, ``"1h 03m 12s"``.
    """
    if seconds < 0:
        return "0s"
    s = int(seconds)
    if s < 60:
        return f"{s}s"
    m, s = divmod(s, 60)
    if m < 60:
        return f"{m}m {s:02d}s"
    h, m = divmod(m, 60)
    return f"{h}h {m:02d}m {s:02d}s"


def format_summary(report: RunReport) -> str:
    """Format the final report block (one line per counter)."""
    lines = [
        f"{'Discovered':<18s} {report.total:>8,}",
        f"{'Already complete':<18s} {report.completed:>8,}",
        f"{'Pending':<18s} {report.pending:>8,}",
        f"{'Duplicate keys':<18s} {report.duplicates:>8,}",
        "-" * 27,
        f"{'Succeeded':<18s} {report.succeeded:>8,}",
        f"{'Failed':<18s} {report.failed:>8,}",
        f"{'Skipped':<18s} {report.skipped:>8,}",
        "-" * 27,
        f"{'Elapsed':<18s} {fmt_duration(report.elapsed_seconds):>8s}",
    ]
    return "\n".join(lines)
