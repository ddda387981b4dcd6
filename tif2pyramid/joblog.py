"""Append-only JSON-lines job log, one line per dispatched item.

Replaces the ``--joblog`` file GNU parallel used to write.  Only the
dispatcher's collector thread appends, so no locking is required.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from tif2pyramid.models import ConversionOutcome

_log = logging.getLogger("joblog")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class JobLog:
    """Write :class:`~tif2pyramid.models.ConversionOutcome` records to disk.

    Usable directly as the dispatcher's ``on_outcome`` callback.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def open(self) -> None:
        """Create the parent directory so later appends cannot fail on it."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        _log.info("Job log: %s", self._path)

    def __call__(self, outcome: ConversionOutcome) -> None:
        self.append(outcome)

    def append(self, outcome: ConversionOutcome) -> None:
        entry = {
            "ts_utc": utc_now_iso(),
            "source": str(outcome.source),
            "output": str(outcome.output),
            "status": outcome.status.value,
            "elapsed_s": round(outcome.elapsed_seconds, 3),
            "error": outcome.error,
        }
        with self._path.open("a", encoding="utf-8") as fp:
            fp.write(json.dumps(entry, ensure_ascii=False) + "\n")

    def read(self) -> list[dict]:
        """Return all entries written so far (empty if the file is absent)."""
        if not self._path.exists():
            return []
        lines = self._path.read_text(encoding="utf-8").splitlines()
        return [json.loads(line) for line in lines if line.strip()]
