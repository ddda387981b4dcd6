"""Thread-local logging context for parallel item processing.

When a dispatcher worker sets the current item name, every log record
emitted from that thread carries an ``item_prefix`` field (e.g.
``"[scan_0042.tif] "``) so that interleaved lines from concurrent
workers stay attributable.
"""

from __future__ import annotations

import logging
import threading

_thread_context = threading.local()
"""Per-thread storage for the current item name."""

_prefix_width: int = 0
"""Minimum width for the ``[item]`` prefix (0 = no padding)."""


class ItemContextFilter(logging.Filter):
    """Inject the per-thread item name into every log record.

    When not set, ``item_prefix`` is the empty string so
    single-threaded output is unchanged.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        item = getattr(_thread_context, "item_name", "")
        if item:
            tag = f"[{item}]"
            record.item_prefix = tag.ljust(_prefix_width) + " "  # type: ignore[attr-defined]
        else:
            record.item_prefix = ""  # type: ignore[attr-defined]
        return True


def set_prefix_width(width: int) -> None:
    """Pad ``[item]`` prefixes to *width* characters for aligned output."""
    global _prefix_width  # noqa: PLW0603
    _prefix_width = max(0, width)


def set_item_context(item_name: str) -> None:
    """Set the item name for the current thread's log lines."""
    _thread_context.item_name = item_name


def clear_item_context() -> None:
    """Clear the item name for the current thread."""
    _thread_context.item_name = ""


def current_item() -> str:
    """Return the item name set for the current thread (or ``""``)."""
    return getattr(_thread_context, "item_name", "")
