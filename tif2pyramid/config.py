"""Run configuration passed explicitly to every component.

Defaults mirror the container deployment: ``/app/input`` and
``/app/output`` mounts, four threads, and local caching in
``/tmp/cache``.  :meth:`RunConfig.from_env` reads the same environment
variables the container exposes (``THREADS``, ``USE_LOCAL_CACHE``, ...).
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from tif2pyramid.converter import DEFAULT_VIPS_EXECUTABLE
from tif2pyramid.errors import ConfigurationError
from tif2pyramid.reconciler import DEFAULT_PROGRESS_EVERY

DEFAULT_INPUT_DIR = Path("/app/input")
DEFAULT_OUTPUT_DIR = Path("/app/output")
DEFAULT_CACHE_DIR = Path("/tmp/cache")

DEFAULT_THREADS = 4
"""Default worker count (``THREADS``)."""

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def parse_bool(value: str, name: str) -> bool:
    """Parse a boolean environment value.

    Raises:
        ConfigurationError: If *value* is not a recognized boolean.
    """
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be true/false, got {value!r}")


def parse_int(value: str, name: str) -> int:
    """Parse an integer environment value.

    Raises:
        ConfigurationError: If *value* is not an integer.
    """
    try:
        return int(value.strip())
    except ValueError as exc:
        raise ConfigurationError(
            f"{name} must be an integer, got {value!r}",
        ) from exc


def _overlaps(a: Path, b: Path) -> bool:
    """True if *a* and *b* are the same directory or one contains the other."""
    return a == b or a in b.parents or b in a.parents


@dataclass(frozen=True)
class RunConfig:
    """All settings for one batch run."""

    input_root: Path
    output_root: Path
    threads: int = DEFAULT_THREADS
    use_local_cache: bool = True
    cache_dir: Path = DEFAULT_CACHE_DIR
    vips_executable: str = DEFAULT_VIPS_EXECUTABLE
    joblog: Path | None = None
    progress_every: int = DEFAULT_PROGRESS_EVERY

    @classmethod
    def from_env(cls, environ: Mapping[str, str], **overrides) -> RunConfig:
        """Build a config from environment variables plus explicit overrides.

        Overrides whose value is ``None`` are ignored, so CLI arguments
        that were not given fall through to the environment.

        Recognized variables: ``INPUT_DIR``, ``OUTPUT_DIR``, ``THREADS``,
        ``USE_LOCAL_CACHE``, ``LOCAL_CACHE_DIR``, ``VIPS``.

        Raises:
            ConfigurationError: On malformed values or unknown overrides.
        """
        values: dict = {
            "input_root": Path(environ.get("INPUT_DIR", DEFAULT_INPUT_DIR)),
            "output_root": Path(environ.get("OUTPUT_DIR", DEFAULT_OUTPUT_DIR)),
            "cache_dir": Path(environ.get("LOCAL_CACHE_DIR", DEFAULT_CACHE_DIR)),
            "vips_executable": environ.get("VIPS", DEFAULT_VIPS_EXECUTABLE),
        }
        if "THREADS" in environ:
            values["threads"] = parse_int(environ["THREADS"], "THREADS")
        if "USE_LOCAL_CACHE" in environ:
            values["use_local_cache"] = parse_bool(
                environ["USE_LOCAL_CACHE"], "USE_LOCAL_CACHE",
            )

        known = {f.name for f in dataclasses.fields(cls)}
        for key, value in overrides.items():
            if key not in known:
                raise ConfigurationError(f"Unknown configuration field: {key}")
            if value is not None:
                values[key] = value
        return cls(**values)

    def validate(self) -> None:
        """Check the config before any work starts.

        Raises:
            ConfigurationError: If the input root is missing or not a
                directory, if numeric settings are out of range, or if
                the cache directory overlaps the input or output root
                while local caching is enabled.
        """
        if self.threads < 1:
            raise ConfigurationError(
                f"threads must be at least 1, got {self.threads}",
            )
        if self.progress_every < 0:
            raise ConfigurationError("progress_every must not be negative")
        if not self.input_root.exists():
            raise ConfigurationError(
                "Input directory does not exist", path=self.input_root,
            )
        if not self.input_root.is_dir():
            raise ConfigurationError(
                "Input path is not a directory", path=self.input_root,
            )
        if self.use_local_cache:
            cache = self.cache_dir.resolve()
            for label, root in (("input", self.input_root), ("output", self.output_root)):
                if _overlaps(cache, root.resolve()):
                    raise ConfigurationError(
                        f"Cache directory must not overlap the {label} directory "
                        f"(it is emptied at start and end of every run)",
                        path=self.cache_dir,
                    )

    def resolved(self) -> RunConfig:
        """Return a copy with input, output, and cache roots made absolute."""
        return dataclasses.replace(
            self,
            input_root=self.input_root.resolve(),
            output_root=self.output_root.resolve(),
            cache_dir=self.cache_dir.resolve(),
        )
