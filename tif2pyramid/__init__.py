"""Resumable batch conversion of TIFF trees into pyramidal TIFFs.

Discovers source images under an input root, reconciles them against
what already exists under the output root, and converts the remainder
in parallel through the external ``vips`` tool.  Outputs are written
atomically, so an interrupted run never leaves a partial file behind and
a rerun never redoes finished work.

Key features:
- Single-scan reconciliation (no per-file stat against slow storage)
- Bounded worker pool, one attempt per item, order-independent counts
- Atomic temp-file + rename publishing
- Optional local staging (copy in, convert locally, copy out) for NFS

Note: Imports are deferred so that ``import tif2pyramid`` stays cheap.
Use explicit imports from submodules (e.g.
``from tif2pyramid.pipeline import BatchPipeline``) or attribute access
on this package.
"""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("tif2pyramid")
except PackageNotFoundError:
    __version__ = "0.0.0"  # fallback for uninstalled dev usage


def __getattr__(name: str):
    """Lazy imports to keep package import time minimal."""
    # Map attribute names to their source modules.
    _lazy_imports = {
        # tif2pyramid.atomic
        "atomic_place": "tif2pyramid.atomic",
        # tif2pyramid.config
        "RunConfig": "tif2pyramid.config",
        # tif2pyramid.converter
        "Converter": "tif2pyramid.converter",
        "VipsConverter": "tif2pyramid.converter",
        # tif2pyramid.dispatcher
        "Dispatcher": "tif2pyramid.dispatcher",
        "DispatchStats": "tif2pyramid.dispatcher",
        # tif2pyramid.errors
        "ConfigurationError": "tif2pyramid.errors",
        "ConversionError": "tif2pyramid.errors",
        "DiscoveryError": "tif2pyramid.errors",
        "DispatchError": "tif2pyramid.errors",
        # tif2pyramid.models
        "ConversionOutcome": "tif2pyramid.models",
        "OutcomeStatus": "tif2pyramid.models",
        "RunReport": "tif2pyramid.models",
        # tif2pyramid.paths
        "output_key_of": "tif2pyramid.paths",
        "output_path_for": "tif2pyramid.paths",
        # tif2pyramid.pipeline
        "BatchPipeline": "tif2pyramid.pipeline",
        "RunState": "tif2pyramid.pipeline",
        "discover_inputs": "tif2pyramid.pipeline",
        # tif2pyramid.reconciler
        "ReconcileResult": "tif2pyramid.reconciler",
        "reconcile": "tif2pyramid.reconciler",
        # tif2pyramid.strategies
        "DirectStrategy": "tif2pyramid.strategies",
        "StagedStrategy": "tif2pyramid.strategies",
        # tif2pyramid.workdir
        "StagingArea": "tif2pyramid.workdir",
        "StagingSlot": "tif2pyramid.workdir",
    }

    if name in _lazy_imports:
        import importlib
        module = importlib.import_module(_lazy_imports[name])
        return getattr(module, name)

    raise AttributeError(f"module 'tif2pyramid' has no attribute {name!r}")


__all__ = [
    "atomic_place",
    "BatchPipeline",
    "ConfigurationError",
    "ConversionError",
    "ConversionOutcome",
    "Converter",
    "DirectStrategy",
    "discover_inputs",
    "DiscoveryError",
    "Dispatcher",
    "DispatchError",
    "DispatchStats",
    "OutcomeStatus",
    "output_key_of",
    "output_path_for",
    "reconcile",
    "ReconcileResult",
    "RunConfig",
    "RunReport",
    "RunState",
    "StagedStrategy",
    "StagingArea",
    "StagingSlot",
    "VipsConverter",
]
