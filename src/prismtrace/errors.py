"""Exception hierarchy for the renderer.

Configuration problems are reported before any rendering starts and derive
from ``ValueError``; failing to start worker threads derives from
``RuntimeError``. Numeric degeneracies inside a path never raise: they are
absorbed where they occur.
"""


class PrismtraceError(Exception):
    """Base class for all renderer errors."""


class ConfigurationError(PrismtraceError, ValueError):
    """Invalid render, camera or scene configuration."""


class SpectrumError(PrismtraceError, ValueError):
    """Malformed spectral data (negative, non-finite or unordered samples)."""


class GeometryError(PrismtraceError, ValueError):
    """Degenerate primitive parameters."""


class MaterialError(PrismtraceError, ValueError):
    """Physically meaningless material parameters."""


class WorkerStartError(PrismtraceError, RuntimeError):
    """Worker threads could not be started, so rendering cannot proceed."""
