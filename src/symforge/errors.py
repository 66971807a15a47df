"""Exception hierarchy for SymForge.

Configuration errors are raised at the point of use and are not recoverable.
Numeric degeneracy (NaN/Inf fitness) never raises; it is absorbed by the
evaluators and the evolutionary loop.
"""


class SymForgeError(Exception):
    """Base class for all SymForge errors."""


class ConfigurationError(SymForgeError, ValueError):
    """Invalid or unsupported configuration."""


class UnsupportedDerivativeError(ConfigurationError):
    """A primitive cannot be differentiated in the requested configuration."""


class InvalidTreeError(SymForgeError, ValueError):
    """A tree violates its structural invariants."""
