"""
Tether exceptions.

Infrastructure failures are raised. "Element is gone" is not an
infrastructure failure: the reconciler and locator return None for it.
"""


class TetherError(Exception):
    """Base exception for the whole library."""


class ConfigurationError(TetherError):
    """Invalid configuration value."""


class EngineUnavailable(TetherError):
    """
    The page's execution context could not be reached.

    Raised when a navigation tore the context down mid-call, the window
    was closed or the snapshot script timed out. Callers should retry
    after a short backoff instead of treating it as "no elements".
    """


class ElementNotFound(TetherError):
    """No live element could be resolved for a target."""


class AmbiguousMatch(TetherError):
    """
    Several nodes share one fingerprint.

    Never raised: the first node in pre-order wins. Kept so callers can
    reference the limitation by name.
    """


class ReplayError(TetherError):
    """A flight record could not be read or is malformed."""
