"""
errors.py — Fingerprint error taxonomy

Every error raised by the pipeline derives from FingerprintError so a host
can catch the whole family in one place. None of them are retried: the
pipeline is a pure computation, the same input fails the same way.
"""


class FingerprintError(Exception):
    """Base class for everything the codegen raises on purpose."""


class InvalidInput(FingerprintError, ValueError):
    """Sample count is non-positive, undersized, or larger than the buffer."""


class CorruptSamples(FingerprintError, ValueError):
    """The buffer holds NaN or infinite values."""


class InternalInvariantViolation(FingerprintError, RuntimeError):
    """A bound check failed inside the pipeline. This is a bug, not bad input."""


class FingerprintCancelled(FingerprintError):
    """The caller asked to stop between two frames."""


class MalformedCode(FingerprintError, ValueError):
    """A fingerprint string could not be parsed back into entries."""
