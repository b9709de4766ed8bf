"""
Error taxonomy shared by the rota engine, the store and the API layer.

InvalidInput is raised to the immediate caller; NotFound is resolved to
defaults by the lookup service; UpstreamFailure wraps store failures.
"""


class ShiftCoachError(Exception):
    """Base class for all domain errors."""


class InvalidInput(ShiftCoachError, ValueError):
    pass


class NotFound(ShiftCoachError, LookupError):
    pass


class PatternNotFound(NotFound):
    def __init__(self, pattern_id: str):
        super().__init__(f"Unknown shift pattern: {pattern_id!r}")
        self.pattern_id = pattern_id


class UpstreamFailure(ShiftCoachError, RuntimeError):
    """Persistence layer read/write failed; callers may retry."""
