"""
Error taxonomy for the mission engine.

Every public operation raises one of these. Callers (the HTTP layer, the
sweep) decide how to surface them; nothing below the API layer knows about
status codes.
"""


class MissionEngineError(Exception):
    """Base class for all engine errors."""
    pass


class ValidationError(MissionEngineError):
    """Bad enum value or missing required field. Raised before any write."""
    pass


class NotFoundError(MissionEngineError):
    """Agent, unit, mission or deployment does not exist."""
    pass


class ConflictError(MissionEngineError):
    """State does not allow the requested transition."""
    pass


class TransientError(MissionEngineError):
    """Storage or collaborator call failed. Safe to retry."""
    pass


class CatalogError(MissionEngineError):
    """Mission catalog violates a load-time invariant. Fatal at startup."""
    pass
