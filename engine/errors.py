"""
Engine exceptions.

Expected failures (no path, locked door, no target) are returned as tagged
results. These exceptions are for broken invariants and bad reference data.
"""


class EngineError(Exception):
    """Base class for engine errors."""


class AdventureDataError(EngineError):
    """The adventure document does not contain something the engine needs."""


class CombatStateError(EngineError):
    """The combat state is internally inconsistent (programmer error)."""
