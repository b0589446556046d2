"""
Error taxonomy for the hex conquest engine.

Combat request errors are not exceptions: the resolver returns them as values
so a caller can abort a single action and keep the turn going.
"""


class GameError(Exception):
    """Base class for all engine errors."""


class LevelDataError(GameError):
    """Level JSON is missing, unreadable or malformed."""


class PersistenceError(GameError):
    """A durable store call failed. Callers log it and keep in-memory state."""


class ActionError(GameError):
    """A move, spawn or other player action was rejected."""
