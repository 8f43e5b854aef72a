"""
Casino error taxonomy.
Every error carries the plain-text message sent back to the player.
"""

from __future__ import annotations


class CasinoError(Exception):
    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class UserInputError(CasinoError):
    """Malformed stake, unknown forfeit key, wrong argument count."""


class StateConflictError(CasinoError):
    """Action outside its phase, bet after the deadline, duplicate bet."""


class InsufficientFundsError(CasinoError):
    def __init__(self, message: str = "You don't have enough chips."):
        super().__init__(message)


class PermissionDeniedError(CasinoError):
    """Forfeit blocked by the player's own item permissions."""


class CheatDetected(CasinoError):
    """Re-bet of a forfeit whose item is still locked. Never replied to."""


class InternalInconsistency(CasinoError):
    """Engine state that should be impossible (e.g. a bet with no hand)."""
