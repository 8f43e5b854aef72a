"""
Bets and the bet validator.

Parsing here is pure: nothing is debited until the table places the bet,
so a rejected command can simply be retried.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

from .cards import Hand
from .errors import PermissionDeniedError, StateConflictError, UserInputError
from .forfeits import ForfeitEntry, get_forfeit
from .interfaces import Avatar, Gambler

log = logging.getLogger(__name__)

_DIGITS = re.compile(r"^\d+$")

ROULETTE_KINDS = ("red", "black", "even", "odd", "1-18", "19-36", "1-12", "13-24", "25-36")


@dataclass
class Bet:
    player_id: int
    display_name: str
    stake: int
    forfeit_key: Optional[str] = None

    @property
    def is_forfeit(self) -> bool:
        return self.forfeit_key is not None

    @property
    def forfeit(self) -> ForfeitEntry | None:
        return get_forfeit(self.forfeit_key)

    def stake_text(self) -> str:
        if self.is_forfeit:
            return f"{self.forfeit.name} for {self.stake} chips"
        return f"{self.stake} chips"


@dataclass
class RouletteBet(Bet):
    kind: str = "red"
    number: Optional[int] = None

    def target_text(self) -> str:
        return str(self.number) if self.kind == "single" else self.kind


@dataclass
class BlackjackBet(Bet):
    hand: Optional[Hand] = None
    standing: bool = False
    doubled: bool = False
    split: bool = False


def parse_stake(token: str, multiplier: int = 1) -> tuple[int, str | None]:
    """Chip amount or forfeit keyword. Forfeit stakes are scaled by the bonus multiplier."""
    entry = get_forfeit(token)
    if entry is not None:
        return entry.value * max(1, int(multiplier)), entry.key
    if not _DIGITS.match(token or ""):
        raise UserInputError("Invalid stake.")
    value = int(token)
    if value < 1:
        raise UserInputError("Invalid stake.")
    return value, None


def _is_roulette_target(token: str) -> bool:
    token = token.lower()
    return token in ROULETTE_KINDS or (bool(_DIGITS.match(token)) and get_forfeit(token) is None)


def parse_roulette_bet(gambler: Gambler, args: list[str], multiplier: int = 1) -> RouletteBet:
    if len(args) != 2:
        raise UserInputError(
            "I couldn't understand that bet. Try, eg. bet red 10 or bet 1-12 boots"
        )

    kind_token, stake_token = args[0].lower(), args[1].lower()
    # "bet 10 red" reads the same as "bet red 10"
    if stake_token in ROULETTE_KINDS or (
        not _is_roulette_target(kind_token) and _is_roulette_target(stake_token)
    ):
        kind_token, stake_token = stake_token, kind_token

    stake, forfeit_key = parse_stake(stake_token, multiplier)

    if kind_token in ROULETTE_KINDS:
        return RouletteBet(gambler.player_id, gambler.name, stake, forfeit_key, kind=kind_token)

    if not _DIGITS.match(kind_token):
        raise UserInputError("Invalid bet.")
    number = int(kind_token)
    if number < 0 or number > 36:
        raise UserInputError("Invalid bet.")
    return RouletteBet(gambler.player_id, gambler.name, stake, forfeit_key, kind="single", number=number)


def parse_blackjack_bet(gambler: Gambler, args: list[str], multiplier: int = 1) -> BlackjackBet:
    if len(args) != 1:
        raise UserInputError(
            "I couldn't understand that bet. Try, eg. bet 10 or bet boots"
        )
    stake, forfeit_key = parse_stake(args[0].lower(), multiplier)
    return BlackjackBet(gambler.player_id, gambler.name, stake, forfeit_key)


def ensure_no_bet(bets: dict[int, list], player_id: int):
    if bets.get(player_id):
        raise StateConflictError("You already placed a bet. Use cancel to cancel it.")


async def validate_forfeit(avatar: Avatar, player_id: int, entry: ForfeitEntry):
    """Reject a forfeit stake the bot could not actually apply to this player."""
    blockers = [slot for slot in entry.items if await avatar.is_wearing(player_id, slot)]
    if blockers:
        log.info("Blocked forfeit bet of %s by %s with blockers %s", entry.key, player_id, blockers)
        raise PermissionDeniedError(f"You can't bet that while you have: {', '.join(blockers)}")

    if not await avatar.allows_interaction(player_id):
        raise PermissionDeniedError(
            "You'll need to open up your permissions or whitelist the bot to bet restraints."
        )

    limits = await avatar.blocked_slots(player_id)
    blocked = [slot for slot in entry.required_items() if slot in limits]
    if blocked:
        raise PermissionDeniedError(
            f"You can't bet that forfeit because you've blocked: {', '.join(blocked)}."
        )
