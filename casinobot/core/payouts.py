"""
Payout calculator.
Pure functions from (outcome, bet) to a Settlement. No ledger or avatar access.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .bets import BlackjackBet, RouletteBet
from .cards import Hand

RED_NUMBERS = frozenset({1, 3, 5, 7, 9, 12, 14, 16, 18, 19, 21, 23, 25, 27, 30, 32, 34, 36})

SINGLE_MULTIPLIER = 36
EVEN_MONEY_MULTIPLIER = 2
DOZEN_MULTIPLIER = 3

NATURAL_MULTIPLIER = 2.5
FORFEIT_NATURAL_MULTIPLIER = 1.5


class Outcome(str, Enum):
    WIN = "win"
    BLACKJACK = "blackjack"
    PUSH = "push"
    LOSS = "loss"
    VOID = "void"


@dataclass(frozen=True)
class Settlement:
    outcome: Outcome
    credits: int = 0
    apply_forfeit: bool = False


# ---------------------------
# Roulette
# ---------------------------
def roulette_colour(number: int) -> str:
    if number == 0:
        return "green"
    return "red" if number in RED_NUMBERS else "black"


def roulette_multiplier(winning_number: int, bet: RouletteBet) -> int:
    n = winning_number
    kind = bet.kind
    if kind == "single":
        return SINGLE_MULTIPLIER if bet.number == n else 0
    if n == 0:
        return 0
    if (
        (kind == "red" and n in RED_NUMBERS)
        or (kind == "black" and n not in RED_NUMBERS)
        or (kind == "even" and n % 2 == 0)
        or (kind == "odd" and n % 2 == 1)
        or (kind == "1-18" and n <= 18)
        or (kind == "19-36" and n >= 19)
    ):
        return EVEN_MONEY_MULTIPLIER
    if (
        (kind == "1-12" and n <= 12)
        or (kind == "13-24" and 13 <= n <= 24)
        or (kind == "25-36" and n >= 25)
    ):
        return DOZEN_MULTIPLIER
    return 0


def roulette_settlement(winning_number: int, bet: RouletteBet) -> Settlement:
    mult = roulette_multiplier(winning_number, bet)
    if mult:
        return Settlement(Outcome.WIN, bet.stake * mult)
    return Settlement(Outcome.LOSS, 0, apply_forfeit=bet.is_forfeit)


# ---------------------------
# Blackjack
# ---------------------------
def blackjack_settlement(hand: Hand, dealer: Hand, bet: BlackjackBet, *, split_player: bool = False) -> Settlement:
    """
    Settle one hand against the dealer.

    A natural is two-card 21 on an undoubled, unsplit hand and beats any
    dealer hand except a dealer natural, which pushes.
    """
    player_value = hand.value()
    dealer_value = dealer.value()
    natural = hand.is_natural() and not bet.doubled and not bet.split and not split_player
    dealer_natural = dealer.is_natural()

    if player_value > 21:
        return _loss(bet)

    if natural and not dealer_natural:
        mult = FORFEIT_NATURAL_MULTIPLIER if bet.is_forfeit else NATURAL_MULTIPLIER
        return Settlement(Outcome.BLACKJACK, int(bet.stake * mult))

    if dealer_natural and not natural:
        return _loss(bet)

    if dealer_value > 21:
        return _win(bet)
    if player_value == dealer_value:
        return _push(bet)
    if player_value > dealer_value:
        return _win(bet)
    return _loss(bet)


def _win(bet: BlackjackBet) -> Settlement:
    # forfeit stakes were never taken from the ledger, so only the stake is paid
    if bet.is_forfeit:
        return Settlement(Outcome.WIN, bet.stake)
    return Settlement(Outcome.WIN, bet.stake * 2)


def _push(bet: BlackjackBet) -> Settlement:
    if bet.is_forfeit:
        return Settlement(Outcome.VOID)
    return Settlement(Outcome.PUSH, bet.stake)


def _loss(bet: BlackjackBet) -> Settlement:
    return Settlement(Outcome.LOSS, 0, apply_forfeit=bet.is_forfeit)
