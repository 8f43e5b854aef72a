"""
Cards, hands and the blackjack shoe.
"""

from __future__ import annotations

import logging
import math
import random
from collections import deque
from dataclasses import dataclass, field

log = logging.getLogger(__name__)

RANKS = ["A", "2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K"]
SUITS = ["♠", "♥", "♦", "♣"]
FACE_RANKS = ("J", "Q", "K")

MAX_DECKS = 8
PLAYERS_PER_DECK = 2
CARDS_PER_SEAT = 7


@dataclass(frozen=True)
class Card:
    rank: str
    suit: str = "♠"

    def __str__(self) -> str:
        return f"{self.rank}{self.suit}"

    @property
    def points(self) -> int:
        if self.rank == "A":
            return 11
        if self.rank in FACE_RANKS:
            return 10
        return int(self.rank)


@dataclass
class Hand:
    cards: list[Card] = field(default_factory=list)

    def add(self, card: Card) -> Card:
        self.cards.append(card)
        return card

    def value(self) -> int:
        return hand_value(self.cards)

    def is_bust(self) -> bool:
        return self.value() > 21

    def is_natural(self) -> bool:
        return len(self.cards) == 2 and self.value() == 21

    def can_split(self) -> bool:
        if len(self.cards) != 2:
            return False
        a, b = self.cards
        return a.rank == b.rank or (a.points == 10 and b.points == 10)

    def __len__(self) -> int:
        return len(self.cards)

    def __str__(self) -> str:
        return ", ".join(f"[{c}]" for c in self.cards)


def hand_value(cards: list[Card]) -> int:
    """Best blackjack total: aces count 11 and are demoted to 1 while the hand is over 21."""
    total = sum(c.points for c in cards)
    aces = sum(1 for c in cards if c.rank == "A")
    while total > 21 and aces > 0:
        total -= 10
        aces -= 1
    return total


def create_deck() -> list[Card]:
    return [Card(rank, suit) for suit in SUITS for rank in RANKS]


def decks_for_players(players: int) -> int:
    return max(1, min(MAX_DECKS, math.ceil(players / PLAYERS_PER_DECK)))


class Shoe:
    """Working stack of cards. Cards are drawn from the front."""

    def __init__(self, cards: list[Card] | None = None, rng: random.Random | None = None):
        self.rng = rng or random.Random()
        self.cards: deque[Card] = deque(cards or [])
        self.decks = 0

    @classmethod
    def shuffled(cls, decks: int, rng: random.Random | None = None) -> "Shoe":
        rng = rng or random.Random()
        cards = [card for _ in range(decks) for card in create_deck()]
        rng.shuffle(cards)
        shoe = cls(cards, rng)
        shoe.decks = decks
        return shoe

    def __len__(self) -> int:
        return len(self.cards)

    def needs_reshuffle(self, players: int) -> bool:
        # dealer counts as a seat
        return len(self.cards) < CARDS_PER_SEAT * (players + 1)

    def draw(self) -> Card:
        if not self.cards:
            log.warning("Shoe ran dry mid-round, shuffling a single fresh deck")
            fresh = Shoe.shuffled(1, self.rng)
            self.cards = fresh.cards
            self.decks = fresh.decks
        return self.cards.popleft()
