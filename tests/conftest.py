from __future__ import annotations

import random

import pytest

from casinobot.core.cards import Card, Shoe
from casinobot.core.casino import Casino
from casinobot.core.config import Config
from casinobot.core.db import Database
from casinobot.core.interfaces import Gambler
from casinobot.core.store import CasinoStore
from casinobot.core.tables import TableTimings

START_MS = 1_700_000_000_000


class FakeClock:
    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int):
        self.now += ms


class FakeRoom:
    def __init__(self):
        self.replies: list[tuple[int, str]] = []
        self.broadcasts: list[str] = []
        self.whispers: list[tuple[int, str]] = []
        self.players: dict[str, Gambler] = {}
        self.fail_broadcasts = False

    def add(self, gambler: Gambler):
        self.players[gambler.name.lower()] = gambler
        self.players[str(gambler.player_id)] = gambler

    async def reply(self, gambler, text):
        self.replies.append((gambler.player_id, text))

    async def broadcast(self, text):
        if self.fail_broadcasts:
            raise ConnectionError("channel unavailable")
        self.broadcasts.append(text)

    async def whisper(self, player_id, text):
        self.whispers.append((player_id, text))

    def find_player(self, query):
        return self.players.get(query.lower())

    def last_reply(self, player_id: int) -> str | None:
        texts = [t for pid, t in self.replies if pid == player_id]
        return texts[-1] if texts else None


class FakeAvatar:
    def __init__(self):
        self.worn: dict[int, set[str]] = {}
        self.no_interaction: set[int] = set()
        self.limits: dict[int, set[str]] = {}
        self.hair: dict[int, str] = {}
        self.colours: list[tuple[int, str, list[str]]] = []
        self.locks: dict[tuple[int, str], tuple[int, str]] = {}
        self.labels: list[tuple[int, str, str]] = []
        self.fail_layered_colour = False

    async def is_wearing(self, player_id, slot):
        return slot in self.worn.get(player_id, set())

    async def allows_interaction(self, player_id):
        return player_id not in self.no_interaction

    async def blocked_slots(self, player_id):
        return set(self.limits.get(player_id, set()))

    async def hair_colour(self, player_id):
        return self.hair.get(player_id)

    async def equip(self, player_id, slot, label):
        self.worn.setdefault(player_id, set()).add(slot)
        self.labels.append((player_id, slot, label))

    async def equip_bundle(self, player_id, slots, label):
        for slot in slots:
            await self.equip(player_id, slot, label)

    async def set_colour(self, player_id, slot, colours):
        if self.fail_layered_colour and len(colours) > 1:
            raise ValueError("layered colours not supported")
        self.colours.append((player_id, slot, list(colours)))

    async def lock(self, player_id, slot, until_ms, password):
        self.locks[(player_id, slot)] = (until_ms, password)

    async def remove(self, player_id, slot):
        self.worn.get(player_id, set()).discard(slot)
        self.locks.pop((player_id, slot), None)

    async def locked_by_casino(self, player_id, slot):
        return (player_id, slot) in self.locks


def stacked_shoe(*ranks: str, padding: int = 30) -> Shoe:
    """Shoe that deals the given ranks first, then low cards nobody should reach."""
    cards = [Card(r) for r in ranks] + [Card("2", "♣")] * padding
    return Shoe(cards, random.Random(0))


TEST_TIMINGS = TableTimings(
    spin_delay=60,
    deal_delay=30,
    cancel_cutoff=3,
    auto_stand=45,
    split_extension=15,
    settle_delay=0,
    cooldown_delay=10,
)


@pytest.fixture
async def db():
    db = Database(":memory:")
    await db.connect()
    await db.migrate()
    yield db
    await db.close()


@pytest.fixture
def store(db):
    return CasinoStore(db)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def room():
    return FakeRoom()


@pytest.fixture
def avatar():
    return FakeAvatar()


@pytest.fixture
def alice(room):
    g = Gambler(1, "Alice")
    room.add(g)
    return g


@pytest.fixture
def bob(room):
    g = Gambler(2, "Bob")
    room.add(g)
    return g


@pytest.fixture
def boss(room):
    g = Gambler(99, "Boss", is_admin=True)
    room.add(g)
    return g


def make_casino(store, room, avatar, clock, game: str = "roulette") -> Casino:
    cfg = Config({"casino": {"start_game": game, "prefix": "!"}})
    return Casino(
        store, room, avatar, cfg,
        timings=TEST_TIMINGS, clock=clock, run_timers=False, rng=random.Random(1234),
    )


@pytest.fixture
def casino(store, room, avatar, clock):
    return make_casino(store, room, avatar, clock, "roulette")


@pytest.fixture
def bj_casino(store, room, avatar, clock):
    return make_casino(store, room, avatar, clock, "blackjack")
