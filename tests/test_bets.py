import pytest

from casinobot.core.bets import (
    ensure_no_bet,
    parse_blackjack_bet,
    parse_roulette_bet,
    parse_stake,
    validate_forfeit,
)
from casinobot.core.errors import PermissionDeniedError, StateConflictError, UserInputError
from casinobot.core.forfeits import PADLOCK, get_forfeit
from casinobot.core.interfaces import Gambler

ALICE = Gambler(1, "Alice")


def test_stake_is_chips_or_forfeit():
    assert parse_stake("10") == (10, None)
    assert parse_stake("boots") == (5, "boots")
    assert parse_stake("boots", multiplier=3) == (15, "boots")
    for bad in ("0", "-5", "ten", "", "1.5"):
        with pytest.raises(UserInputError):
            parse_stake(bad)


def test_roulette_named_kinds_either_order():
    a = parse_roulette_bet(ALICE, ["red", "10"])
    b = parse_roulette_bet(ALICE, ["10", "red"])
    assert (a.kind, a.stake) == (b.kind, b.stake) == ("red", 10)


def test_roulette_single_number():
    bet = parse_roulette_bet(ALICE, ["17", "5"])
    assert bet.kind == "single"
    assert bet.number == 17
    assert bet.stake == 5
    assert bet.target_text() == "17"


def test_roulette_forfeit_stake_uses_multiplier():
    bet = parse_roulette_bet(ALICE, ["1-12", "boots"], multiplier=2)
    assert bet.kind == "1-12"
    assert bet.forfeit_key == "boots"
    assert bet.stake == 10


def test_roulette_rejects_bad_input():
    with pytest.raises(UserInputError):
        parse_roulette_bet(ALICE, ["red"])
    with pytest.raises(UserInputError):
        parse_roulette_bet(ALICE, ["37", "5"])
    with pytest.raises(UserInputError):
        parse_roulette_bet(ALICE, ["purple", "5"])
    with pytest.raises(UserInputError):
        parse_roulette_bet(ALICE, ["red", "lots"])


def test_blackjack_takes_one_stake():
    assert parse_blackjack_bet(ALICE, ["25"]).stake == 25
    bet = parse_blackjack_bet(ALICE, ["gag"])
    assert bet.is_forfeit
    assert bet.stake_text() == "a ball gag for 5 chips"
    with pytest.raises(UserInputError):
        parse_blackjack_bet(ALICE, ["10", "red"])


def test_duplicate_bet_is_a_state_conflict():
    bets = {1: [parse_blackjack_bet(ALICE, ["5"])]}
    with pytest.raises(StateConflictError):
        ensure_no_bet(bets, 1)
    ensure_no_bet(bets, 2)


async def test_forfeit_blocked_by_worn_item(avatar):
    avatar.worn[1] = {"ItemArms"}
    with pytest.raises(PermissionDeniedError, match="ItemArms"):
        await validate_forfeit(avatar, 1, get_forfeit("armbinder"))


async def test_forfeit_needs_interaction_permission(avatar):
    avatar.no_interaction.add(1)
    with pytest.raises(PermissionDeniedError, match="permissions"):
        await validate_forfeit(avatar, 1, get_forfeit("boots"))


async def test_timed_forfeit_needs_the_padlock(avatar):
    avatar.limits[1] = {PADLOCK}
    with pytest.raises(PermissionDeniedError, match=PADLOCK):
        await validate_forfeit(avatar, 1, get_forfeit("boots"))
    # the sign is never locked
    await validate_forfeit(avatar, 1, get_forfeit("sign"))
