import pytest

from casinobot.core.bets import ROULETTE_KINDS, BlackjackBet, RouletteBet
from casinobot.core.cards import Card, Hand
from casinobot.core.payouts import (
    RED_NUMBERS,
    Outcome,
    blackjack_settlement,
    roulette_colour,
    roulette_multiplier,
    roulette_settlement,
)


def hand(*ranks):
    return Hand([Card(r) for r in ranks])


def rbet(kind, stake=10, number=None, forfeit=None):
    return RouletteBet(1, "Alice", stake, forfeit, kind=kind, number=number)


def bjbet(stake=10, forfeit=None, **kw):
    return BlackjackBet(1, "Alice", stake, forfeit, **kw)


# ---------------------------
# Roulette
# ---------------------------
def test_red_pays_double():
    s = roulette_settlement(1, rbet("red"))
    assert s.outcome == Outcome.WIN
    assert s.credits == 20


def test_zero_pays_only_a_single_bet_on_zero():
    for kind in ROULETTE_KINDS:
        assert roulette_multiplier(0, rbet(kind)) == 0
    assert roulette_multiplier(0, rbet("single", number=0)) == 36
    assert roulette_multiplier(0, rbet("single", number=5)) == 0
    assert roulette_colour(0) == "green"


@pytest.mark.parametrize("n", range(1, 37))
def test_each_pair_of_opposites_pays_exactly_once(n):
    for a, b in (("red", "black"), ("even", "odd"), ("1-18", "19-36")):
        paid = [k for k in (a, b) if roulette_multiplier(n, rbet(k))]
        assert len(paid) == 1
    dozens = [k for k in ("1-12", "13-24", "25-36") if roulette_multiplier(n, rbet(k)) == 3]
    assert len(dozens) == 1


def test_single_number_pays_36x():
    assert roulette_settlement(17, rbet("single", number=17)).credits == 360
    assert roulette_settlement(18, rbet("single", number=17)).credits == 0


def test_colour_table():
    assert roulette_colour(1) == "red"
    assert roulette_colour(2) == "black"
    assert len(RED_NUMBERS) == 18


def test_forfeit_roulette_loss_applies_forfeit():
    s = roulette_settlement(2, rbet("red", stake=3, forfeit="collar"))
    assert s.outcome == Outcome.LOSS
    assert s.apply_forfeit
    assert s.credits == 0


# ---------------------------
# Blackjack
# ---------------------------
def test_natural_beats_dealer_bust():
    s = blackjack_settlement(hand("A", "K"), hand("9", "7", "9"), bjbet())
    assert s.outcome == Outcome.BLACKJACK
    assert s.credits == 25


def test_natural_against_dealer_natural_pushes():
    s = blackjack_settlement(hand("A", "K"), hand("A", "Q"), bjbet())
    assert s.outcome == Outcome.PUSH
    assert s.credits == 10


def test_dealer_natural_beats_twenty_one():
    s = blackjack_settlement(hand("7", "7", "7"), hand("A", "Q"), bjbet())
    assert s.outcome == Outcome.LOSS


def test_bust_loses_even_when_dealer_busts():
    s = blackjack_settlement(hand("K", "Q", "5"), hand("K", "6", "9"), bjbet())
    assert s.outcome == Outcome.LOSS


def test_higher_total_wins_double():
    s = blackjack_settlement(hand("K", "9"), hand("K", "7"), bjbet())
    assert s.outcome == Outcome.WIN
    assert s.credits == 20


def test_equal_total_pushes_credit_stake():
    s = blackjack_settlement(hand("K", "8"), hand("10", "8"), bjbet())
    assert s.outcome == Outcome.PUSH
    assert s.credits == 10


def test_forfeit_push_is_void():
    s = blackjack_settlement(hand("K", "Q"), hand("A", "9"), bjbet(stake=7, forfeit="legbinder"))
    assert s.outcome == Outcome.VOID
    assert s.credits == 0
    assert not s.apply_forfeit


def test_forfeit_natural_pays_one_and_a_half():
    s = blackjack_settlement(hand("A", "K"), hand("K", "8"), bjbet(stake=7, forfeit="legbinder"))
    assert s.outcome == Outcome.BLACKJACK
    assert s.credits == 10


def test_forfeit_win_pays_its_value():
    s = blackjack_settlement(hand("K", "9"), hand("K", "7"), bjbet(stake=5, forfeit="gag"))
    assert s.credits == 5


def test_forfeit_loss_applies_forfeit():
    s = blackjack_settlement(hand("K", "6"), hand("K", "7"), bjbet(stake=5, forfeit="gag"))
    assert s.apply_forfeit


def test_split_twenty_one_is_not_a_natural():
    s = blackjack_settlement(hand("A", "K"), hand("K", "8"), bjbet(split=True), split_player=True)
    assert s.outcome == Outcome.WIN
    assert s.credits == 20
