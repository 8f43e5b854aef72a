import asyncio

import pytest

from casinobot.core.bets import Bet
from casinobot.core.blackjack import BlackjackTable
from casinobot.core.casino import LockedItemRegistry
from casinobot.core.config import Config
from casinobot.core.errors import InternalInconsistency, PermissionDeniedError, StateConflictError
from casinobot.core.payouts import Outcome, Settlement
from casinobot.core.roulette import RouletteTable
from casinobot.core.tables import Phase, RoundState, TableTimings

HOUR_MS = 60 * 60 * 1000


async def advance(casino):
    return await casino.table.advance_phase(casino.table.state.round_id)


async def test_daily_stipend_every_twenty_hours(casino, store, room, clock, alice):
    assert await casino.on_player_seen(alice)
    assert (await store.get_player(alice.player_id)).credits == 20
    assert "free chips" in room.whispers[-1][1]

    clock.advance(19 * HOUR_MS)
    assert not await casino.on_player_seen(alice)
    assert (await store.get_player(alice.player_id)).credits == 20
    assert "1h 0m until your next free chips" in room.whispers[-1][1]

    clock.advance(HOUR_MS)
    assert await casino.on_player_seen(alice)
    player = await store.get_player(alice.player_id)
    assert player.credits == 40
    assert player.name == "Alice"


async def test_chips_and_score_commands(casino, store, room, alice, bob, boss):
    await store.add_credits(alice.player_id, 42, 7)
    await casino.commands.dispatch("chips", alice, [])
    assert room.last_reply(alice.player_id) == "Alice, you have 42 chips."

    await casino.commands.dispatch("chips", bob, ["alice"])
    assert room.last_reply(bob.player_id) == "Only admins can see other people's balances."

    await casino.commands.dispatch("score", boss, ["alice"])
    assert room.last_reply(boss.player_id) == "Alice has a score of 7."

    await casino.commands.dispatch("chips", boss, ["nobody"])
    assert room.last_reply(boss.player_id) == "I can't find that person."


async def test_give_moves_chips(casino, store, room, alice, bob):
    await store.add_credits(alice.player_id, 50)
    await casino.commands.dispatch("give", alice, ["bob", "20"])
    assert (await store.get_player(alice.player_id)).credits == 30
    assert (await store.get_player(bob.player_id)).credits == 20
    assert room.broadcasts[-1] == "Alice gave 20 chips to Bob"


@pytest.mark.parametrize("args, message", [
    (["bob"], "Usage: !give <player> <amount>"),
    (["bob", "0"], "Invalid amount."),
    (["bob", "many"], "Invalid amount."),
    (["carol", "5"], "I can't find that person."),
    (["alice", "5"], "You can't give chips to yourself."),
    (["bob", "500"], "You don't have enough chips."),
])
async def test_give_rejections(casino, store, room, alice, bob, args, message):
    await store.add_credits(alice.player_id, 50)
    await casino.commands.dispatch("give", alice, args)
    assert room.last_reply(alice.player_id) == message
    assert (await store.get_player(alice.player_id)).credits == 50
    assert (await store.get_player(bob.player_id)).credits == 0


async def test_bonus_scales_forfeits_for_one_round(casino, store, room, alice, boss):
    await casino.commands.dispatch("bonus", alice, [])
    assert room.last_reply(alice.player_id) == "Sorry, you need to be an admin"

    await casino.commands.dispatch("bonus", boss, ["3"])
    assert casino.multiplier == 3
    assert "3x" in room.broadcasts[-1]

    casino.table.spin_wheel = lambda: 1
    bet = await casino.table.place_bet(alice, ["red", "boots"])
    assert bet.stake == 15

    await casino.commands.dispatch("bonus", boss, [])
    assert room.last_reply(boss.player_id) == "There are already bets placed."

    await advance(casino)
    assert casino.multiplier == 1
    assert (await store.get_player(alice.player_id)).credits == 30


async def test_bonus_rejects_bad_multiplier(casino, room, boss):
    await casino.commands.dispatch("bonus", boss, ["0"])
    assert room.last_reply(boss.player_id) == "Invalid multiplier."
    assert casino.multiplier == 1


async def test_switch_game_when_idle(casino, room, boss):
    await casino.commands.dispatch("game", boss, ["blackjack"])
    assert isinstance(casino.table, BlackjackTable)
    assert "hit" in casino.commands.names()
    assert room.last_reply(boss.player_id) == "Switched to blackjack."

    await casino.commands.dispatch("game", boss, ["blackjack"])
    assert room.last_reply(boss.player_id) == "We're already playing blackjack."

    await casino.switch_game("roulette")
    assert isinstance(casino.table, RouletteTable)
    assert "hit" not in casino.commands.names()


async def test_switch_game_waits_for_the_round(casino, store, alice):
    await store.add_credits(alice.player_id, 100)
    casino.table.spin_wheel = lambda: 1
    await casino.table.place_bet(alice, ["red", "10"])
    old = casino.table

    task = asyncio.create_task(casino.switch_game("blackjack"))
    for _ in range(5):
        await asyncio.sleep(0)
    assert not task.done()
    assert casino.table is old

    await advance(casino)
    assert old.state.phase == Phase.COOLDOWN
    await advance(casino)
    await asyncio.wait_for(task, timeout=1)

    assert isinstance(casino.table, BlackjackTable)
    assert (await store.get_player(alice.player_id)).credits == 110
    with pytest.raises(StateConflictError):
        await old.place_bet(alice, ["red", "10"])


async def test_unknown_game(casino, room, boss):
    await casino.commands.dispatch("game", boss, ["poker"])
    assert room.last_reply(boss.player_id) == "Unknown game: poker"


async def test_remove_a_casino_forfeit(casino, store, avatar, room, alice, clock):
    await store.add_credits(alice.player_id, 100)
    avatar.worn[alice.player_id] = {"ItemBoots"}
    avatar.locks[(alice.player_id, "ItemBoots")] = (clock.now + 60_000, "PASSWORD")
    casino.locked_items.record(alice.player_id, "ItemBoots", clock.now + 60_000)

    await casino.commands.dispatch("remove", alice, ["boots"])

    assert (await store.get_player(alice.player_id)).credits == 80
    assert "ItemBoots" not in avatar.worn[alice.player_id]
    assert not casino.locked_items.is_locked(alice.player_id, "ItemBoots")
    assert "paid to remove their ballet boots" in room.broadcasts[-1]


async def test_remove_rejections(casino, store, avatar, room, alice):
    await store.add_credits(alice.player_id, 100)
    await casino.commands.dispatch("remove", alice, ["boots"])
    assert room.last_reply(alice.player_id) == "It doesn't look like you're wearing ballet boots."

    avatar.worn[alice.player_id] = {"ItemBoots"}
    await casino.commands.dispatch("remove", alice, ["boots"])
    assert room.last_reply(alice.player_id) == "You can only buy yourself out of my restraints, not others."

    await casino.commands.dispatch("remove", alice, ["spaghetti"])
    assert room.last_reply(alice.player_id) == "Unknown restraint."
    assert (await store.get_player(alice.player_id)).credits == 100


async def test_check_forfeits_lists_unexpired_locks(casino, room, alice, clock):
    await casino.commands.dispatch("checkforfeits", alice, [])
    assert room.last_reply(alice.player_id) == "You have no active forfeits."

    casino.locked_items.record(alice.player_id, "ItemNeck", clock.now + 5 * 60_000)
    casino.locked_items.record(alice.player_id, "ItemHead", clock.now - 1)
    await casino.commands.dispatch("checkforfeits", alice, [])
    assert room.last_reply(alice.player_id) == "ItemNeck: 5m 0s remaining"


async def test_scoreboard(casino, store, room, alice, bob):
    await casino.commands.dispatch("scoreboard", alice, [])
    assert room.last_reply(alice.player_id) == "Nobody has won anything yet."

    await store.touch(alice.player_id, "Alice")
    await store.touch(bob.player_id, "Bob")
    await store.add_credits(alice.player_id, 0, 5)
    await store.add_credits(bob.player_id, 0, 50)
    await casino.commands.dispatch("scoreboard", alice, [])
    assert room.last_reply(alice.player_id) == "Scoreboard\n1. Bob: 50 chips won\n2. Alice: 5 chips won"


async def test_help_and_forfeit_table(casino, room, alice):
    await casino.commands.dispatch("help", alice, [])
    assert "Roulette" in room.last_reply(alice.player_id)
    await casino.commands.dispatch("forfeits", alice, [])
    text = room.last_reply(alice.player_id)
    assert "boots: ballet boots (5 chips)" in text
    assert "belt: a chastity belt (8 chips), locked 60 minutes" in text
    assert "boots: 20 chips" in text


async def test_dispatch_reports_unknown_and_unexpected(casino, room, alice):
    assert not await casino.commands.dispatch("dance", alice, [])

    async def broken(gambler, args):
        raise RuntimeError("boom")

    casino.commands.register("broken", broken)
    assert await casino.commands.dispatch("BROKEN", alice, [])
    assert room.last_reply(alice.player_id) == "Something went wrong with that command."


async def test_colour_failure_falls_back_to_plain_colour(casino, avatar, alice):
    avatar.fail_layered_colour = True
    bet = Bet(alice.player_id, "Alice", 3, "collar")
    await casino.apply_forfeit(bet)
    assert "ItemNeck" in avatar.worn[alice.player_id]
    assert avatar.colours == [(alice.player_id, "ItemNeck", ["#8a6a4a"])]
    assert (alice.player_id, "ItemNeck") in avatar.locks


async def test_multi_item_forfeit_is_a_bundle(casino, avatar, alice):
    await casino.apply_forfeit(Bet(alice.player_id, "Alice", 25, "mummy"))
    assert avatar.worn[alice.player_id] == {"ItemArms", "ItemLegs", "ItemFeet", "ItemHead"}
    assert not avatar.locks


async def test_inconsistent_bet_is_voided_and_the_rest_settle(casino, store, alice, bob):
    await store.add_credits(bob.player_id, 100)
    table = casino.table
    await table.place_bet(bob, ["red", "10"])
    table.state.bets[alice.player_id] = [Bet(alice.player_id, "Alice", 5, "no-such-forfeit")]

    def settle(bet):
        if bet.player_id == alice.player_id:
            raise InternalInconsistency("broken bet")
        return Settlement(Outcome.WIN, bet.stake * 2)

    lines = await table.settle_all(settle)
    assert lines == ["Bob wins 20 chips!", "Alice's bet is void."]
    assert (await store.get_player(bob.player_id)).credits == 110
    assert (await store.get_player(alice.player_id)).credits == 0


def test_locked_item_registry_prunes(clock):
    reg = LockedItemRegistry(clock)
    reg.record(1, "ItemArms", clock.now + 1000)
    reg.record(1, "ItemLegs", clock.now + 5000)
    assert reg.is_locked(1, "ItemArms")
    clock.advance(2000)
    assert not reg.is_locked(1, "ItemArms")
    assert reg.active(1) == {"ItemLegs": clock.now + 3000}
    reg.release(1, "ItemLegs")
    assert reg.active(1) == {}


def test_timings_from_config():
    cfg = Config({"casino": {"timings": {"spin_delay": 5, "cooldown_delay": "2.5"}}})
    timings = TableTimings.from_config(cfg)
    assert timings.spin_delay == 5.0
    assert timings.cooldown_delay == 2.5
    assert timings.deal_delay == 30.0
    assert timings.ms("cooldown_delay") == 2500


def test_round_phase_only_moves_forward():
    state = RoundState(7)
    state.advance(Phase.BETTING)
    with pytest.raises(InternalInconsistency):
        state.advance(Phase.IDLE)
    with pytest.raises(InternalInconsistency):
        state.advance(Phase.BETTING)


async def test_bet_placed_without_permission_is_not_recorded(casino, avatar, alice):
    avatar.no_interaction.add(alice.player_id)
    with pytest.raises(PermissionDeniedError):
        await casino.table.place_bet(alice, ["red", "gag"])
    assert not casino.table.state.bets
