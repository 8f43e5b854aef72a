"""
Casino coordinator.

Owns the single live table, the command registry, the bonus multiplier and
the locked-item registry. Everything that touches the ledger, the avatar or
the chat room outside of a table round lives here.
"""

from __future__ import annotations

import logging
import random
from typing import Callable, Optional

from .bets import Bet
from .blackjack import BlackjackTable
from .config import Config
from .errors import (
    CasinoError,
    CheatDetected,
    InsufficientFundsError,
    InternalInconsistency,
    PermissionDeniedError,
    StateConflictError,
    UserInputError,
)
from .forfeits import ForfeitEntry, forfeits_string, get_forfeit, restraints_remove_string
from .interfaces import Avatar, ChatRoom, CommandHandler, Gambler
from .payouts import Outcome, Settlement
from .roulette import RouletteTable
from .store import CasinoStore
from .tables import TableGame, TableTimings
from .timers import TimerFactory
from .utility import fmt, generate_password, now_ms, remaining_time_string

log = logging.getLogger(__name__)

HOUR_MS = 60 * 60 * 1000

DEFAULT_DAILY_CREDITS = 20
DEFAULT_FREE_CREDITS_HOURS = 20
DEFAULT_REMOVAL_MULTIPLIER = 4
DEFAULT_BONUS = 2
SCOREBOARD_SIZE = 10

FALLBACK_COLOUR = "#8a6a4a"
DUNCE_COLOUR = "#741010"

TABLES: dict[str, type[TableGame]] = {
    "roulette": RouletteTable,
    "blackjack": BlackjackTable,
}


class LockedItemRegistry:
    """player id -> {slot: expiry ms} for every timed forfeit the casino applied."""

    def __init__(self, clock: Callable[[], int] = now_ms):
        self.clock = clock
        self._locks: dict[int, dict[str, int]] = {}

    def record(self, player_id: int, slot: str, expires_ms: int):
        self._locks.setdefault(player_id, {})[slot] = expires_ms

    def is_locked(self, player_id: int, slot: str) -> bool:
        return self._locks.get(player_id, {}).get(slot, 0) > self.clock()

    def release(self, player_id: int, slot: str):
        locks = self._locks.get(player_id)
        if locks is not None:
            locks.pop(slot, None)
            if not locks:
                del self._locks[player_id]

    def active(self, player_id: int) -> dict[str, int]:
        """Unexpired locks of a player. Expired entries are dropped on the way."""
        locks = self._locks.get(player_id, {})
        now = self.clock()
        for slot in [s for s, expiry in locks.items() if expiry <= now]:
            self.release(player_id, slot)
        return dict(self._locks.get(player_id, {}))


class CommandRegistry:
    def __init__(self, room: ChatRoom):
        self.room = room
        self._handlers: dict[str, CommandHandler] = {}

    def register(self, name: str, handler: CommandHandler):
        self._handlers[name.lower()] = handler

    def unregister(self, name: str):
        self._handlers.pop(name.lower(), None)

    def names(self) -> list[str]:
        return sorted(self._handlers)

    async def dispatch(self, name: str, gambler: Gambler, args: list[str]) -> bool:
        """Run a command. Returns False when no handler is registered under that name."""
        handler = self._handlers.get(name.lower())
        if handler is None:
            return False
        try:
            await handler(gambler, args)
        except CheatDetected as e:
            log.info("Cheat attempt by %s (%s): %s", gambler.name, gambler.player_id, e)
        except CasinoError as e:
            await self.room.reply(gambler, str(e))
        except Exception:
            log.exception("Command %s from %s (%s) failed", name, gambler.name, gambler.player_id)
            await self.room.reply(gambler, "Something went wrong with that command.")
        return True


class Casino:
    def __init__(
        self,
        store: CasinoStore,
        room: ChatRoom,
        avatar: Avatar,
        cfg: Optional[Config] = None,
        *,
        timings: Optional[TableTimings] = None,
        clock: Callable[[], int] = now_ms,
        run_timers: bool = True,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.room = room
        self.avatar = avatar
        self.cfg = cfg or Config({})
        self.clock = clock
        self.rng = rng or random.Random()
        self.timings = timings or TableTimings.from_config(self.cfg)
        self.make_timer = TimerFactory(clock=clock, run=run_timers)

        settings = self.cfg.section("casino")
        self.daily_credits = settings.get_int("daily_credits", default=DEFAULT_DAILY_CREDITS)
        self.free_credits_ms = HOUR_MS * settings.get_int("free_credits_hours", default=DEFAULT_FREE_CREDITS_HOURS)
        self.removal_multiplier = settings.get_int("removal_multiplier", default=DEFAULT_REMOVAL_MULTIPLIER)

        self.multiplier = 1
        self.locked_items = LockedItemRegistry(clock)
        self.commands = CommandRegistry(room)
        self._switching = False

        for name, handler in {
            "bet": self.on_bet,
            "cancel": self.on_cancel,
            "bets": self.on_bets,
            "chips": self.on_chips,
            "give": self.on_give,
            "score": self.on_score,
            "scoreboard": self.on_scoreboard,
            "forfeits": self.on_forfeits,
            "checkforfeits": self.on_check_forfeits,
            "remove": self.on_remove,
            "help": self.on_help,
            "bonus": self.on_bonus,
            "game": self.on_game,
        }.items():
            self.commands.register(name, handler)

        start = str(settings.get("start_game", default="roulette")).lower()
        if start not in TABLES:
            log.warning("Unknown start game %r, falling back to roulette", start)
            start = "roulette"
        self.table: TableGame = TABLES[start](self)
        self._register_table_commands(self.table)

    # ----- table plumbing -----
    def _register_table_commands(self, table: TableGame):
        for name, handler in table.commands().items():
            self.commands.register(name, handler)

    def _unregister_table_commands(self, table: TableGame):
        for name in table.commands():
            self.commands.unregister(name)

    def end_round(self):
        self.multiplier = 1

    def shutdown(self):
        self.table.shutdown()

    async def switch_game(self, name: str):
        name = name.lower()
        table_cls = TABLES.get(name)
        if table_cls is None:
            raise UserInputError(f"Unknown game: {name}")
        if isinstance(self.table, table_cls):
            raise StateConflictError(f"We're already playing {name}.")
        if self._switching:
            raise StateConflictError("The game is already being switched.")

        self._switching = True
        try:
            await self.room.broadcast(f"After this round the game will switch to {name}.")
            old = self.table
            await old.end_game()
            self._unregister_table_commands(old)
            self.table = table_cls(self)
            self._register_table_commands(self.table)
        finally:
            self._switching = False
        log.info("Switched game to %s", name)
        await self.room.broadcast(f"The game has switched to {name}, please place your bets!")

    # ----- players -----
    async def on_player_seen(self, gambler: Gambler) -> bool:
        """Grant the daily stipend when it is due. Returns True if credits were granted."""
        player = await self.store.get_player(gambler.player_id)
        now = self.clock()
        next_free = player.last_free_credits_ms + self.free_credits_ms
        if next_free <= now:
            await self.store.add_credits(gambler.player_id, self.daily_credits)
            await self.store.touch(gambler.player_id, gambler.name, now)
            await self.room.whisper(
                gambler.player_id,
                f"Welcome to the Casino, {gambler}! Here are your {self.daily_credits} free chips "
                f"for today. Say {self._prefix()}help for how to play. Good luck!",
            )
            return True

        await self.store.touch(gambler.player_id, gambler.name)
        await self.room.whisper(
            gambler.player_id,
            f"Welcome back, {gambler}. {remaining_time_string(next_free, now)} until your next free chips.",
        )
        return False

    def _prefix(self) -> str:
        return str(self.cfg.get("casino", "prefix", default="!"))

    def _find(self, query: str) -> Gambler:
        target = self.room.find_player(query)
        if target is None:
            raise UserInputError("I can't find that person.")
        return target

    # ----- anti-cheat -----
    async def check_replay(self, gambler: Gambler, entry: ForfeitEntry):
        """A player may not stake a forfeit they are still locked into from an earlier loss."""
        slot = entry.single_item
        if slot is None or not self.locked_items.is_locked(gambler.player_id, slot):
            return
        log.warning("Cheater detected: %s (%s) bet %s while locked", gambler.name, gambler.player_id, entry.key)
        strikes = await self.store.add_cheat_strike(gambler.player_id)
        await self.cheat_punishment(gambler, strikes)
        raise CheatDetected(f"{gambler.name} tried to bet {entry.key} while still wearing it")

    async def cheat_punishment(self, gambler: Gambler, strikes: int):
        if strikes == 1:
            await self.room.whisper(
                gambler.player_id,
                f"Cheating in the casino, hmm? Check your active forfeits with {self._prefix()}checkforfeits.",
            )
        elif strikes == 2:
            await self.room.whisper(
                gambler.player_id,
                f"Still trying to cheat, {gambler}? Check your active forfeits with {self._prefix()}checkforfeits.",
            )
        else:
            await self.avatar.equip(gambler.player_id, "Hat", "Dunce Hat")
            await self._set_colours(gambler.player_id, "Hat", [[DUNCE_COLOUR]])
            await self.avatar.equip(gambler.player_id, "ItemMisc", "Cheater")

    # ----- settlement -----
    async def settle(self, bet: Bet, settlement: Settlement) -> str:
        """Apply one settlement to the ledger or the avatar. Returns the announcement line."""
        name = bet.display_name
        outcome = settlement.outcome

        if settlement.apply_forfeit:
            await self.apply_forfeit(bet)
            return f"{name} loses and gets {bet.forfeit.name}!"

        if outcome == Outcome.VOID:
            return f"{name}'s bet is void."

        if outcome == Outcome.LOSS:
            if not bet.is_forfeit:
                await self.store.add_credits(bet.player_id, 0, -bet.stake)
            return f"{name} loses {bet.stake_text()}."

        won = settlement.credits
        net = won if bet.is_forfeit else won - bet.stake
        await self.store.add_credits(bet.player_id, won, net)
        if outcome == Outcome.PUSH:
            return f"{name} pushes and gets {fmt(won)} chips back."
        if outcome == Outcome.BLACKJACK:
            return f"Blackjack! {name} wins {fmt(won)} chips!"
        return f"{name} wins {fmt(won)} chips!"

    async def apply_forfeit(self, bet: Bet):
        entry = bet.forfeit
        if entry is None:
            raise InternalInconsistency(f"Unknown forfeit {bet.forfeit_key!r}")
        player_id = bet.player_id
        slot = entry.single_item

        if slot and entry.lock_ms:
            self.locked_items.record(player_id, slot, self.clock() + entry.lock_ms)

        if entry.custom_apply is not None:
            await entry.custom_apply(self.avatar, player_id)
            if slot and entry.colours:
                await self._set_colours(player_id, slot, [list(entry.colours), [entry.colours[0]]])
            return
        if slot is None:
            await self.avatar.equip_bundle(player_id, list(entry.items), f"Casino {entry.name}")
            return

        hair = await self.avatar.hair_colour(player_id) or FALLBACK_COLOUR
        await self.avatar.equip(player_id, slot, f"Casino {entry.name}")
        candidates = [[hair]]
        if entry.colour_layers:
            layers = [hair if i in entry.colour_layers else "Default" for i in range(max(entry.colour_layers) + 1)]
            candidates.insert(0, layers)
        await self._set_colours(player_id, slot, candidates)

        if entry.lock_ms:
            log.info("Locking %s on %s for %sms", slot, player_id, entry.lock_ms)
            await self.avatar.lock(player_id, slot, self.clock() + entry.lock_ms, generate_password())

    async def _set_colours(self, player_id: int, slot: str, candidates: list[list[str]]):
        """Try each colour set in turn; a cosmetic failure never aborts a forfeit."""
        for colours in candidates:
            try:
                await self.avatar.set_colour(player_id, slot, colours)
                return
            except Exception:
                log.warning("Failed to colour %s on %s with %s", slot, player_id, colours, exc_info=True)

    # ----- commands -----
    async def on_bet(self, gambler: Gambler, args: list[str]):
        await self.table.place_bet(gambler, args)

    async def on_cancel(self, gambler: Gambler, args: list[str]):
        await self.table.cancel_bet(gambler)

    async def on_bets(self, gambler: Gambler, args: list[str]):
        await self.room.reply(gambler, self.table.describe_round())

    async def on_help(self, gambler: Gambler, args: list[str]):
        p = self._prefix()
        text = (
            f"{self.table.HELP}\n\nExamples:\n{self.table.EXAMPLES}\n\n"
            f"Other commands: {p}cancel, {p}bets, {p}chips, {p}give <player> <amount>, {p}score, "
            f"{p}scoreboard, {p}forfeits, {p}checkforfeits, {p}remove <forfeit>"
        )
        await self.room.reply(gambler, text)

    async def on_forfeits(self, gambler: Gambler, args: list[str]):
        await self.room.reply(
            gambler,
            "Forfeit Table\nRestraints are for 20 minutes, unless otherwise stated.\n\n"
            f"{forfeits_string()}\n\nBuy your way out with {self._prefix()}remove:\n"
            f"{restraints_remove_string(self.removal_multiplier)}",
        )

    async def on_chips(self, gambler: Gambler, args: list[str]):
        if args:
            if not gambler.is_admin:
                raise PermissionDeniedError("Only admins can see other people's balances.")
            target = self._find(args[0])
            player = await self.store.get_player(target.player_id)
            await self.room.reply(gambler, f"{target} has {fmt(player.credits)} chips.")
            return
        player = await self.store.get_player(gambler.player_id)
        await self.room.reply(gambler, f"{gambler}, you have {fmt(player.credits)} chips.")

    async def on_score(self, gambler: Gambler, args: list[str]):
        if args:
            if not gambler.is_admin:
                raise PermissionDeniedError("Only admins can see other people's scores.")
            target = self._find(args[0])
            player = await self.store.get_player(target.player_id)
            await self.room.reply(gambler, f"{target} has a score of {fmt(player.score)}.")
            return
        player = await self.store.get_player(gambler.player_id)
        await self.room.reply(gambler, f"{gambler}, you have a score of {fmt(player.score)}.")

    async def on_scoreboard(self, gambler: Gambler, args: list[str]):
        players = await self.store.top_players(SCOREBOARD_SIZE)
        if not players:
            await self.room.reply(gambler, "Nobody has won anything yet.")
            return
        lines = [f"{i}. {p.name or p.player_id}: {fmt(p.score)} chips won" for i, p in enumerate(players, start=1)]
        await self.room.reply(gambler, "Scoreboard\n" + "\n".join(lines))

    async def on_give(self, gambler: Gambler, args: list[str]):
        if len(args) < 2:
            raise UserInputError(f"Usage: {self._prefix()}give <player> <amount>")
        try:
            amount = int(args[1])
        except ValueError:
            raise UserInputError("Invalid amount.")
        if amount < 1:
            raise UserInputError("Invalid amount.")
        target = self._find(args[0])
        if target.player_id == gambler.player_id:
            raise UserInputError("You can't give chips to yourself.")
        if not await self.store.transfer(gambler.player_id, target.player_id, amount):
            raise InsufficientFundsError()
        await self.room.broadcast(f"{gambler} gave {fmt(amount)} chips to {target}")

    async def on_check_forfeits(self, gambler: Gambler, args: list[str]):
        now = self.clock()
        lines = [
            f"{slot}: {remaining_time_string(expiry, now)} remaining"
            for slot, expiry in self.locked_items.active(gambler.player_id).items()
        ]
        await self.room.reply(gambler, "\n".join(lines) or "You have no active forfeits.")

    async def on_remove(self, gambler: Gambler, args: list[str]):
        if not args:
            raise UserInputError(f"Usage: {self._prefix()}remove <restraint>")
        entry = get_forfeit(args[0])
        if entry is None:
            raise UserInputError("Unknown restraint.")
        slot = entry.single_item
        if slot is None or entry.custom_apply is not None:
            raise UserInputError(f"You can't buy your way out of {entry.name}.")

        player_id = gambler.player_id
        if not await self.avatar.is_wearing(player_id, slot):
            raise StateConflictError(f"It doesn't look like you're wearing {entry.name}.")
        if not await self.avatar.locked_by_casino(player_id, slot):
            raise PermissionDeniedError("You can only buy yourself out of my restraints, not others.")

        cost = entry.value * self.removal_multiplier
        if not await self.store.debit(player_id, cost):
            raise InsufficientFundsError()
        await self.avatar.remove(player_id, slot)
        self.locked_items.release(player_id, slot)
        await self.room.broadcast(
            f"{gambler} paid to remove their {entry.name}. Enjoy your freedom, while it lasts."
        )

    async def on_bonus(self, gambler: Gambler, args: list[str]):
        if not gambler.is_admin:
            raise PermissionDeniedError("Sorry, you need to be an admin")
        if self.table.state.all_bets():
            raise StateConflictError("There are already bets placed.")
        multiplier = DEFAULT_BONUS
        if args:
            try:
                multiplier = int(args[0])
            except ValueError:
                raise UserInputError("Invalid multiplier.")
            if multiplier < 1:
                raise UserInputError("Invalid multiplier.")
        self.multiplier = multiplier
        await self.room.broadcast(
            f"⭐️⭐️⭐️ Bonus round! ⭐️⭐️⭐️ All forfeit bets are worth {multiplier}x their normal value!"
        )

    async def on_game(self, gambler: Gambler, args: list[str]):
        if not gambler.is_admin:
            raise PermissionDeniedError("Sorry, you need to be an admin")
        if not args:
            raise UserInputError(f"Usage: {self._prefix()}game <{'|'.join(TABLES)}>")
        await self.switch_game(args[0])
        await self.room.reply(gambler, f"Switched to {args[0].lower()}.")
