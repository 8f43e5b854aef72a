"""
Table game base.

A table owns exactly one RoundState at a time. The phase of a round only
moves forward; when a round has fully cleared, a new RoundState with the
next round id replaces it. Timer callbacks carry the round id they were
scheduled for, so a callback for an older round does nothing.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import TYPE_CHECKING, Callable, Optional

from .bets import Bet, ensure_no_bet, validate_forfeit
from .errors import InsufficientFundsError, InternalInconsistency, StateConflictError
from .interfaces import CommandHandler, Gambler
from .payouts import Outcome, Settlement
from .timers import PhaseTimer
from .utility import remaining_time_string

if TYPE_CHECKING:
    from .casino import Casino

log = logging.getLogger(__name__)

COUNTDOWN_WARNING_MS = 10_000


class Phase(IntEnum):
    IDLE = 0
    BETTING = 1
    DEALING = 2
    SPINNING = 3
    PLAYING = 4
    RESOLVING = 5
    COOLDOWN = 6


@dataclass
class TableTimings:
    """Phase delays in seconds."""
    spin_delay: float = 60.0
    deal_delay: float = 30.0
    cancel_cutoff: float = 3.0
    auto_stand: float = 45.0
    split_extension: float = 15.0
    settle_delay: float = 12.0
    cooldown_delay: float = 10.0

    @classmethod
    def from_config(cls, cfg) -> "TableTimings":
        base = cls()
        if cfg is None:
            return base
        timings = cfg.section("casino.timings")
        return cls(**{
            name: timings.get_float(name, default=getattr(base, name))
            for name in base.__dataclass_fields__
        })

    def ms(self, name: str) -> int:
        return int(getattr(self, name) * 1000)


@dataclass
class RoundState:
    round_id: int
    phase: Phase = Phase.IDLE
    bets: dict[int, list[Bet]] = field(default_factory=dict)
    deadline_ms: Optional[int] = None
    warned: bool = False

    def advance(self, phase: Phase):
        if phase <= self.phase:
            raise InternalInconsistency(
                f"Round {self.round_id} cannot move from {self.phase.name} to {phase.name}"
            )
        self.phase = phase

    def all_bets(self) -> list[Bet]:
        return [bet for bets in self.bets.values() for bet in bets]


class TableGame:
    """Shared contract of every table: place, cancel, advance, describe, end."""

    name = "table"
    HELP = ""
    EXAMPLES = ""
    deadline_label = "the deadline"

    def __init__(self, casino: "Casino"):
        self.casino = casino
        self.timings: TableTimings = casino.timings
        self.state: RoundState = self.new_round(1)
        self.closing = False
        self._timer: PhaseTimer | None = None
        self._idle = asyncio.Event()
        self._idle.set()

    # ----- variant hooks -----
    def new_round(self, round_id: int) -> RoundState:
        return RoundState(round_id)

    def parse_bet(self, gambler: Gambler, args: list[str], multiplier: int) -> Bet:
        raise NotImplementedError

    def commands(self) -> dict[str, CommandHandler]:
        return {}

    def betting_delay_ms(self) -> int:
        raise NotImplementedError

    async def on_deadline(self, state: RoundState):
        raise NotImplementedError

    def describe_bets(self) -> list[str]:
        return [f"{b.display_name}: {b.stake_text()}" for b in self.state.all_bets()]

    # ----- placing -----
    def _check_open(self):
        phase = self.state.phase
        if phase == Phase.COOLDOWN:
            raise StateConflictError("The next game hasn't started yet.")
        if self.closing and phase == Phase.IDLE:
            raise StateConflictError("The table is closed.")
        if phase not in (Phase.IDLE, Phase.BETTING):
            raise StateConflictError("You can't bet right now.")
        if phase == Phase.BETTING and self.casino.clock() >= (self.state.deadline_ms or 0):
            raise StateConflictError("Betting has closed for this round.")

    async def place_bet(self, gambler: Gambler, args: list[str]) -> Bet:
        self._check_open()
        bet = self.parse_bet(gambler, args, self.casino.multiplier)
        state = self.state
        ensure_no_bet(state.bets, gambler.player_id)

        entry = bet.forfeit
        if entry is not None:
            await validate_forfeit(self.casino.avatar, gambler.player_id, entry)
            await self.casino.check_replay(gambler, entry)
        elif not await self.casino.store.debit(gambler.player_id, bet.stake):
            raise InsufficientFundsError()

        # the awaits above may have let another command or timer in
        try:
            if self.state is not state:
                raise StateConflictError("That round has already closed.")
            self._check_open()
            ensure_no_bet(state.bets, gambler.player_id)
        except StateConflictError:
            if not bet.is_forfeit:
                await self.casino.store.add_credits(gambler.player_id, bet.stake)
            raise

        state.bets[gambler.player_id] = [bet]
        if state.phase == Phase.IDLE:
            self._open_betting(state)
        await self._announce(self.bet_placed_text(bet))
        return bet

    def bet_placed_text(self, bet: Bet) -> str:
        return f"{bet.display_name} bets {bet.stake_text()}"

    def _open_betting(self, state: RoundState):
        state.advance(Phase.BETTING)
        state.deadline_ms = self.casino.clock() + self.betting_delay_ms()
        self._idle.clear()
        self._start_timer(state.deadline_ms, self._on_countdown)

    # ----- cancelling -----
    async def cancel_bet(self, gambler: Gambler):
        state = self.state
        bets = state.bets.get(gambler.player_id)
        if not bets:
            raise StateConflictError("You don't have a bet in play.")
        cutoff = (state.deadline_ms or 0) - self.timings.ms("cancel_cutoff")
        if state.phase != Phase.BETTING or self.casino.clock() >= cutoff:
            raise StateConflictError("You can't cancel your bet now.")

        # removed before the refund await so a repeated cancel finds nothing
        del state.bets[gambler.player_id]
        refund = sum(b.stake for b in bets if not b.is_forfeit)
        if refund:
            await self.casino.store.add_credits(gambler.player_id, refund)
        await self.casino.room.reply(gambler, "Bet cancelled.")

    # ----- phases -----
    async def advance_phase(self, round_id: int) -> bool:
        """Deadline of the current phase has passed. Returns False for stale or idle rounds."""
        state = self.state
        if round_id != state.round_id or state.phase == Phase.IDLE:
            return False
        if state.phase == Phase.COOLDOWN:
            self._enter_idle()
            return True
        if not state.bets and state.phase == Phase.BETTING:
            # everyone cancelled
            self._enter_idle()
            return True
        try:
            return await self.on_deadline(state)
        except Exception:
            log.exception("%s round %s failed in %s", self.name.title(), state.round_id, state.phase.name)
            if self.state is state and state.phase < Phase.COOLDOWN:
                await self._abort_round(state)
            return True

    async def _abort_round(self, state: RoundState):
        """Close a failed round. Credit stakes come back if nothing was settled yet."""
        if state.phase < Phase.RESOLVING:
            for bet in state.all_bets():
                if bet.is_forfeit:
                    continue
                try:
                    await self.casino.store.add_credits(bet.player_id, bet.stake)
                except Exception:
                    log.exception("Refund of %s chips to %s failed", bet.stake, bet.player_id)
        self._enter_cooldown(state)

    async def _on_countdown(self, round_id: int, left_ms: int):
        state = self.state
        if round_id != state.round_id or state.warned or left_ms > COUNTDOWN_WARNING_MS:
            return
        state.warned = True
        await self._announce(f"Ten seconds until {self.deadline_label}!")

    async def _announce(self, text: str):
        """Broadcast during a round. A failed send is logged and the round carries on."""
        try:
            await self.casino.room.broadcast(text)
        except Exception:
            log.exception("Broadcast failed in %s round %s", self.name, self.state.round_id)

    def _start_timer(self, deadline_ms: int, on_tick=None):
        self._cancel_timer()
        self._timer = self.casino.make_timer(self.state.round_id, deadline_ms, self.advance_phase, on_tick)

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def settle_all(self, settle: Callable[[Bet], Settlement]) -> list[str]:
        """Settle every bet in placement order. A broken bet is voided, the rest still pay."""
        lines = []
        for bet in self.state.all_bets():
            try:
                line = await self.casino.settle(bet, settle(bet))
            except InternalInconsistency as e:
                log.error("Voiding bet of %s (%s): %s", bet.display_name, bet.player_id, e)
                line = await self.casino.settle(bet, Settlement(Outcome.VOID))
            except Exception:
                log.exception("Settling the bet of %s (%s) failed, voiding it", bet.display_name, bet.player_id)
                line = await self.casino.settle(bet, Settlement(Outcome.VOID))
            if line:
                lines.append(line)
        return lines

    def _enter_cooldown(self, state: RoundState):
        state.advance(Phase.COOLDOWN)
        state.bets.clear()
        self.casino.end_round()
        state.deadline_ms = self.casino.clock() + self.timings.ms("cooldown_delay")
        self._start_timer(state.deadline_ms)

    def _enter_idle(self):
        self._cancel_timer()
        self.state = self.new_round(self.state.round_id + 1)
        self._idle.set()

    async def end_game(self):
        """Let the current round finish, then stop taking bets for good."""
        self.closing = True
        if self.state.phase != Phase.IDLE:
            await self._idle.wait()
        self._cancel_timer()

    def shutdown(self):
        self._cancel_timer()

    # ----- status -----
    def describe_round(self) -> str:
        state = self.state
        if state.phase == Phase.IDLE:
            return f"The {self.name} table is open. Place a bet to start the round."
        lines = [f"{self.name.title()} round {state.round_id}: {state.phase.name.lower()}"]
        if state.phase == Phase.BETTING and state.deadline_ms:
            lines.append(
                f"{remaining_time_string(state.deadline_ms, self.casino.clock())} until {self.deadline_label}."
            )
        bets = self.describe_bets()
        lines.extend(bets if bets else ["No bets yet."])
        return "\n".join(lines)
