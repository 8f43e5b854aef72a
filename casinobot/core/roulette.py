from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from .bets import Bet, RouletteBet, parse_roulette_bet
from .interfaces import Gambler
from .payouts import roulette_colour, roulette_settlement
from .tables import Phase, RoundState, TableGame

log = logging.getLogger(__name__)


@dataclass
class RouletteRound(RoundState):
    winning_number: Optional[int] = None


class RouletteTable(TableGame):
    name = "roulette"
    deadline_label = "the spin"

    HELP = (
        "Roulette: bet on red, black, even, odd, 1-18, 19-36, 1-12, 13-24, 25-36 "
        "or a single number from 0 to 36. Stake chips or a forfeit.\n"
        "Payouts: single number 36x, dozens 3x, everything else 2x. Zero only pays a single bet on 0."
    )
    EXAMPLES = "bet red 10\nbet 17 5\nbet 1-12 boots"

    def new_round(self, round_id: int) -> RouletteRound:
        return RouletteRound(round_id)

    def parse_bet(self, gambler: Gambler, args: list[str], multiplier: int) -> RouletteBet:
        return parse_roulette_bet(gambler, args, multiplier)

    def betting_delay_ms(self) -> int:
        return self.timings.ms("spin_delay")

    def bet_placed_text(self, bet: Bet) -> str:
        return f"{bet.display_name} bets {bet.stake_text()} on {bet.target_text()}."

    def describe_bets(self) -> list[str]:
        return [f"{b.display_name}: {b.stake_text()} on {b.target_text()}" for b in self.state.all_bets()]

    def spin_wheel(self) -> int:
        return self.casino.rng.randint(0, 36)

    async def on_deadline(self, state: RouletteRound) -> bool:
        if state.phase != Phase.BETTING:
            return False
        state.advance(Phase.SPINNING)
        self._cancel_timer()
        state.winning_number = self.spin_wheel()
        log.info("Roulette round %s: wheel landed on %s", state.round_id, state.winning_number)
        await self._announce("No more bets! The wheel is spinning...")

        delay = self.timings.settle_delay
        if delay > 0:
            await asyncio.sleep(delay)
        await self.resolve(state)
        return True

    async def resolve(self, state: RouletteRound):
        state.advance(Phase.RESOLVING)
        number = state.winning_number
        lines = [f"The ball lands on {roulette_colour(number)} {number}!"]
        lines.extend(await self.settle_all(lambda bet: roulette_settlement(number, bet)))
        self._enter_cooldown(state)
        await self._announce("\n".join(lines))
