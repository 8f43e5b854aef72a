from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .bets import Bet, BlackjackBet, parse_blackjack_bet
from .cards import Hand, Shoe, decks_for_players
from .errors import InsufficientFundsError, InternalInconsistency, StateConflictError
from .interfaces import CommandHandler, Gambler
from .payouts import blackjack_settlement
from .tables import Phase, RoundState, TableGame

log = logging.getLogger(__name__)

DEALER_STANDS_ON = 17
MAX_HANDS = 4


@dataclass
class BlackjackRound(RoundState):
    dealer: Hand = field(default_factory=Hand)
    # index of the hand each player is currently acting on
    current: dict[int, int] = field(default_factory=dict)


class BlackjackTable(TableGame):
    name = "blackjack"
    deadline_label = "the deal"

    HELP = (
        "Blackjack: place a bet of chips or a forfeit, then hit, stand, double or split "
        "once the cards are dealt. Dealer stands on 17.\n"
        "Payouts: blackjack 2.5x, win 2x, push returns your stake. "
        "Forfeit bets win back their value in chips and a push is void."
    )
    EXAMPLES = "bet 10\nbet gag\nhit\nstand\ndouble\nsplit"

    def __init__(self, casino):
        super().__init__(casino)
        self.shoe = Shoe(rng=casino.rng)

    def new_round(self, round_id: int) -> BlackjackRound:
        return BlackjackRound(round_id)

    def parse_bet(self, gambler: Gambler, args: list[str], multiplier: int) -> BlackjackBet:
        return parse_blackjack_bet(gambler, args, multiplier)

    def betting_delay_ms(self) -> int:
        return self.timings.ms("deal_delay")

    def commands(self) -> dict[str, CommandHandler]:
        return {
            "hit": self.hit,
            "stand": self.stand,
            "double": self.double,
            "split": self.split,
        }

    # ----- display -----
    def hands_string(self, reveal: bool = False) -> str:
        state: BlackjackRound = self.state
        dealer = state.dealer
        if not dealer.cards:
            return ""
        if reveal:
            lines = [f"Dealer: {dealer} ({dealer.value()})"]
        else:
            lines = [f"Dealer: [{dealer.cards[0]}], [??]"]
        for bet in state.all_bets():
            if bet.hand is None:
                continue
            status = ""
            if bet.hand.is_bust():
                status = " bust"
            elif bet.standing:
                status = " standing"
            lines.append(f"{bet.display_name}: {bet.hand} ({bet.hand.value()}){status}")
        return "\n".join(lines)

    def describe_bets(self) -> list[str]:
        hands = self.hands_string()
        if hands:
            return hands.split("\n")
        return super().describe_bets()

    # ----- phases -----
    async def on_deadline(self, state: BlackjackRound) -> bool:
        if state.phase == Phase.BETTING:
            await self.deal(state)
            return True
        if state.phase == Phase.PLAYING:
            for bet in state.all_bets():
                bet.standing = True
            await self._announce("Time's up! All remaining hands stand.")
            await self.resolve(state)
            return True
        return False

    def draw(self):
        return self.shoe.draw()

    async def deal(self, state: BlackjackRound):
        state.advance(Phase.DEALING)
        self._cancel_timer()

        players = len(state.bets)
        if self.shoe.needs_reshuffle(players):
            decks = decks_for_players(players)
            self.shoe = Shoe.shuffled(decks, self.casino.rng)
            await self._announce(f"Shuffling a fresh shoe of {decks} deck(s).")

        state.dealer = Hand([self.draw(), self.draw()])
        for player_id, bets in state.bets.items():
            for bet in bets:
                bet.hand = Hand([self.draw(), self.draw()])
                if bet.hand.is_natural():
                    bet.standing = True
            self._advance_pointer(state, player_id)

        lines = ["Cards are dealt!", self.hands_string()]
        if state.dealer.is_natural():
            lines.append("Dealer has blackjack!")
            for bet in state.all_bets():
                bet.standing = True
            await self._announce("\n".join(lines))
            await self.resolve(state)
            return

        if all(bet.standing for bet in state.all_bets()):
            await self._announce("\n".join(lines))
            await self.resolve(state)
            return

        state.advance(Phase.PLAYING)
        state.deadline_ms = self.casino.clock() + self.timings.ms("auto_stand")
        self._start_timer(state.deadline_ms)
        lines.append("hit, stand, double or split?")
        await self._announce("\n".join(lines))

    async def resolve(self, state: BlackjackRound):
        state.advance(Phase.RESOLVING)
        self._cancel_timer()

        dealer = state.dealer
        if not dealer.is_natural():
            while dealer.value() < DEALER_STANDS_ON:
                dealer.add(self.draw())

        lines = [self.hands_string(reveal=True)]
        lines.extend(await self.settle_all(self._settle_bet))
        self._enter_cooldown(state)
        await self._announce("\n".join(lines))

    def _settle_bet(self, bet: BlackjackBet):
        if bet.hand is None:
            raise InternalInconsistency(f"Bet of {bet.display_name} has no hand")
        state: BlackjackRound = self.state
        split_player = len(state.bets.get(bet.player_id, [])) > 1
        return blackjack_settlement(bet.hand, state.dealer, bet, split_player=split_player)

    # ----- player actions -----
    def _advance_pointer(self, state: BlackjackRound, player_id: int):
        bets = state.bets.get(player_id, [])
        idx = state.current.get(player_id, 0)
        while idx < len(bets) and bets[idx].standing:
            idx += 1
        state.current[player_id] = idx

    def _current_bet(self, gambler: Gambler, action: str) -> tuple[BlackjackRound, BlackjackBet]:
        state: BlackjackRound = self.state
        if state.phase != Phase.PLAYING:
            raise StateConflictError(f"You can't {action} right now.")
        bets = state.bets.get(gambler.player_id)
        if not bets:
            raise StateConflictError("You don't have a bet in play.")
        idx = state.current.get(gambler.player_id, 0)
        if idx >= len(bets) or bets[idx].standing:
            raise StateConflictError("You're already standing.")
        bet = bets[idx]
        if bet.hand is None:
            raise InternalInconsistency("You don't have a hand to play.")
        return state, bet

    def _hand_label(self, state: BlackjackRound, bet: BlackjackBet) -> str:
        bets = state.bets.get(bet.player_id, [])
        if len(bets) > 1:
            return f"hand {_position(bets, bet) + 1}"
        return "hand"

    async def _finish_action(self, state: BlackjackRound, gambler: Gambler, text: str):
        self._advance_pointer(state, gambler.player_id)
        await self.casino.room.reply(gambler, text)
        if state.phase == Phase.PLAYING and all(b.standing for b in state.all_bets()):
            await self.resolve(state)

    async def hit(self, gambler: Gambler, args: list[str]):
        state, bet = self._current_bet(gambler, "hit")
        card = bet.hand.add(self.draw())
        value = bet.hand.value()
        text = f"You draw {card}. Your {self._hand_label(state, bet)}: {bet.hand} ({value})"
        if value > 21:
            bet.standing = True
            text += " Bust!"
        elif value > 20:
            bet.standing = True
        await self._finish_action(state, gambler, text)

    async def stand(self, gambler: Gambler, args: list[str]):
        state, bet = self._current_bet(gambler, "stand")
        bet.standing = True
        await self._finish_action(
            state, gambler, f"You stand on {bet.hand.value()} with your {self._hand_label(state, bet)}."
        )

    async def _take_extra_stake(self, gambler: Gambler, state: BlackjackRound, bet: BlackjackBet, action: str):
        stake = bet.stake
        if not await self.casino.store.debit(gambler.player_id, stake):
            raise InsufficientFundsError(f"You don't have enough chips to {action}.")
        # the hand may have been auto-stood while the ledger was busy
        if self.state is not state or state.phase != Phase.PLAYING or bet.standing:
            await self.casino.store.add_credits(gambler.player_id, stake)
            raise StateConflictError(f"You can't {action} right now.")
        return stake

    async def double(self, gambler: Gambler, args: list[str]):
        state, bet = self._current_bet(gambler, "double down")
        if bet.is_forfeit:
            raise StateConflictError("You can't double down on a forfeit bet.")
        if len(bet.hand) != 2:
            raise StateConflictError("You can only double down on your first two cards.")

        stake = await self._take_extra_stake(gambler, state, bet, "double down")
        bet.stake += stake
        bet.doubled = True
        card = bet.hand.add(self.draw())
        bet.standing = True
        await self._finish_action(
            state, gambler,
            f"You double down to {bet.stake} chips and draw {card}: {bet.hand} ({bet.hand.value()})",
        )

    async def split(self, gambler: Gambler, args: list[str]):
        state, bet = self._current_bet(gambler, "split")
        if bet.is_forfeit:
            raise StateConflictError("You can't split a forfeit bet.")
        if not bet.hand.can_split():
            raise StateConflictError("You can only split two cards of the same value.")
        bets = state.bets[gambler.player_id]
        if len(bets) >= MAX_HANDS:
            raise StateConflictError(f"You can't split into more than {MAX_HANDS} hands.")

        stake = await self._take_extra_stake(gambler, state, bet, "split")
        new_bet = BlackjackBet(
            gambler.player_id, gambler.name, stake,
            hand=Hand([bet.hand.cards.pop()]), split=True,
        )
        bet.split = True
        idx = _position(bets, bet)
        bets.insert(idx + 1, new_bet)
        for split_bet in (bet, new_bet):
            split_bet.hand.add(self.draw())
            if split_bet.hand.value() > 20:
                split_bet.standing = True

        extension = self.timings.ms("split_extension")
        state.deadline_ms = (state.deadline_ms or self.casino.clock()) + extension
        if self._timer is not None:
            self._timer.extend(extension)

        await self._finish_action(
            state, gambler,
            f"You split your hand.\nHand {idx + 1}: {bet.hand} ({bet.hand.value()})\n"
            f"Hand {idx + 2}: {new_bet.hand} ({new_bet.hand.value()})",
        )

    def bet_placed_text(self, bet: Bet) -> str:
        return f"{bet.display_name} bets {bet.stake_text()}."


def _position(bets: list[BlackjackBet], bet: BlackjackBet) -> int:
    # split hands can compare equal, so match by identity
    return next(i for i, b in enumerate(bets) if b is bet)
