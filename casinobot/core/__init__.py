# Core package - centralized exports
# The casino engine is organized into modules:
# - cards.py / bets.py / payouts.py: pure game rules
# - tables.py / roulette.py / blackjack.py: round state machines
# - casino.py: coordinator, command registry, locked-item registry
# - store.py / db.py: ledger persistence
# - interfaces.py: ChatRoom and Avatar capabilities the transport provides

# Configuration
from .config import Config

# Database
from .db import Database
from .store import CasinoStore, Player

# Utility
from .utility import now_ms, remaining_time_string, fmt, generate_password

# Errors
from .errors import (
    CasinoError, UserInputError, StateConflictError, InsufficientFundsError,
    PermissionDeniedError, CheatDetected, InternalInconsistency,
)

# Game rules
from .cards import Card, Hand, Shoe, hand_value, create_deck, decks_for_players
from .forfeits import ForfeitEntry, FORFEITS, get_forfeit, forfeits_string, restraints_remove_string
from .bets import Bet, RouletteBet, BlackjackBet, parse_stake, parse_roulette_bet, parse_blackjack_bet
from .payouts import Outcome, Settlement, roulette_settlement, blackjack_settlement

# Tables
from .interfaces import Gambler, ChatRoom, Avatar
from .timers import PhaseTimer, TimerFactory
from .tables import Phase, RoundState, TableTimings, TableGame
from .roulette import RouletteTable
from .blackjack import BlackjackTable
from .casino import Casino, CommandRegistry, LockedItemRegistry, TABLES

__all__ = [
    # Configuration
    'Config',
    # Database
    'Database', 'CasinoStore', 'Player',
    # Utility
    'now_ms', 'remaining_time_string', 'fmt', 'generate_password',
    # Errors
    'CasinoError', 'UserInputError', 'StateConflictError', 'InsufficientFundsError',
    'PermissionDeniedError', 'CheatDetected', 'InternalInconsistency',
    # Game rules
    'Card', 'Hand', 'Shoe', 'hand_value', 'create_deck', 'decks_for_players',
    'ForfeitEntry', 'FORFEITS', 'get_forfeit', 'forfeits_string', 'restraints_remove_string',
    'Bet', 'RouletteBet', 'BlackjackBet', 'parse_stake', 'parse_roulette_bet', 'parse_blackjack_bet',
    'Outcome', 'Settlement', 'roulette_settlement', 'blackjack_settlement',
    # Tables
    'Gambler', 'ChatRoom', 'Avatar', 'PhaseTimer', 'TimerFactory',
    'Phase', 'RoundState', 'TableTimings', 'TableGame', 'RouletteTable', 'BlackjackTable',
    'Casino', 'CommandRegistry', 'LockedItemRegistry', 'TABLES',
]
