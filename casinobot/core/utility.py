"""
Utility functions.
Time, formatting and small random helpers shared by the casino.
"""

from __future__ import annotations
import secrets
import string
import time

PASSWORD_ALPHABET = string.ascii_uppercase + string.digits

# ============================================================================
# TIME
# ============================================================================

def now_ms() -> int:
    return int(time.time() * 1000)

def remaining_time_string(until_ms: int, now: int | None = None) -> str:
    """Human countdown like '1h 5m' or '42s' until a wall-clock ms timestamp."""
    if now is None:
        now = now_ms()
    left = max(0, until_ms - now) // 1000
    hours, rem = divmod(left, 3600)
    minutes, seconds = divmod(rem, 60)
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"

# ============================================================================
# FORMATTING
# ============================================================================

def fmt(n: int) -> str:
    """Format number with thousand separators."""
    return f"{n:,}"

# ============================================================================
# RANDOM
# ============================================================================

def generate_password(length: int = 8) -> str:
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))
