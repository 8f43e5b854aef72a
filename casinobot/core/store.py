from __future__ import annotations
from dataclasses import dataclass

from .db import Database

@dataclass
class Player:
    player_id: int
    name: str = ""
    credits: int = 0
    score: int = 0
    cheat_strikes: int = 0
    last_free_credits_ms: int = 0

class CasinoStore:
    """Ledger gateway: player records keyed by player id, created on first read."""

    def __init__(self, db: Database):
        self.db = db

    async def ensure_player(self, player_id: int, name: str = ""):
        await self.db.execute(
            "INSERT OR IGNORE INTO casino_players(player_id,name) VALUES(?,?)",
            (int(player_id), name or "")
        )

    async def get_player(self, player_id: int) -> Player:
        await self.ensure_player(player_id)
        row = await self.db.fetchone(
            "SELECT player_id,name,credits,score,cheat_strikes,last_free_credits_ms "
            "FROM casino_players WHERE player_id=?",
            (int(player_id),)
        )
        return _row_to_player(row)

    async def save_player(self, player: Player):
        await self.db.execute(
            """
            INSERT INTO casino_players(player_id,name,credits,score,cheat_strikes,last_free_credits_ms)
            VALUES(?,?,?,?,?,?)
            ON CONFLICT(player_id) DO UPDATE SET
              name=excluded.name,
              credits=excluded.credits,
              score=excluded.score,
              cheat_strikes=excluded.cheat_strikes,
              last_free_credits_ms=excluded.last_free_credits_ms
            """,
            (
                int(player.player_id), player.name or "", int(player.credits), int(player.score),
                int(player.cheat_strikes), int(player.last_free_credits_ms),
            )
        )

    async def debit(self, player_id: int, amount: int) -> bool:
        """Take credits only if the balance covers them. Returns False when it doesn't."""
        await self.ensure_player(player_id)
        changed = await self.db.execute_count(
            "UPDATE casino_players SET credits = credits - ? WHERE player_id=? AND credits >= ?",
            (int(amount), int(player_id), int(amount))
        )
        return changed == 1

    async def add_credits(self, player_id: int, delta: int, score_delta: int = 0):
        await self.ensure_player(player_id)
        await self.db.execute(
            "UPDATE casino_players SET credits = credits + ?, score = score + ? WHERE player_id=?",
            (int(delta), int(score_delta), int(player_id))
        )

    async def touch(self, player_id: int, name: str, last_free_credits_ms: int | None = None):
        """Refresh the display name, and the stipend timestamp when given."""
        await self.ensure_player(player_id, name)
        if last_free_credits_ms is None:
            await self.db.execute(
                "UPDATE casino_players SET name=? WHERE player_id=?",
                (name or "", int(player_id))
            )
        else:
            await self.db.execute(
                "UPDATE casino_players SET name=?, last_free_credits_ms=? WHERE player_id=?",
                (name or "", int(last_free_credits_ms), int(player_id))
            )

    async def add_cheat_strike(self, player_id: int) -> int:
        await self.ensure_player(player_id)
        await self.db.execute(
            "UPDATE casino_players SET cheat_strikes = cheat_strikes + 1 WHERE player_id=?",
            (int(player_id),)
        )
        row = await self.db.fetchone(
            "SELECT cheat_strikes FROM casino_players WHERE player_id=?", (int(player_id),)
        )
        return int(row["cheat_strikes"])

    async def transfer(self, source_id: int, target_id: int, amount: int) -> bool:
        await self.ensure_player(target_id)
        async with self.db.transaction():
            if not await self.debit(source_id, amount):
                return False
            await self.add_credits(target_id, amount)
        return True

    async def top_players(self, limit: int = 10) -> list[Player]:
        rows = await self.db.fetchall(
            "SELECT player_id,name,credits,score,cheat_strikes,last_free_credits_ms "
            "FROM casino_players WHERE score > 0 ORDER BY score DESC LIMIT ?",
            (int(limit),)
        )
        return [_row_to_player(r) for r in rows]

def _row_to_player(row) -> Player:
    return Player(
        player_id=int(row["player_id"]),
        name=row["name"] or "",
        credits=int(row["credits"]),
        score=int(row["score"]),
        cheat_strikes=int(row["cheat_strikes"]),
        last_free_credits_ms=int(row["last_free_credits_ms"]),
    )
