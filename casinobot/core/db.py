from __future__ import annotations
import traceback
import aiosqlite
from contextlib import asynccontextmanager

class Database:
    def __init__(self, path: str):
        self.path = path
        self.conn: aiosqlite.Connection | None = None
        self._in_tx: bool = False

    async def connect(self):
        self.conn = await aiosqlite.connect(self.path)
        self.conn.row_factory = aiosqlite.Row
        # WAL is ignored for :memory: databases
        await self.conn.execute("PRAGMA journal_mode=WAL;")
        await self.conn.execute("PRAGMA foreign_keys=ON;")
        await self.conn.execute("PRAGMA synchronous=NORMAL;")
        await self.conn.commit()

    async def close(self):
        if self.conn:
            await self.conn.close()
            self.conn = None

    async def execute(self, sql: str, params=(), commit: bool = True):
        """Execute SQL statement. If commit=False, don't commit (for use in transactions)."""
        assert self.conn
        await self.conn.execute(sql, params)
        if commit and not self._in_tx:
            await self.conn.commit()

    async def execute_count(self, sql: str, params=()) -> int:
        """Execute SQL statement and return the number of rows it changed."""
        assert self.conn
        cur = await self.conn.execute(sql, params)
        count = cur.rowcount
        await cur.close()
        if not self._in_tx:
            await self.conn.commit()
        return count

    @asynccontextmanager
    async def transaction(self):
        """Transaction context manager: BEGIN on enter, COMMIT on success, ROLLBACK on exception."""
        assert self.conn
        self._in_tx = True
        try:
            await self.conn.execute("BEGIN")
            yield self
            await self.conn.commit()
        except Exception:
            await self.conn.rollback()
            raise
        finally:
            self._in_tx = False

    async def fetchone(self, sql: str, params=()):
        assert self.conn
        cur = await self.conn.execute(sql, params)
        row = await cur.fetchone()
        await cur.close()
        return row

    async def fetchall(self, sql: str, params=()):
        assert self.conn
        cur = await self.conn.execute(sql, params)
        rows = await cur.fetchall()
        await cur.close()
        return rows

    async def _ensure_column(self, table: str, col: str, ddl: str, commit: bool = True):
        """Add column if missing (SQLite)."""
        rows = await self.fetchall(f"PRAGMA table_info({table});")
        existing = {r["name"] for r in rows}
        if col not in existing:
            await self.execute(f"ALTER TABLE {table} ADD COLUMN {col} {ddl};", commit=commit)

    async def migrate(self):
        """Run database migrations in a single transaction."""
        try:
            async with self.transaction():
                await self._migrate_tables()
        except Exception as e:
            print(f"Database migration error: {e}")
            print(f"Error type: {type(e).__name__}")
            traceback.print_exc()
            raise

    async def _migrate_tables(self):
        await self.execute("""
        CREATE TABLE IF NOT EXISTS casino_players (
          player_id INTEGER PRIMARY KEY,
          name TEXT NOT NULL DEFAULT '',
          credits INTEGER NOT NULL DEFAULT 0,
          score INTEGER NOT NULL DEFAULT 0,
          cheat_strikes INTEGER NOT NULL DEFAULT 0,
          last_free_credits_ms INTEGER NOT NULL DEFAULT 0
        );
        """)
        await self.execute(
            "CREATE INDEX IF NOT EXISTS idx_casino_players_score ON casino_players(score);"
        )

        # Forfeit items applied as Discord roles, removed by the lock sweeper
        await self.execute("""
        CREATE TABLE IF NOT EXISTS casino_locks (
          guild_id INTEGER NOT NULL,
          player_id INTEGER NOT NULL,
          slot TEXT NOT NULL,
          role_id INTEGER NOT NULL,
          expires_ms INTEGER NOT NULL DEFAULT 0,
          password TEXT NOT NULL DEFAULT '',
          PRIMARY KEY (guild_id, player_id, slot)
        );
        """)
        await self._ensure_column("casino_locks", "password", "TEXT NOT NULL DEFAULT ''")

        # Per-player item limits (slots the bot may never apply)
        await self.execute("""
        CREATE TABLE IF NOT EXISTS casino_limits (
          player_id INTEGER NOT NULL,
          slot TEXT NOT NULL,
          PRIMARY KEY (player_id, slot)
        );
        """)
