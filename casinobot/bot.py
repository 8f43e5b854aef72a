from __future__ import annotations

import asyncio
import os
import sys
import traceback
import discord
from discord.ext import commands

from .core.config import Config
from .core.db import Database

BOT_DIR = os.path.dirname(os.path.abspath(__file__))

COGS = [
    "casinobot.cogs.casino_tables",     # Tables: roulette/blackjack rounds, forfeit locks, limits
]

# Constants
SEPARATOR = "=" * 60

# Config template for environment variable creation
DEFAULT_CONFIG_TEMPLATE = """token: "{token}"
guilds:
  - {guild_id}
# 0 means not configured: commands are accepted in any channel, no consent role needed
channels:
  casino: 0
roles:
  consent: 0
casino:
  prefix: "!"
  start_game: roulette
  daily_credits: 20
  free_credits_hours: 20
  removal_multiplier: 4
  timings:
    spin_delay: 60
    deal_delay: 30
    cancel_cutoff: 3
    auto_stand: 45
    split_extension: 15
    settle_delay: 12
    cooldown_delay: 10
"""


# Helper functions for consistent output formatting
def _print_section(title: str = ""):
    """Print a section separator with optional title."""
    print(f"\n{SEPARATOR}")
    if title:
        print(title)
        print(SEPARATOR)


def _print_list(items: list, max_items: int = 10, prefix: str = "  "):
    """Print a list with truncation."""
    for item in items[:max_items]:
        print(f"{prefix}- {item}")
    if len(items) > max_items:
        print(f"{prefix}... and {len(items) - max_items} more")


def _parse_guild_ids(guild_ids_raw) -> list[int]:
    """Guild ids from a YAML list or a comma separated string."""
    if not guild_ids_raw:
        return []
    items = guild_ids_raw if isinstance(guild_ids_raw, list) else str(guild_ids_raw).split(",")
    out = []
    for item in items:
        item_str = str(item).strip()
        if item_str.isdigit():
            out.append(int(item_str))
    return out


class CasinoBot(commands.Bot):
    def __init__(self, cfg: Config, db: Database):
        intents = discord.Intents.default()
        intents.message_content = True
        intents.members = True

        # casino commands are parsed by the cog; only mentions reach the command framework
        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            help_command=None,
        )
        self.cfg = cfg
        self.db = db
        self._commands_synced = False

    async def setup_hook(self):
        """Called when the bot is setting up. Initialize database and load cogs."""
        _print_section("Initializing CasinoBot...")

        try:
            await self.db.connect()
            print("✓ Database connected")
            await self.db.migrate()
            print("✓ Database migrations completed")
        except Exception as e:
            print(f"✗ Database error during setup: {e}")
            traceback.print_exc()
            raise

        loaded_count = 0
        failed_count = 0
        for ext in COGS:
            try:
                await self.load_extension(ext)
                loaded_count += 1
                print(f"✓ Loaded: {ext}")
            except Exception as e:
                failed_count += 1
                print(f"✗ Failed to load {ext}: {e}")
                traceback.print_exc()

        _print_section(f"Extensions: {loaded_count} loaded, {failed_count} failed")
        print("Waiting for bot to be ready...")
        print()

    async def _sync_commands(self):
        all_commands = [cmd.qualified_name for cmd in self.tree.walk_commands()]
        _print_section(f"Commands in tree before sync: {len(all_commands)}")
        _print_list(all_commands)

        guild_ids = _parse_guild_ids(self.cfg.get("guilds", default=[]))
        bot_guild_ids = {g.id for g in self.guilds}
        if not guild_ids:
            print("No specific guild IDs found in config. Syncing globally...")
            try:
                synced = await self.tree.sync()
                print(f"✓ Synced {len(synced)} global commands")
            except discord.HTTPException as e:
                print(f"✗ Global sync failed: {e}")
            return

        for gid in guild_ids:
            if gid not in bot_guild_ids:
                print(f"⚠ Warning: Bot is not in guild {gid}")
                continue
            guild_obj = discord.Object(id=gid)
            self.tree.copy_global_to(guild=guild_obj)
            try:
                synced = await self.tree.sync(guild=guild_obj)
                print(f"✓ Successfully synced {len(synced)} commands to guild {gid}")
            except discord.HTTPException as e:
                if e.status == 403:
                    print(f"✗ Error: Forbidden (403) when syncing to guild {gid}")
                    print("  - Missing 'applications.commands' scope in invite URL")
                else:
                    print(f"✗ HTTP Error {e.status}: {e}")

    async def on_ready(self):
        """Called when the bot is ready. Sync slash commands once."""
        _print_section()
        print(f"Bot is ready! Logged in as {self.user} (ID: {self.user.id})")
        print(f"Connected to {len(self.guilds)} guild(s)")
        print()

        if not self._commands_synced:
            await self._sync_commands()
            self._commands_synced = True

    async def on_app_command_error(self, interaction: discord.Interaction, error: discord.app_commands.AppCommandError):
        """Global error handler for app commands."""
        error_messages = {
            discord.app_commands.CommandOnCooldown: lambda e: f"This command is on cooldown. Try again in {e.retry_after:.1f} seconds.",
            discord.app_commands.MissingPermissions: "You don't have permission to use this command.",
            discord.app_commands.BotMissingPermissions: "I don't have the required permissions to execute this command.",
        }

        message = None
        for error_type, msg in error_messages.items():
            if isinstance(error, error_type):
                message = msg(error) if callable(msg) else msg
                break

        if message is None:
            print(f"Unhandled command error: {error}")
            traceback.print_exc()
            message = "An error occurred while executing this command."

        try:
            if interaction.response.is_done():
                await interaction.followup.send(message, ephemeral=True)
            else:
                await interaction.response.send_message(message, ephemeral=True)
        except discord.HTTPException:
            pass

    async def on_error(self, event_method: str, *args, **kwargs):
        """Global error handler for events."""
        print(f"Error in event {event_method}:")
        traceback.print_exc()

    async def close(self):
        cog = self.get_cog("CasinoTables")
        if cog is not None:
            cog.casino.shutdown()
        await super().close()
        await self.db.close()


async def main():
    config_path = os.environ.get("CASINO_CONFIG", os.path.join(BOT_DIR, "config.yml"))
    db_path = os.environ.get("CASINO_DB", os.path.join(BOT_DIR, "casino.sqlite3"))

    # Create config from environment variables if it doesn't exist
    if not os.path.exists(config_path):
        _print_section("config.yml not found. Attempting to create from environment variables...")
        token = os.getenv("DISCORD_BOT_TOKEN")
        if not token:
            print("ERROR: config.yml file not found and DISCORD_BOT_TOKEN not set!")
            print(SEPARATOR)
            print(f"Expected location: {config_path}")
            print("\nTo fix this:")
            print("1. Create config.yml in the casinobot/ directory, OR")
            print("2. Set the DISCORD_BOT_TOKEN environment variable")
            print(SEPARATOR)
            sys.exit(1)

        guild_id = os.getenv("DISCORD_GUILDS", "123456789012345678")
        config_content = DEFAULT_CONFIG_TEMPLATE.format(token=token, guild_id=guild_id)
        try:
            with open(config_path, "w", encoding="utf-8") as f:
                f.write(config_content)
            print(f"✓ Created config.yml from environment variables at {config_path}")
        except OSError as e:
            print(f"✗ Failed to create config.yml: {e}")
            sys.exit(1)

    cfg = Config.load(config_path)

    token = cfg.get("token")
    if not token or token == "PUT_YOUR_BOT_TOKEN_HERE":
        _print_section("ERROR: Bot token not configured!")
        print("Please set your bot token in config.yml")
        sys.exit(1)

    # engine events go through the logging module
    discord.utils.setup_logging()

    db = Database(db_path)
    bot = CasinoBot(cfg, db)

    # Retry logic for rate limiting
    max_retries = 5
    for attempt in range(max_retries):
        try:
            await bot.start(token)
            break
        except discord.HTTPException as e:
            if e.status == 429:
                if attempt < max_retries - 1:
                    wait_time = 5 * (2 ** attempt)  # Exponential backoff: 5, 10, 20, 40, 80 seconds
                    print(f"Rate limited (429). Waiting {wait_time} seconds before retry ({attempt + 1}/{max_retries})...")
                    await asyncio.sleep(wait_time)
                    continue
                print(f"ERROR: Rate limited after {max_retries} attempts. Please wait and try again later.")
                sys.exit(1)
            raise
        except discord.LoginFailure as e:
            print(f"ERROR: Discord Login Failure: {e}")
            print("Please check your bot token in config.yml or DISCORD_BOT_TOKEN environment variable.")
            sys.exit(1)


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nBot shutdown requested by user")


if __name__ == "__main__":
    run()
