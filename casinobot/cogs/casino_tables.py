"""
Casino Tables Cog
Connects the casino engine to one Discord text channel.

Players type prefixed commands (``!bet red 10``) in the casino channel.
Forfeit items are Discord roles named ``Casino · <slot>``; timed forfeits
are rows in casino_locks that the sweeper removes once they expire.
"""

from __future__ import annotations

import logging
import re

import discord
from discord import app_commands
from discord.ext import commands, tasks

from ..core.casino import Casino
from ..core.forfeits import FORFEITS, PADLOCK
from ..core.interfaces import Gambler
from ..core.store import CasinoStore
from ..core.utility import now_ms
from ..utils.embed_utils import casino_embed, create_embed, reply_embed, whisper_embed

log = logging.getLogger(__name__)

ROLE_PREFIX = "Casino · "
MENTION_RE = re.compile(r"^<@!?(\d+)>$")

KNOWN_SLOTS = sorted({slot for entry in FORFEITS.values() for slot in entry.items} | {PADLOCK})


def role_name(slot: str) -> str:
    return f"{ROLE_PREFIX}{slot}"


def is_admin(member: discord.abc.User) -> bool:
    perms = getattr(member, "guild_permissions", None)
    return bool(perms and (perms.manage_guild or perms.administrator))


class DiscordRoom:
    """ChatRoom backed by the configured casino channel."""

    def __init__(self, bot: commands.Bot):
        self.bot = bot
        self.channel_id = int(bot.cfg.get("channels", "casino", default=0) or 0)
        self.channel: discord.abc.Messageable | None = None

    def accepts(self, channel: discord.abc.GuildChannel) -> bool:
        return not self.channel_id or channel.id == self.channel_id

    def bind(self, channel: discord.abc.Messageable):
        """Without a configured channel the room follows wherever commands come from."""
        if self.channel is None or not self.channel_id:
            self.channel = channel

    def _channel(self):
        if self.channel is None and self.channel_id:
            self.channel = self.bot.get_channel(self.channel_id)
        return self.channel

    @property
    def guild(self) -> discord.Guild | None:
        channel = self._channel()
        guild = getattr(channel, "guild", None)
        if guild is None and self.bot.guilds:
            guild = self.bot.guilds[0]
        return guild

    def gambler_for(self, member: discord.abc.User) -> Gambler:
        return Gambler(member.id, getattr(member, "display_name", member.name), is_admin(member))

    async def reply(self, gambler: Gambler, text: str) -> None:
        channel = self._channel()
        if channel is None:
            log.warning("No casino channel for reply to %s: %s", gambler.player_id, text)
            return
        await channel.send(content=f"<@{gambler.player_id}>", embed=reply_embed(text))

    async def broadcast(self, text: str) -> None:
        channel = self._channel()
        if channel is None:
            log.warning("No casino channel for broadcast: %s", text)
            return
        await channel.send(embed=casino_embed(text))

    async def whisper(self, player_id: int, text: str) -> None:
        guild = self.guild
        member = guild.get_member(player_id) if guild else None
        if member is not None:
            try:
                await member.send(embed=whisper_embed(text))
                return
            except discord.HTTPException:
                pass
        # DMs closed: fall back to a mention in the channel
        channel = self._channel()
        if channel is not None:
            await channel.send(content=f"<@{player_id}>", embed=whisper_embed(text))

    def find_player(self, query: str) -> Gambler | None:
        guild = self.guild
        if guild is None:
            return None
        query = query.strip()
        match = MENTION_RE.match(query)
        member = None
        if match:
            member = guild.get_member(int(match.group(1)))
        elif query.isdigit():
            member = guild.get_member(int(query))
        if member is None:
            lowered = query.lower()
            member = discord.utils.find(
                lambda m: m.display_name.lower() == lowered or m.name.lower() == lowered,
                guild.members,
            )
        if member is None or member.bot:
            return None
        return self.gambler_for(member)


class DiscordAvatar:
    """Avatar backed by guild roles, one role per item slot."""

    def __init__(self, bot: commands.Bot, room: DiscordRoom):
        self.bot = bot
        self.room = room

    def _member(self, player_id: int) -> discord.Member | None:
        guild = self.room.guild
        return guild.get_member(player_id) if guild else None

    async def _get_or_create_role(self, guild: discord.Guild, name: str) -> discord.Role | None:
        role = discord.utils.get(guild.roles, name=name)
        if role:
            return role
        try:
            return await guild.create_role(name=name, reason="Casino: forfeit item")
        except discord.HTTPException as e:
            log.warning("Could not create role %s: %s", name, e)
            return None

    async def is_wearing(self, player_id: int, slot: str) -> bool:
        member = self._member(player_id)
        if member is None:
            return False
        return any(r.name == role_name(slot) for r in member.roles)

    async def allows_interaction(self, player_id: int) -> bool:
        consent = int(self.bot.cfg.get("roles", "consent", default=0) or 0)
        if not consent:
            return True
        member = self._member(player_id)
        return member is not None and any(r.id == consent for r in member.roles)

    async def blocked_slots(self, player_id: int) -> set[str]:
        rows = await self.bot.db.fetchall(
            "SELECT slot FROM casino_limits WHERE player_id=?", (int(player_id),)
        )
        return {r["slot"] for r in rows}

    async def hair_colour(self, player_id: int) -> str | None:
        member = self._member(player_id)
        if member is None or member.colour.value == 0:
            return None
        return str(member.colour)

    async def equip(self, player_id: int, slot: str, label: str) -> None:
        member = self._member(player_id)
        if member is None:
            log.info("Cannot equip %s on %s: not in the guild", slot, player_id)
            return
        role = await self._get_or_create_role(member.guild, role_name(slot))
        if role is None:
            return
        try:
            await member.add_roles(role, reason=f"Casino: {label}")
        except discord.HTTPException as e:
            log.warning("Could not add %s to %s: %s", role.name, player_id, e)

    async def equip_bundle(self, player_id: int, slots: list[str], label: str) -> None:
        for slot in slots:
            await self.equip(player_id, slot, label)

    async def set_colour(self, player_id: int, slot: str, colours: list[str]) -> None:
        guild = self.room.guild
        role = discord.utils.get(guild.roles, name=role_name(slot)) if guild else None
        if role is None:
            return
        picked = next((c for c in colours if c and c != "Default"), None)
        if picked is None:
            return
        # raises ValueError for colours Discord can't show
        await role.edit(colour=discord.Colour.from_str(picked), reason="Casino: forfeit colour")

    async def lock(self, player_id: int, slot: str, until_ms: int, password: str) -> None:
        guild = self.room.guild
        role = discord.utils.get(guild.roles, name=role_name(slot)) if guild else None
        if role is None:
            return
        await self.bot.db.execute(
            """
            INSERT INTO casino_locks(guild_id,player_id,slot,role_id,expires_ms,password)
            VALUES(?,?,?,?,?,?)
            ON CONFLICT(guild_id,player_id,slot) DO UPDATE SET
              role_id=excluded.role_id, expires_ms=excluded.expires_ms, password=excluded.password
            """,
            (guild.id, int(player_id), slot, role.id, int(until_ms), password),
        )

    async def remove(self, player_id: int, slot: str) -> None:
        member = self._member(player_id)
        if member is not None:
            role = discord.utils.get(member.roles, name=role_name(slot))
            if role is not None:
                try:
                    await member.remove_roles(role, reason="Casino: forfeit removed")
                except discord.HTTPException as e:
                    log.warning("Could not remove %s from %s: %s", role.name, player_id, e)
        guild = self.room.guild
        if guild is not None:
            await self.bot.db.execute(
                "DELETE FROM casino_locks WHERE guild_id=? AND player_id=? AND slot=?",
                (guild.id, int(player_id), slot),
            )

    async def locked_by_casino(self, player_id: int, slot: str) -> bool:
        guild = self.room.guild
        if guild is None:
            return False
        row = await self.bot.db.fetchone(
            "SELECT 1 FROM casino_locks WHERE guild_id=? AND player_id=? AND slot=?",
            (guild.id, int(player_id), slot),
        )
        return row is not None

    async def sweep_expired(self, now: int) -> int:
        """Take off every timed forfeit whose lock has run out. Returns how many were removed."""
        rows = await self.bot.db.fetchall(
            "SELECT guild_id, player_id, slot FROM casino_locks WHERE expires_ms <= ?", (int(now),)
        )
        for r in rows:
            await self.remove(int(r["player_id"]), r["slot"])
        return len(rows)


class CasinoTables(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot
        self.prefix = str(bot.cfg.get("casino", "prefix", default="!"))
        self.room = DiscordRoom(bot)
        self.avatar = DiscordAvatar(bot, self.room)
        self.casino = Casino(CasinoStore(bot.db), self.room, self.avatar, bot.cfg)
        self._seen: set[int] = set()
        self.lock_sweeper.start()

    def cog_unload(self):
        self.lock_sweeper.cancel()
        self.casino.shutdown()

    async def _greet(self, member: discord.Member):
        if member.id in self._seen:
            return
        self._seen.add(member.id)
        await self.casino.on_player_seen(self.room.gambler_for(member))

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message):
        if message.author.bot or message.guild is None:
            return
        if not self.room.accepts(message.channel):
            return
        content = message.content.strip()
        if not content.startswith(self.prefix):
            return
        parts = content[len(self.prefix):].split()
        if not parts:
            return

        self.room.bind(message.channel)
        await self._greet(message.author)
        gambler = self.room.gambler_for(message.author)
        handled = await self.casino.commands.dispatch(parts[0], gambler, parts[1:])
        if not handled:
            log.debug("Ignoring unknown casino command %r from %s", parts[0], gambler.player_id)

    @commands.Cog.listener()
    async def on_member_join(self, member: discord.Member):
        if member.bot:
            return
        await self._greet(member)

    @tasks.loop(minutes=1)
    async def lock_sweeper(self):
        await self.bot.wait_until_ready()
        try:
            removed = await self.avatar.sweep_expired(now_ms())
        except Exception:
            log.exception("Lock sweep failed")
            return
        if removed:
            log.info("Released %s expired forfeit lock(s)", removed)

    @app_commands.command(name="limits", description="Block or allow item slots the casino may use on you.")
    @app_commands.describe(action="block, allow or list", slot="Item slot, e.g. ItemArms")
    async def limits(self, interaction: discord.Interaction, action: str, slot: str | None = None):
        action = action.lower()
        uid = interaction.user.id

        if action == "list":
            rows = await self.bot.db.fetchall(
                "SELECT slot FROM casino_limits WHERE player_id=? ORDER BY slot", (uid,)
            )
            blocked = [r["slot"] for r in rows]
            desc = "Blocked slots: " + ", ".join(blocked) if blocked else "You haven't blocked any slots."
            return await interaction.response.send_message(embed=create_embed(desc, color="reply"), ephemeral=True)

        if action not in ("block", "allow") or not slot:
            embed = create_embed("Usage: /limits block|allow <slot> or /limits list", color="error")
            return await interaction.response.send_message(embed=embed, ephemeral=True)

        match = next((s for s in KNOWN_SLOTS if s.lower() == slot.lower()), None)
        if match is None:
            embed = create_embed(f"Unknown slot. Known slots: {', '.join(KNOWN_SLOTS)}", color="error")
            return await interaction.response.send_message(embed=embed, ephemeral=True)

        if action == "block":
            await self.bot.db.execute(
                "INSERT OR IGNORE INTO casino_limits(player_id,slot) VALUES(?,?)", (uid, match)
            )
            desc = f"The casino will no longer use {match} on you."
        else:
            await self.bot.db.execute(
                "DELETE FROM casino_limits WHERE player_id=? AND slot=?", (uid, match)
            )
            desc = f"The casino may use {match} on you again."
        await interaction.response.send_message(embed=create_embed(desc, color="success"), ephemeral=True)


async def setup(bot: commands.Bot):
    await bot.add_cog(CasinoTables(bot))
