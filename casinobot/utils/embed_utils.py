"""
Embed helpers for casino messages.
Table announcements, replies and whispers all go out as embeds.
"""
from __future__ import annotations
import discord
import random

# Constants
DEALER_NAME = "Casino Dealer"
DEALER_ICON = "https://i.imgur.com/jzk6IfH.png"

CASINO_THUMBS = [
    "https://i.imgur.com/jzk6IfH.png",
    "https://i.imgur.com/cO7hAij.png",
    "https://i.imgur.com/My3QzNu.png",
    "https://i.imgur.com/kzwCK79.png",
    "https://i.imgur.com/jGnkAKs.png",
]

# Embed colors for different message types
COLORS = {
    "casino": 0xFF6B6B,      # Red-pink - table announcements
    "reply": 0x3498DB,       # Blue - replies to one player
    "whisper": 0x9B59B6,     # Purple - private messages
    "error": 0xE74C3C,       # Red - errors
    "success": 0x2ECC71,     # Green - confirmations
}

# Discord rejects descriptions longer than this
MAX_DESCRIPTION = 4096


def create_embed(
    description: str,
    title: str | None = None,
    color: str | int = "casino",
    thumbnail: str | None = None,
    with_author: bool = True,
    footer: str | None = None,
) -> discord.Embed:
    """
    Create a standardized casino embed.

    Args:
        description: The embed description (truncated to Discord's limit)
        title: Optional embed title
        color: Color name (from COLORS) or hex int
        thumbnail: Custom thumbnail URL
        with_author: Show the dealer as author
        footer: Optional footer text
    """
    if isinstance(color, str):
        embed_color = COLORS.get(color, COLORS["casino"])
    else:
        embed_color = color

    if len(description) > MAX_DESCRIPTION:
        description = description[: MAX_DESCRIPTION - 1] + "…"

    embed = discord.Embed(title=title, description=description, color=embed_color)
    if with_author:
        embed.set_author(name=DEALER_NAME, icon_url=DEALER_ICON)
    if thumbnail:
        embed.set_thumbnail(url=thumbnail)
    if footer:
        embed.set_footer(text=footer)
    return embed


def casino_embed(desc: str, title: str | None = None) -> discord.Embed:
    """Table announcement with a random casino thumbnail."""
    return create_embed(description=desc, title=title, color="casino", thumbnail=random.choice(CASINO_THUMBS))


def reply_embed(desc: str) -> discord.Embed:
    return create_embed(description=desc, color="reply", with_author=False)


def whisper_embed(desc: str) -> discord.Embed:
    return create_embed(description=desc, color="whisper")
