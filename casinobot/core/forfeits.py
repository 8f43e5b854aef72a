"""
Forfeit catalog.
Each key can be bet instead of a chip amount. Losing applies the items.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from .interfaces import Avatar
from .utility import fmt

MINUTE_MS = 60 * 1000
DEFAULT_LOCK_MS = 20 * MINUTE_MS

# Padlock used for timed forfeits. Players can permission-block it like any item.
PADLOCK = "TimerPasswordPadlock"

CustomApply = Callable[[Avatar, int], Awaitable[None]]


@dataclass(frozen=True)
class ForfeitEntry:
    key: str
    name: str
    value: int
    items: tuple[str, ...]
    lock_ms: Optional[int] = DEFAULT_LOCK_MS
    custom_apply: Optional[CustomApply] = None
    colour_layers: Optional[tuple[int, ...]] = None
    # fixed colours for custom items, applied by the casino after custom_apply
    colours: Optional[tuple[str, ...]] = None

    def required_items(self) -> list[str]:
        needed = list(self.items)
        if self.lock_ms:
            needed.append(PADLOCK)
        return needed

    @property
    def single_item(self) -> str | None:
        return self.items[0] if len(self.items) == 1 else None


async def _apply_sign(avatar: Avatar, player_id: int) -> None:
    await avatar.equip(player_id, "ItemMisc", "Lost at the Casino")


async def _apply_kennel(avatar: Avatar, player_id: int) -> None:
    # the kennel marks a player as purchasable; it is never locked
    await avatar.equip(player_id, "ItemDevices", "Casino Kennel")


FORFEITS: dict[str, ForfeitEntry] = {
    e.key: e
    for e in (
        ForfeitEntry("collar", "a casino collar", 3, ("ItemNeck",), colour_layers=(0, 2)),
        ForfeitEntry("boots", "ballet boots", 5, ("ItemBoots",)),
        ForfeitEntry("gag", "a ball gag", 5, ("ItemMouth",), colour_layers=(1,)),
        ForfeitEntry("blindfold", "a blindfold", 5, ("ItemHead",)),
        ForfeitEntry("mittens", "leather mittens", 6, ("ItemHands",)),
        ForfeitEntry("legbinder", "a leg binder", 7, ("ItemLegs",)),
        ForfeitEntry("hood", "a latex hood", 8, ("ItemHood",)),
        ForfeitEntry("belt", "a chastity belt", 8, ("ItemPelvis",), lock_ms=60 * MINUTE_MS),
        ForfeitEntry("armbinder", "an armbinder", 10, ("ItemArms",), colour_layers=(0,)),
        ForfeitEntry("sign", "a loser's sign", 2, ("ItemMisc",), lock_ms=None, custom_apply=_apply_sign,
                     colours=("#0e0e0e", "#ffffff", "#CCCCCC")),
        ForfeitEntry("kennel", "a trip to the kennel", 15, ("ItemDevices",), lock_ms=None, custom_apply=_apply_kennel),
        ForfeitEntry(
            "mummy", "full mummification", 25,
            ("ItemArms", "ItemLegs", "ItemFeet", "ItemHead"),
            lock_ms=None,
        ),
    )
}


def get_forfeit(key: str | None) -> ForfeitEntry | None:
    if not key:
        return None
    return FORFEITS.get(key.lower())


def forfeits_string() -> str:
    lines = []
    for entry in FORFEITS.values():
        line = f"{entry.key}: {entry.name} ({fmt(entry.value)} chips)"
        if entry.lock_ms and entry.lock_ms != DEFAULT_LOCK_MS:
            line += f", locked {entry.lock_ms // MINUTE_MS} minutes"
        elif not entry.lock_ms:
            line += ", not locked"
        lines.append(line)
    return "\n".join(lines)


def restraints_remove_string(multiplier: int) -> str:
    return "\n".join(
        f"{entry.key}: {fmt(entry.value * multiplier)} chips"
        for entry in FORFEITS.values()
        if entry.single_item and not entry.custom_apply
    )
