"""
Capabilities the casino consumes from the outside world.
The Discord cog provides the real implementations; tests provide recorders.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol


@dataclass(frozen=True)
class Gambler:
    player_id: int
    name: str
    is_admin: bool = False

    def __str__(self) -> str:
        return self.name


class ChatRoom(Protocol):
    async def reply(self, gambler: Gambler, text: str) -> None: ...

    async def broadcast(self, text: str) -> None: ...

    async def whisper(self, player_id: int, text: str) -> None: ...

    def find_player(self, query: str) -> Gambler | None: ...


class Avatar(Protocol):
    async def is_wearing(self, player_id: int, slot: str) -> bool: ...

    async def allows_interaction(self, player_id: int) -> bool: ...

    async def blocked_slots(self, player_id: int) -> set[str]: ...

    async def hair_colour(self, player_id: int) -> str | None: ...

    async def equip(self, player_id: int, slot: str, label: str) -> None: ...

    async def equip_bundle(self, player_id: int, slots: list[str], label: str) -> None: ...

    async def set_colour(self, player_id: int, slot: str, colours: list[str]) -> None: ...

    async def lock(self, player_id: int, slot: str, until_ms: int, password: str) -> None: ...

    async def remove(self, player_id: int, slot: str) -> None: ...

    async def locked_by_casino(self, player_id: int, slot: str) -> bool: ...


CommandHandler = Callable[[Gambler, list[str]], Awaitable[None]]
