"""Queue handing connected sessions from the fan-out to the dispatcher."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, AsyncIterator, Union

from .config import HostRecord

if TYPE_CHECKING:
    import asyncssh

CHANNEL_CAPACITY = 10


@dataclass
class Connected:
    """A host together with its authenticated connection."""

    host: HostRecord
    session: asyncssh.SSHClientConnection
    key: str = ""  # Identifies the host among the selected ones


class _EndOfConnections:
    def __repr__(self) -> str:
        return "END_OF_CONNECTIONS"


# Sent once, after every connection attempt has finished
END_OF_CONNECTIONS = _EndOfConnections()

Slot = Union[Connected, _EndOfConnections]


class SessionChannel:
    """Bounded queue of Connected slots terminated by END_OF_CONNECTIONS."""

    def __init__(self, capacity: int = CHANNEL_CAPACITY):
        self._queue: asyncio.Queue[Slot] = asyncio.Queue(maxsize=capacity)
        self.ends_sent = 0

    async def send(
        self, host: HostRecord, session: asyncssh.SSHClientConnection, key: str = ""
    ) -> None:
        if self.ends_sent:
            raise RuntimeError("send on a closed session channel")
        await self._queue.put(Connected(host, session, key or host.label))

    async def close(self) -> None:
        """Push the end marker. Must be called exactly once."""
        if self.ends_sent:
            raise RuntimeError("session channel already closed")
        self.ends_sent += 1
        await self._queue.put(END_OF_CONNECTIONS)

    async def receive(self) -> Slot:
        return await self._queue.get()

    async def __aiter__(self) -> AsyncIterator[Connected]:
        while True:
            slot = await self.receive()
            if slot is END_OF_CONNECTIONS:
                return
            yield slot
