"""Minimal SCP protocol client running over an asyncssh exec channel.

Only single regular files are supported. An upload announces the file
mode and exact length before any data is sent, and a download reads the
whole file in one pass.
"""

from __future__ import annotations

import asyncio
import posixpath
import shlex
from typing import TYPE_CHECKING

from .errors import VolleyError

if TYPE_CHECKING:
    import asyncssh

OK = b"\0"
WARNING = b"\1"
FATAL = b"\2"


class ScpError(VolleyError):
    """The remote scp reported an error or broke the protocol."""


async def _read_ack(reader: asyncssh.SSHReader) -> None:
    try:
        code = await reader.readexactly(1)
    except asyncio.IncompleteReadError as e:
        raise ScpError("scp: connection closed while waiting for acknowledgement") from e
    if code == OK:
        return
    if code in (WARNING, FATAL):
        message = await reader.readline()
        raise ScpError(message.decode("utf-8", errors="replace").strip() or "scp: remote error")
    raise ScpError(f"scp: unexpected response {code!r}")


async def send(
    conn: asyncssh.SSHClientConnection, path: str, data: bytes, mode: int = 0o644
) -> int:
    """Write ``data`` to the remote file ``path``. Returns the byte count."""
    name = posixpath.basename(path)
    async with conn.create_process(f"scp -t {shlex.quote(path)}", encoding=None) as proc:
        await _read_ack(proc.stdout)

        proc.stdin.write(f"C{mode:04o} {len(data)} {name}\n".encode())
        await proc.stdin.drain()
        await _read_ack(proc.stdout)

        proc.stdin.write(data)
        proc.stdin.write(OK)
        await proc.stdin.drain()
        await _read_ack(proc.stdout)

        proc.stdin.write_eof()
    return len(data)


async def recv(conn: asyncssh.SSHClientConnection, path: str) -> bytes:
    """Read the whole remote file ``path`` into memory."""
    async with conn.create_process(f"scp -f {shlex.quote(path)}", encoding=None) as proc:
        proc.stdin.write(OK)
        await proc.stdin.drain()

        header = await proc.stdout.readline()
        if not header:
            raise ScpError("scp: connection closed before file header")
        if header[:1] in (WARNING, FATAL):
            raise ScpError(header[1:].decode("utf-8", errors="replace").strip() or "scp: remote error")
        if header[:1] != b"C":
            raise ScpError(f"scp: {path} is not a regular file")

        try:
            _mode, size, _name = header[1:].decode().rstrip("\n").split(" ", 2)
            length = int(size)
        except ValueError as e:
            raise ScpError(f"scp: malformed file header {header!r}") from e

        proc.stdin.write(OK)
        await proc.stdin.drain()

        try:
            data = await proc.stdout.readexactly(length)
        except asyncio.IncompleteReadError as e:
            raise ScpError(f"scp: expected {length} bytes, got {len(e.partial)}") from e
        await _read_ack(proc.stdout)

        proc.stdin.write(OK)
        proc.stdin.write_eof()
    return data
