"""SSH fan-out and per-host operation engine for volley."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import posixpath
import time
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable

import asyncssh

from . import scp
from .channel import Connected, SessionChannel
from .config import HostRecord
from .errors import ConnectError, HostError, TaskSubstrateError, TransferError
from .operations import (
    UPLOAD_MODE,
    Exec,
    Get,
    Operation,
    Put,
    get_destination,
    get_source,
    put_destination,
)

# Seconds allowed to connect, handshake and authenticate
CONNECT_TIMEOUT = 3

# Failures that only concern the host they happened on
SOFT_ERRORS = (asyncssh.Error, OSError, asyncio.TimeoutError, scp.ScpError)


class HostStatus(Enum):
    """Status of a host during a run."""

    PENDING = "pending"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class HostState:
    """Runtime state for a host."""

    key: str
    host: HostRecord
    status: HostStatus = HostStatus.PENDING
    elapsed_ms: int = 0
    output: str = ""
    exit_status: int | None = None
    transferred: int = 0
    remote_path: str = ""
    local_path: Path | None = None
    error_message: str = ""


# Type alias for output callback
OutputCallback = Callable[[str, str], None]  # (host_key, line) -> None
StatusCallback = Callable[[str, HostStatus], None]  # (host_key, status) -> None
Connector = Callable[[HostRecord], Awaitable[asyncssh.SSHClientConnection]]


def host_keys(hosts: list[HostRecord]) -> list[str]:
    """One unique key per host, in order.

    A key is the host's label; a label that occurs more than once (the
    same machine under another user, port or group) gets ``#1``, ``#2``...
    """
    totals = Counter(host.label for host in hosts)
    seen: Counter[str] = Counter()
    keys = []
    for host in hosts:
        if totals[host.label] == 1:
            keys.append(host.label)
            continue
        seen[host.label] += 1
        keys.append(f"{host.label}#{seen[host.label]}")
    return keys


async def open_session(host: HostRecord) -> asyncssh.SSHClientConnection:
    """Connect and authenticate to a host with its password."""
    return await asyncssh.connect(
        host.ip,
        port=host.port,
        username=host.user,
        password=host.password,
        client_keys=None,
        agent_path=None,
        known_hosts=None,  # Skip host key verification for simplicity
        preferred_auth="password,keyboard-interactive",
        connect_timeout=CONNECT_TIMEOUT,
    )


def _millis_since(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class Executor:
    """Runs one operation across many hosts.

    Connection attempts are fanned out concurrently and every host that
    connects is handed through a SessionChannel to the dispatcher, which
    starts its operation right away. Per-host failures are logged and
    recorded in the host's state; anything else aborts the run with
    TaskSubstrateError.
    """

    def __init__(
        self,
        hosts: list[HostRecord],
        operation: Operation,
        logger: logging.Logger | None = None,
        on_output: OutputCallback | None = None,
        on_status: StatusCallback | None = None,
        connector: Connector = open_session,
    ):
        self.hosts = hosts
        self.operation = operation
        self.log = logger or logging.getLogger("volley")
        self.on_output = on_output
        self.on_status = on_status
        self.connector = connector
        self.states: dict[str, HostState] = {
            key: HostState(key=key, host=host) for key, host in zip(host_keys(hosts), hosts)
        }
        self.channel: SessionChannel | None = None

    def _emit_output(self, state: HostState, text: str) -> None:
        """Emit output lines for a host."""
        if self.on_output:
            for line in text.splitlines():
                self.on_output(state.key, line)

    def _emit_status(self, state: HostState, status: HostStatus) -> None:
        """Emit status change for a host."""
        state.status = status
        if self.on_status:
            self.on_status(state.key, status)

    def _fail(self, state: HostState, error: HostError) -> None:
        state.error_message = str(error)
        self._emit_status(state, HostStatus.FAILED)
        self._emit_output(state, f"ERROR: {error}")
        self.log.error("%s", error)

    async def run_all(self) -> dict[str, HostState]:
        """Connect to every host and run the operation on each that connects.

        Raises:
            TaskSubstrateError: If a task fails for a reason that is not
                a failure of its own host.
        """
        self.channel = SessionChannel()
        fan_out = asyncio.create_task(self._fan_out(self.channel))
        tasks = [fan_out]
        try:
            async for slot in self.channel:
                tasks.append(asyncio.create_task(self._dispatch(slot)))
        finally:
            await self._join(tasks)
        return self.states

    async def _join(self, tasks: list[asyncio.Task]) -> None:
        """Wait for every task; the first one that crashed ends the run."""
        for task in tasks:
            try:
                await task
            except Exception as e:
                for other in tasks:
                    other.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise TaskSubstrateError(f"task {task.get_name()} failed: {e!r}") from e

    async def _fan_out(self, channel: SessionChannel) -> None:
        """Attempt every connection, then mark the channel finished."""
        try:
            results = await asyncio.gather(
                *(self._connect(state, channel) for state in self.states.values()),
                return_exceptions=True,
            )
        finally:
            await channel.close()
        for result in results:
            if isinstance(result, BaseException):
                raise result

    async def _connect(self, state: HostState, channel: SessionChannel) -> None:
        """Connect to a single host and hand the session to the dispatcher."""
        host = state.host
        start = time.monotonic()
        self._emit_status(state, HostStatus.CONNECTING)
        self._emit_output(state, f"Connecting to {host.user}@{host.ip}:{host.port}...")
        try:
            session = await self.connector(host)
        except SOFT_ERRORS as e:
            self._fail(state, ConnectError(host, e))
            return

        self.log.debug("%s, connect ok, elapsed: %dms", host.label, _millis_since(start))
        self._emit_status(state, HostStatus.CONNECTED)
        await channel.send(host, session, key=state.key)

    async def _dispatch(self, slot: Connected) -> None:
        """Run the operation on one connected host, then drop the session."""
        state, session = self.states[slot.key], slot.session
        self._emit_status(state, HostStatus.RUNNING)
        try:
            if isinstance(self.operation, Exec):
                await self._exec(state, session, self.operation)
            elif isinstance(self.operation, Put):
                await self._put(state, session, self.operation)
            elif isinstance(self.operation, Get):
                await self._get(state, session, self.operation)
            else:
                raise TypeError(f"unknown operation: {self.operation!r}")
        except TransferError as e:
            self._fail(state, e)
        except SOFT_ERRORS as e:
            self._fail(state, TransferError(state.host, e))
        else:
            self._emit_status(state, HostStatus.SUCCESS)
        finally:
            session.close()
            # Best-effort close
            with contextlib.suppress(*SOFT_ERRORS):
                await session.wait_closed()

    async def _exec(
        self, state: HostState, session: asyncssh.SSHClientConnection, operation: Exec
    ) -> None:
        start = time.monotonic()
        result = await session.run(
            operation.command, stderr=asyncssh.STDOUT, encoding=None, check=False
        )
        output = (result.stdout or b"").decode("utf-8", errors="replace")

        state.elapsed_ms = _millis_since(start)
        state.output = output
        state.exit_status = result.exit_status

        self._emit_output(state, f"$ {operation.command}")
        self._emit_output(state, output)
        self.log.info(
            "%s, command:%s, elapsed: %dms, exit: %s, res:\n%s",
            state.host.label,
            operation.command,
            state.elapsed_ms,
            result.exit_status,
            output,
        )

    async def _put(
        self, state: HostState, session: asyncssh.SSHClientConnection, operation: Put
    ) -> None:
        host = state.host
        start = time.monotonic()
        if not operation.local_file.name:
            raise TransferError(host, f"cannot take a file name from {operation.local_file}")

        data = await asyncio.to_thread(operation.local_file.read_bytes)
        remote_path = put_destination(host, operation.local_file, operation.remote_dir)
        sent = await scp.send(session, remote_path, data, mode=UPLOAD_MODE)

        state.elapsed_ms = _millis_since(start)
        state.transferred = sent
        state.remote_path = remote_path

        self._emit_output(state, f"Uploaded {sent} bytes to {remote_path}")
        self.log.info(
            "%s, local_file: %s, remote_path: %s, size: %d, elapsed: %dms, upload successfully",
            host.label,
            operation.local_file,
            remote_path,
            sent,
            state.elapsed_ms,
        )

    async def _get(
        self, state: HostState, session: asyncssh.SSHClientConnection, operation: Get
    ) -> None:
        host = state.host
        start = time.monotonic()
        if not posixpath.basename(operation.remote_file):
            raise TransferError(host, f"cannot take a file name from {operation.remote_file}")

        remote_path = get_source(host, operation.remote_file)
        data = await scp.recv(session, remote_path)
        local_path = get_destination(host, operation.remote_file, operation.local_dir)
        await asyncio.to_thread(local_path.write_bytes, data)

        state.elapsed_ms = _millis_since(start)
        state.transferred = len(data)
        state.remote_path = remote_path
        state.local_path = local_path

        self._emit_output(state, f"Downloaded {len(data)} bytes to {local_path}")
        self.log.info(
            "%s, remote_file: %s, local_file: %s, size: %d, elapsed: %dms, download successfully",
            host.label,
            remote_path,
            local_path,
            len(data),
            state.elapsed_ms,
        )
