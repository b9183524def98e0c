"""In-memory stand-ins for asyncssh connections and processes."""

import asyncio
from types import SimpleNamespace


class FakeWriter:
    def __init__(self):
        self.data = bytearray()
        self.eof = False

    def write(self, data: bytes) -> None:
        self.data.extend(data)

    async def drain(self) -> None:
        pass

    def write_eof(self) -> None:
        self.eof = True


class FakeProcess:
    """A remote process whose stdout replays ``replies``."""

    def __init__(self, command: str, replies: bytes):
        self.command = command
        self.stdin = FakeWriter()
        self.stdout = asyncio.StreamReader()
        self.stdout.feed_data(replies)
        self.stdout.feed_eof()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None


class FakeConnection:
    """Records what is run on it; ``run`` and ``create_process`` are canned."""

    def __init__(self, output: bytes = b"", exit_status: int = 0, replies: bytes = b"",
                 error: BaseException | None = None,
                 close_error: BaseException | None = None):
        self.output = output
        self.exit_status = exit_status
        self.replies = replies
        self.error = error
        self.commands: list[str] = []
        self.processes: list[FakeProcess] = []
        self.closed = False
        self.close_error = close_error
        self.wait_closed_calls = 0

    async def run(self, command, **kwargs):
        self.commands.append(command)
        if self.error:
            raise self.error
        return SimpleNamespace(stdout=self.output, exit_status=self.exit_status)

    def create_process(self, command, **kwargs):
        self.commands.append(command)
        process = FakeProcess(command, self.replies)
        self.processes.append(process)
        return process

    def close(self) -> None:
        self.closed = True

    async def wait_closed(self) -> None:
        if not self.closed:
            raise AssertionError("wait_closed before close")
        if self.close_error:
            raise self.close_error
        self.wait_closed_calls += 1
