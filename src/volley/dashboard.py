"""TUI Dashboard for volley."""

from __future__ import annotations

import logging

from textual.app import App, ComposeResult
from textual.message import Message
from textual.reactive import reactive
from textual.widgets import Footer, Header, Label, RichLog, Static

from .config import HostRecord
from .errors import TaskSubstrateError
from .executor import Executor, HostStatus, host_keys
from .operations import Exec, Get, Operation, Put

STATUS_ICONS = {
    HostStatus.PENDING: ("·", "dim"),
    HostStatus.CONNECTING: ("…", "yellow"),
    HostStatus.CONNECTED: ("…", "yellow"),
    HostStatus.RUNNING: ("▶", "yellow"),
    HostStatus.SUCCESS: ("✔", "green"),
    HostStatus.FAILED: ("✘", "red"),
}

DONE = (HostStatus.SUCCESS, HostStatus.FAILED)


def describe_operation(operation: Operation) -> str:
    if isinstance(operation, Exec):
        return f"exec: {operation.command}"
    if isinstance(operation, Get):
        return f"get: {operation.remote_file} -> {operation.local_dir}"
    if isinstance(operation, Put):
        return f"put: {operation.local_file} -> {operation.remote_dir}"
    return repr(operation)


class HostPanel(Static):
    """Status header and output log of one host."""

    status: reactive[HostStatus] = reactive(HostStatus.PENDING)

    def __init__(self, host: HostRecord, **kwargs) -> None:
        super().__init__(**kwargs)
        self.host = host

    def compose(self) -> ComposeResult:
        yield Label(self._get_header())
        yield RichLog(wrap=True, auto_scroll=True)

    def _get_header(self) -> str:
        icon, color = STATUS_ICONS[self.status]
        host = self.host
        return f"[{color}]{icon} [bold]{host.hostname}[/bold] {host.user}@{host.ip}:{host.port} ({host.groupname})[/]"

    def watch_status(self, status: HostStatus) -> None:
        if self.is_mounted:
            self.query_one(Label).update(self._get_header())

    def append_output(self, line: str) -> None:
        self.query_one(RichLog).write(line)


class HostEvent(Message):
    """Output line or status change reported by the executor."""

    def __init__(self, key: str, line: str | None = None, status: HostStatus | None = None) -> None:
        super().__init__()
        self.key = key
        self.line = line
        self.status = status


class Dashboard(App):
    """One panel per selected host, filled while the run progresses."""

    CSS = """
    Screen {
        layout: grid;
        grid-size: 2;
    }

    HostPanel {
        border: solid $primary;
        height: 100%;
        min-height: 10;
    }
    """

    BINDINGS = [("q", "quit", "Quit")]

    def __init__(
        self,
        hosts: list[HostRecord],
        operation: Operation,
        logger: logging.Logger | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.hosts = hosts
        self.operation = operation
        self.executor = Executor(
            hosts,
            operation,
            logger=logger,
            on_output=lambda key, line: self.post_message(HostEvent(key, line=line)),
            on_status=lambda key, status: self.post_message(HostEvent(key, status=status)),
        )
        self.panels: dict[str, HostPanel] = {}
        self.done = 0
        self.finished = False
        self.error: TaskSubstrateError | None = None

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        for i, (key, host) in enumerate(zip(host_keys(self.hosts), self.hosts)):
            self.panels[key] = HostPanel(host, id=f"host-{i}")
            yield self.panels[key]
        yield Footer()

    def on_mount(self) -> None:
        self.title = f"volley - {describe_operation(self.operation)}"
        self._update_progress()
        self.run_worker(self._run_execution(), exclusive=True)

    def _update_progress(self) -> None:
        state = "complete" if self.finished else "running"
        self.sub_title = f"{self.done}/{len(self.hosts)} hosts done, {state}"

    async def _run_execution(self) -> None:
        """Run the executor and keep the substrate failure, if any."""
        try:
            await self.executor.run_all()
        except TaskSubstrateError as e:
            self.error = e
            self.notify(str(e), severity="error", timeout=30)
        self.finished = True
        self._update_progress()

    def on_host_event(self, event: HostEvent) -> None:
        panel = self.panels[event.key]
        if event.line is not None:
            panel.append_output(event.line)
        if event.status is not None:
            panel.status = event.status
            if event.status in DONE:
                self.done += 1
                self._update_progress()
