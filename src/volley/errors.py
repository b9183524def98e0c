"""Error types raised by volley."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import HostRecord


class VolleyError(Exception):
    """Base class for all volley errors."""


class ConfigError(VolleyError):
    """Configuration file is missing or malformed."""


class PatternError(VolleyError):
    """Host selection pattern is not a valid regular expression."""


class DirectoryEmptyError(VolleyError):
    """No member is valid in the configuration."""


class HostError(VolleyError):
    """A failure scoped to a single host.

    Carries the host so callers can report it; the message is the
    underlying cause followed by the host context.
    """

    def __init__(self, host: HostRecord, cause: BaseException | str):
        self.host = host
        self.cause = cause
        super().__init__(f"{cause}, {host.describe()}")


class ConnectError(HostError):
    """Connecting, handshaking or authenticating to a host failed."""


class TransferError(HostError):
    """Running an operation against a connected host failed."""


class TaskSubstrateError(VolleyError):
    """A task died for a reason other than its host's operation failing."""
