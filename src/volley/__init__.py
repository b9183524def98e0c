"""volley: Run one command or file transfer on many SSH hosts in parallel."""

from .config import Config, Defaults, Group, HostRecord, Member, load_config
from .executor import Executor, HostState, HostStatus
from .operations import Exec, Get, Put

__all__ = [
    "Config",
    "Defaults",
    "Group",
    "HostRecord",
    "Member",
    "load_config",
    "Executor",
    "HostState",
    "HostStatus",
    "Exec",
    "Get",
    "Put",
]
