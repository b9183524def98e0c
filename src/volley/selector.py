"""Host selection by regular expression."""

from __future__ import annotations

import re
from typing import Iterable

from .config import HostRecord
from .errors import PatternError

MATCH_ALL = "all"


def compile_pattern(text: str | None) -> re.Pattern[str]:
    """Compile a selection pattern; None and "all" match every host."""
    if text is None or text == MATCH_ALL:
        text = ".*"
    try:
        return re.compile(text)
    except re.error as e:
        raise PatternError(f"Invalid host pattern {text!r}: {e}") from e


def select_hosts(pattern: re.Pattern[str], directory: Iterable[HostRecord]) -> list[HostRecord]:
    """Return hosts whose hostname, ip or group name contains a match, in order."""
    return [
        host
        for host in directory
        if pattern.search(host.hostname)
        or pattern.search(host.ip)
        or pattern.search(host.groupname)
    ]
