"""Operations that can be run against every selected host."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from .config import HostRecord

# rw-r--r--
UPLOAD_MODE = 0o644


@dataclass(frozen=True)
class Exec:
    """Run a shell command."""

    command: str

    @classmethod
    def from_words(cls, words: list[str]) -> Exec:
        return cls(" ".join(words))


@dataclass(frozen=True)
class Get:
    """Download a single remote file."""

    remote_file: str
    local_dir: Path


@dataclass(frozen=True)
class Put:
    """Upload a single local file."""

    local_file: Path
    remote_dir: str


Operation = Union[Exec, Get, Put]


def put_destination(host: HostRecord, local_file: Path, remote_dir: str) -> str:
    """Remote path a Put writes to.

    An absolute ``remote_dir`` is the exact destination file path. Anything
    else is taken relative to the user's home directory, with the local
    file's name appended.
    """
    if posixpath.isabs(remote_dir):
        return remote_dir
    return posixpath.join(host.home_dir, remote_dir, local_file.name)


def get_source(host: HostRecord, remote_file: str) -> str:
    """Remote path a Get reads from, relative to the user's home directory."""
    if remote_file.startswith("~/"):
        remote_file = remote_file[2:]
    return posixpath.join(host.home_dir, remote_file)


def get_destination(host: HostRecord, remote_file: str, local_dir: Path) -> Path:
    """Local path a Get writes to.

    Inside an existing directory the file is renamed to
    ``<hostname>_<ip>_<name>`` so hosts do not overwrite each other;
    otherwise ``local_dir`` is the literal destination.
    """
    if local_dir.is_dir():
        return local_dir / f"{host.label}_{posixpath.basename(remote_file)}"
    return local_dir
