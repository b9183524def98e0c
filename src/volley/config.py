"""Configuration loader for volley."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError, DirectoryEmptyError

DEFAULT_CONFIG_PATH = Path("servers.yaml")


@dataclass
class Defaults:
    """Default values that can be overridden per member."""

    user: str = "root"
    port: int = 22
    password: str = ""


@dataclass(frozen=True)
class HostRecord:
    """A single selectable host, flattened out of its group."""

    hostname: str
    ip: str
    port: int
    user: str
    password: str
    groupname: str

    @property
    def label(self) -> str:
        return f"{self.hostname}_{self.ip}"

    @property
    def home_dir(self) -> str:
        if self.user == "root":
            return "/root"
        return posixpath.join("/home", self.user)

    def describe(self, show_password: bool = False) -> str:
        """Host context appended to error messages."""
        password = self.password if show_password else "******"
        return f"{self.label}, port:{self.port}, user:{self.user}, password:{password}"


@dataclass
class Member:
    """One connection entry inside a group."""

    hostname: str
    ip: str
    port: int = 22
    user: str = "root"
    password: str = ""
    valid: bool = True


@dataclass
class Group:
    """A named set of members that can be switched off as a whole."""

    name: str
    members: list[Member] = field(default_factory=list)
    valid: bool = True

    def host_records(self) -> list[HostRecord]:
        if not self.valid:
            return []
        return [
            HostRecord(
                hostname=m.hostname,
                ip=m.ip,
                port=m.port,
                user=m.user,
                password=m.password,
                groupname=self.name,
            )
            for m in self.members
            if m.valid
        ]


@dataclass
class Config:
    """Main configuration: every group known to volley."""

    groups: list[Group]
    defaults: Defaults = field(default_factory=Defaults)
    source_path: Path | None = None  # Path to the original config file

    def host_directory(self) -> list[HostRecord]:
        """Flatten groups into the ordered list of valid hosts.

        Raises:
            DirectoryEmptyError: If no member is valid in a valid group.
        """
        hosts = [host for group in self.groups for host in group.host_records()]
        if not hosts:
            where = self.source_path or "configuration"
            raise DirectoryEmptyError(f"{where}: no member with valid set to true")
        return hosts


def load_config(config_path: str | Path) -> Config:
    """Load and validate configuration from a YAML (or JSON) file."""
    config_path = Path(config_path).expanduser().resolve()

    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path) as f:
            raw = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to read config file {config_path}: {e}") from e

    config = parse_config(raw)
    config.source_path = config_path
    return config


def parse_config(raw: Any) -> Config:
    """Parse raw YAML data into a Config object."""
    if not isinstance(raw, dict):
        raise ConfigError("Configuration must be a mapping with a 'groups' list")

    defaults = _parse_defaults(raw)

    groups_raw = raw.get("groups") or []
    if not isinstance(groups_raw, list):
        raise ConfigError("'groups' must be a list")

    groups = [_parse_group(group_raw, defaults) for group_raw in groups_raw]
    return Config(groups=groups, defaults=defaults)


def _parse_defaults(raw: dict[str, Any]) -> Defaults:
    """Parse the defaults section."""
    defaults_raw = raw.get("defaults") or {}
    if not isinstance(defaults_raw, dict):
        raise ConfigError("'defaults' must be a mapping")
    return Defaults(
        user=str(defaults_raw.get("user", "root")),
        port=_parse_port(defaults_raw.get("port", 22), "defaults"),
        password=str(defaults_raw.get("password", "")),
    )


def _parse_group(group_raw: Any, defaults: Defaults) -> Group:
    """Parse a single group and its members."""
    if not isinstance(group_raw, dict):
        raise ConfigError(f"Group entry must be a mapping, got: {group_raw!r}")

    name = group_raw.get("name")
    if not name:
        raise ConfigError("Group must have a 'name' field")

    members_raw = group_raw.get("members") or []
    if not isinstance(members_raw, list):
        raise ConfigError(f"Group '{name}': 'members' must be a list")

    return Group(
        name=str(name),
        members=[_parse_member(m, defaults, str(name)) for m in members_raw],
        valid=_parse_flag(group_raw.get("valid", True), f"group '{name}'"),
    )


def _parse_member(member_raw: Any, defaults: Defaults, group_name: str) -> Member:
    """Parse a single member, inheriting unset fields from defaults."""
    if not isinstance(member_raw, dict):
        raise ConfigError(f"Group '{group_name}': member must be a mapping")

    hostname = member_raw.get("hostname")
    if not hostname:
        raise ConfigError(f"Group '{group_name}': member must have a 'hostname' field")

    ip = member_raw.get("ip")
    if not ip:
        raise ConfigError(f"Member '{hostname}' must have an 'ip' field")

    where = f"member '{hostname}'"
    return Member(
        hostname=str(hostname),
        ip=str(ip),
        port=_parse_port(member_raw.get("port", defaults.port), where),
        user=str(member_raw.get("user", defaults.user)),
        password=str(member_raw.get("password", defaults.password)),
        valid=_parse_flag(member_raw.get("valid", True), where),
    )


def _parse_port(value: Any, where: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 < value < 65536:
        raise ConfigError(f"{where}: invalid port {value!r}")
    return value


def _parse_flag(value: Any, where: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"{where}: 'valid' must be true or false, got {value!r}")
    return value


def template() -> str:
    """Sample configuration document."""
    sample = {
        "defaults": {"user": "root", "port": 22, "password": ""},
        "groups": [
            {
                "name": "example",
                "valid": True,
                "members": [
                    {
                        "hostname": "node1",
                        "ip": "192.168.1.10",
                        "port": 22,
                        "user": "cx",
                        "password": "chaxun",
                        "valid": True,
                    }
                ],
            }
        ],
    }
    return yaml.safe_dump(sample, sort_keys=False)
