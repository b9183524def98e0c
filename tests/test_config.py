"""Tests for configuration loading and host directory flattening."""

import json

import pytest

from volley.config import load_config, parse_config, template
from volley.errors import ConfigError, DirectoryEmptyError

RAW = {
    "defaults": {"user": "cx", "password": "chaxun"},
    "groups": [
        {
            "name": "web",
            "valid": True,
            "members": [
                {"hostname": "host1", "ip": "10.0.0.1", "valid": True},
                {"hostname": "host2", "ip": "10.0.0.2", "valid": False},
                {"hostname": "host3", "ip": "10.0.0.3", "port": 2222, "user": "root"},
            ],
        },
        {
            "name": "db",
            "valid": False,
            "members": [{"hostname": "db1", "ip": "10.0.1.1", "valid": True}],
        },
    ],
}


class TestHostDirectory:
    def test_keeps_valid_members_of_valid_groups(self):
        hosts = parse_config(RAW).host_directory()
        assert [h.hostname for h in hosts] == ["host1", "host3"]

    def test_members_inherit_defaults(self):
        host1, host3 = parse_config(RAW).host_directory()
        assert (host1.user, host1.password, host1.port) == ("cx", "chaxun", 22)
        assert (host3.user, host3.port) == ("root", 2222)
        assert host1.groupname == "web"

    def test_empty_directory_is_fatal(self):
        raw = {"groups": [{"name": "g", "valid": False, "members": [
            {"hostname": "a", "ip": "10.0.0.1"}]}]}
        with pytest.raises(DirectoryEmptyError):
            parse_config(raw).host_directory()

    def test_no_groups_is_empty(self):
        with pytest.raises(DirectoryEmptyError):
            parse_config({"groups": []}).host_directory()


class TestHostRecord:
    def test_home_dir(self, make_host):
        assert make_host(user="root").home_dir == "/root"
        assert make_host(user="cx").home_dir == "/home/cx"

    def test_describe_masks_password(self, make_host):
        host = make_host(password="hunter2")
        assert host.describe() == "host1_10.0.0.1, port:22, user:cx, password:******"
        assert "hunter2" in host.describe(show_password=True)


class TestParseErrors:
    @pytest.mark.parametrize(
        "raw",
        [
            [],
            {"groups": {"name": "x"}},
            {"groups": [{"members": []}]},
            {"groups": [{"name": "g", "members": [{"ip": "10.0.0.1"}]}]},
            {"groups": [{"name": "g", "members": [{"hostname": "a"}]}]},
            {"groups": [{"name": "g", "members": [
                {"hostname": "a", "ip": "10.0.0.1", "port": "22"}]}]},
            {"groups": [{"name": "g", "valid": "yes", "members": []}]},
        ],
    )
    def test_malformed_config(self, raw):
        with pytest.raises(ConfigError):
            parse_config(raw)


class TestLoadConfig:
    def test_load_yaml(self, tmp_path):
        path = tmp_path / "servers.yaml"
        path.write_text(template())
        config = load_config(path)
        assert config.source_path == path.resolve()
        assert [h.hostname for h in config.host_directory()] == ["node1"]

    def test_load_json(self, tmp_path):
        path = tmp_path / "server.json"
        path.write_text(json.dumps(RAW))
        assert len(load_config(path).host_directory()) == 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("groups: [unclosed")
        with pytest.raises(ConfigError):
            load_config(path)
