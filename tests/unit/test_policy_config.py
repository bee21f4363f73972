"""test_policy_config.py - Environment-driven hardening controls."""

import pytest

from pare.errors import PolicyViolation, ViolationKind
from pare.policy.config import (
    allowed_commands,
    assert_allowed_by_policy,
    assert_strict_path,
    parse_list,
    read_policy_var,
    resolve_allowed_roots,
    server_env_key,
    strict_path_enabled,
)


class TestEnvKeys:
    def test_server_key_is_upper_snake(self):
        assert server_env_key("git", "ALLOWED_ROOTS") == "PARE_GIT_ALLOWED_ROOTS"
        assert server_env_key("docker-compose", "ALLOWED_COMMANDS") == "PARE_DOCKER_COMPOSE_ALLOWED_COMMANDS"

    def test_global_wins_over_server(self, monkeypatch):
        monkeypatch.setenv("PARE_ALLOWED_COMMANDS", "node")
        monkeypatch.setenv("PARE_BUILD_ALLOWED_COMMANDS", "make")

        assert read_policy_var("build", "ALLOWED_COMMANDS") == "node"

    def test_server_used_when_global_unset(self, monkeypatch):
        monkeypatch.setenv("PARE_BUILD_ALLOWED_COMMANDS", "make")

        assert read_policy_var("build", "ALLOWED_COMMANDS") == "make"

    def test_unset_is_none(self):
        assert read_policy_var("build", "ALLOWED_COMMANDS") is None


class TestParseList:
    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_blank_is_none(self, raw):
        assert parse_list(raw) is None

    def test_trims_and_dedupes_in_order(self):
        assert parse_list(" node, python ,,node, make ") == ("node", "python", "make")


class TestAllowedCommands:
    def test_unconfigured_allows_everything(self):
        assert allowed_commands("build") is None
        assert_allowed_by_policy("anything", "build")

    def test_configured_allowlist(self, monkeypatch):
        monkeypatch.setenv("PARE_BUILD_ALLOWED_COMMANDS", "node,python")

        assert allowed_commands("build") == frozenset({"node", "python"})
        assert_allowed_by_policy("node", "build")
        with pytest.raises(PolicyViolation) as exc_info:
            assert_allowed_by_policy("curl", "build")

        assert exc_info.value.kind is ViolationKind.DISALLOWED_COMMAND

    def test_other_server_unaffected(self, monkeypatch):
        monkeypatch.setenv("PARE_BUILD_ALLOWED_COMMANDS", "node")

        assert_allowed_by_policy("curl", "http")


class TestAllowedRoots:
    def test_resolves_per_policy(self, monkeypatch):
        monkeypatch.setenv("PARE_GIT_ALLOWED_ROOTS", "/srv/repos,/home/dev/src")

        assert resolve_allowed_roots("git") == ("/srv/repos", "/home/dev/src")
        assert resolve_allowed_roots("docker") is None


class TestStrictPath:
    def test_disabled_by_default(self):
        assert strict_path_enabled() is False
        assert_strict_path("/tmp/evil/npm")

    @pytest.mark.parametrize("value", ["true", "TRUE", " true "])
    def test_enabled(self, monkeypatch, value):
        monkeypatch.setenv("PARE_BUILD_STRICT_PATH", value)

        assert strict_path_enabled() is True
        with pytest.raises(PolicyViolation) as exc_info:
            assert_strict_path("/tmp/evil/npm")

        assert exc_info.value.kind is ViolationKind.PATH_QUALIFIED_COMMAND
        assert_strict_path("npm")

    def test_other_values_do_not_enable(self, monkeypatch):
        monkeypatch.setenv("PARE_BUILD_STRICT_PATH", "1")

        assert strict_path_enabled() is False
