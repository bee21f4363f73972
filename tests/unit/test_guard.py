"""test_guard.py - Policy guard predicates."""

import os
from unittest.mock import MagicMock

import pytest

from pare.errors import ErrorCategory, ErrorCode, PolicyViolation, ViolationKind
from pare.policy import guard
from pare.policy.guard import (
    assert_allowed_command,
    assert_allowed_root,
    assert_no_flag_injection,
    assert_no_path_qualified_command,
    assert_safe_file_path,
    assert_safe_header,
    assert_safe_url,
    assert_safe_volume_mount,
    assert_valid_port_mapping,
    command_basename,
    is_valid_port_mapping,
)

posix_only = pytest.mark.skipif(os.name != "posix", reason="POSIX paths and symlinks")


class TestFlagInjection:
    """Positional values must never be read as options."""

    @pytest.mark.parametrize("value", ["-rf", "--force", "  -x", "--upload-pack=evil", "-"])
    def test_rejects_leading_dash(self, value):
        with pytest.raises(PolicyViolation) as exc_info:
            assert_no_flag_injection(value, "branch")

        violation = exc_info.value
        assert violation.kind is ViolationKind.FLAG_INJECTION
        assert violation.field == "branch"
        assert 'must not start with "-"' in violation.message
        assert "Invalid branch" in violation.message

    @pytest.mark.parametrize("value", ["main", "feature/x-y", "a-b", "", "file.txt"])
    def test_accepts_plain_values(self, value):
        assert assert_no_flag_injection(value, "branch") is None

    def test_violation_is_security_error(self):
        with pytest.raises(PolicyViolation) as exc_info:
            assert_no_flag_injection("--exec=rm", "ref")

        assert exc_info.value.code is ErrorCode.POLICY_VIOLATION
        assert exc_info.value.category is ErrorCategory.SECURITY

    def test_violation_is_logged(self, monkeypatch):
        mock_logger = MagicMock()
        monkeypatch.setattr(guard, "logger", mock_logger)

        with pytest.raises(PolicyViolation):
            assert_no_flag_injection("-rf", "path")

        mock_logger.warning.assert_called_once_with("policy.violation", kind="FlagInjection", field="path")


class TestAllowedCommand:
    def test_bare_name_in_allowlist(self):
        assert_allowed_command("node", {"node", "python"})

    def test_rejects_unlisted_command(self):
        with pytest.raises(PolicyViolation) as exc_info:
            assert_allowed_command("curl", {"node", "python"})

        violation = exc_info.value
        assert violation.kind is ViolationKind.DISALLOWED_COMMAND
        assert 'Command "curl" is not allowed' in violation.message
        assert "Allowed: node, python" in violation.message

    def test_path_qualified_matches_on_basename(self, monkeypatch):
        mock_logger = MagicMock()
        monkeypatch.setattr(guard, "logger", mock_logger)

        assert_allowed_command("/usr/bin/node", {"node"})

        event = mock_logger.warning.call_args.args[0]
        assert event == "policy.path_qualified_command"

    def test_windows_script_suffix_stripped(self):
        assert_allowed_command("C:\\tools\\npx.cmd", ["npx"])

    def test_path_qualified_unlisted_rejected(self):
        with pytest.raises(PolicyViolation, match="is not allowed"):
            assert_allowed_command("/tmp/evil/node-gyp", {"node"})


class TestCommandBasename:
    @pytest.mark.parametrize(
        "program, expected",
        [
            ("git", "git"),
            ("/usr/bin/node", "node"),
            ("C:\\Program Files\\nodejs\\npm.cmd", "npm"),
            ("./build.sh", "build"),
            ("tool.EXE", "tool"),
        ],
    )
    def test_basename(self, program, expected):
        assert command_basename(program) == expected


class TestPathQualifiedCommand:
    @pytest.mark.parametrize("program", ["/tmp/evil/npm", "..\\npm.cmd", "./make"])
    def test_rejects_separators(self, program):
        with pytest.raises(PolicyViolation) as exc_info:
            assert_no_path_qualified_command(program)

        assert exc_info.value.kind is ViolationKind.PATH_QUALIFIED_COMMAND
        assert "Path-qualified commands are not allowed" in exc_info.value.message

    def test_accepts_bare_name(self):
        assert_no_path_qualified_command("npm")


class TestAllowedRoot:
    def test_no_roots_is_unrestricted(self, tmp_path):
        assert_allowed_root("/", "git")

    def test_inside_root(self, tmp_path):
        (tmp_path / "repo").mkdir()

        assert_allowed_root(tmp_path / "repo", "git", roots=[str(tmp_path)])

    def test_root_itself_is_allowed(self, tmp_path):
        assert_allowed_root(tmp_path, "git", roots=[str(tmp_path)])

    def test_outside_root(self, tmp_path):
        allowed = tmp_path / "allowed"
        allowed.mkdir()

        with pytest.raises(PolicyViolation) as exc_info:
            assert_allowed_root(tmp_path / "elsewhere", "git", roots=[str(allowed)])

        assert exc_info.value.kind is ViolationKind.OUTSIDE_ROOT
        assert "outside allowed roots" in exc_info.value.message

    def test_sibling_prefix_is_not_inside(self, tmp_path):
        """``/a/project-other`` is not under ``/a/project``."""
        with pytest.raises(PolicyViolation):
            assert_allowed_root(tmp_path / "project-other", "git", roots=[str(tmp_path / "project")])

    def test_roots_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PARE_GIT_ALLOWED_ROOTS", str(tmp_path))

        assert_allowed_root(tmp_path / "inside", "git")
        with pytest.raises(PolicyViolation):
            assert_allowed_root("/", "git")

    def test_dotdot_resolved_before_check(self, tmp_path):
        with pytest.raises(PolicyViolation):
            assert_allowed_root(tmp_path / "repo" / ".." / "..", "git", roots=[str(tmp_path)])

    def test_nul_byte_rejected(self, tmp_path):
        with pytest.raises(PolicyViolation) as exc_info:
            assert_allowed_root(f"{tmp_path}/re\0po", "git", roots=[str(tmp_path)])

        assert exc_info.value.kind is ViolationKind.NUL_BYTE
        assert exc_info.value.field == "git"
        assert exc_info.value.code is ErrorCode.FORMAT_ERROR


class TestSafeFilePath:
    @pytest.mark.parametrize("path", ["../secret", "a/../../b", "..", "a\\..\\b"])
    def test_rejects_traversal(self, tmp_path, path):
        with pytest.raises(PolicyViolation) as exc_info:
            assert_safe_file_path(path, tmp_path)

        assert exc_info.value.kind is ViolationKind.PATH_TRAVERSAL
        assert "path traversal" in exc_info.value.message

    @pytest.mark.parametrize("path", ["/etc/pa\0sswd", "sub/\0x"])
    def test_rejects_nul_byte(self, tmp_path, path):
        with pytest.raises(PolicyViolation) as exc_info:
            assert_safe_file_path(path, tmp_path, field="file")

        assert exc_info.value.kind is ViolationKind.NUL_BYTE
        assert exc_info.value.field == "file"
        assert "NUL byte" in exc_info.value.message

    def test_dots_inside_names_are_fine(self, tmp_path):
        assert_safe_file_path("notes..txt", tmp_path)
        assert_safe_file_path("src/...", tmp_path)

    def test_relative_path_inside(self, tmp_path):
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "main.py").write_text("")

        assert_safe_file_path("src/main.py", tmp_path)

    def test_nonexistent_relative_path_passes(self, tmp_path):
        assert_safe_file_path("new/file.txt", tmp_path)

    def test_absolute_path_inside(self, tmp_path):
        target = tmp_path / "file.txt"
        target.write_text("")

        assert_safe_file_path(str(target), tmp_path)

    @posix_only
    def test_absolute_path_outside(self, tmp_path):
        with pytest.raises(PolicyViolation) as exc_info:
            assert_safe_file_path("/etc/passwd", tmp_path, field="file")

        assert exc_info.value.kind is ViolationKind.OUTSIDE_ROOT
        assert exc_info.value.field == "file"
        assert "outside the working directory" in exc_info.value.message

    @posix_only
    def test_symlink_escape(self, tmp_path):
        work = tmp_path / "work"
        outside = tmp_path / "outside"
        work.mkdir()
        outside.mkdir()
        (outside / "secret.txt").write_text("token")
        (work / "link.txt").symlink_to(outside / "secret.txt")

        with pytest.raises(PolicyViolation) as exc_info:
            assert_safe_file_path("link.txt", work)

        assert exc_info.value.kind is ViolationKind.SYMLINK_ESCAPE
        assert "symlink resolves to" in exc_info.value.message

    @posix_only
    def test_dangling_symlink_escape(self, tmp_path):
        work = tmp_path / "work"
        work.mkdir()
        (work / "dangling").symlink_to(tmp_path / "missing")

        with pytest.raises(PolicyViolation, match="symlink resolves to"):
            assert_safe_file_path("dangling", work)

    @posix_only
    def test_symlink_inside_is_fine(self, tmp_path):
        (tmp_path / "real.txt").write_text("")
        (tmp_path / "alias.txt").symlink_to(tmp_path / "real.txt")

        assert_safe_file_path("alias.txt", tmp_path)


class TestSafeVolumeMount:
    @pytest.mark.parametrize(
        "value, matched",
        [
            ("/:/host", "/"),
            ("/etc:/etc", "/etc"),
            ("/etc/nginx:/etc/nginx:ro", "/etc"),
            ("/var/run/docker.sock:/var/run/docker.sock", "/var/run/docker.sock"),
            ("//proc:/p", "/proc"),
            ("/root/.ssh:/keys", "/root"),
            ("/sys/../sys:/s", "/sys"),
        ],
    )
    def test_rejects_dangerous_host_paths(self, value, matched):
        with pytest.raises(PolicyViolation) as exc_info:
            assert_safe_volume_mount(value)

        assert exc_info.value.kind is ViolationKind.UNSAFE_VOLUME_MOUNT
        assert f'dangerous host path "{matched}"' in exc_info.value.message

    @pytest.mark.parametrize("value", ["C:\\:/data", "D:/:/data", "c:\\"])
    def test_rejects_windows_drive_roots(self, value):
        with pytest.raises(PolicyViolation, match="dangerous host path"):
            assert_safe_volume_mount(value)

    @pytest.mark.parametrize(
        "value",
        [
            "pgdata:/var/lib/postgresql/data",
            "./src:/app",
            "/home/dev/project:/app",
            "/etcetera:/x",
            "C:\\Users\\dev\\app:/app",
            "/tmp/cache:/cache:rw",
        ],
    )
    def test_accepts_safe_mounts(self, value):
        assert_safe_volume_mount(value)


class TestSafeUrl:
    @pytest.mark.parametrize("url", ["https://example.com", "http://localhost:8080/x", "HTTPS://EXAMPLE.COM"])
    def test_accepts_http_and_https(self, url):
        assert_safe_url(url)

    @pytest.mark.parametrize("url", ["file:///etc/passwd", "ftp://host", "javascript:alert(1)", "example.com"])
    def test_rejects_other_schemes(self, url):
        with pytest.raises(PolicyViolation) as exc_info:
            assert_safe_url(url)

        assert exc_info.value.kind is ViolationKind.UNSAFE_URL_SCHEME
        assert "Unsafe URL scheme" in exc_info.value.message

    @pytest.mark.parametrize("url", ["", "   "])
    def test_rejects_empty(self, url):
        with pytest.raises(PolicyViolation, match="URL must not be empty"):
            assert_safe_url(url)


class TestSafeHeader:
    def test_accepts_plain_header(self):
        assert_safe_header("Authorization", "Bearer abc")

    @pytest.mark.parametrize(
        "key, value",
        [
            ("X-Test", "a\r\nInjected: 1"),
            ("X-Test\n", "a"),
            ("X-Test", "a\0b"),
        ],
    )
    def test_rejects_control_characters(self, key, value):
        with pytest.raises(PolicyViolation) as exc_info:
            assert_safe_header(key, value)

        assert exc_info.value.kind is ViolationKind.HEADER_INJECTION
        assert "header injection" in exc_info.value.message


class TestPortMapping:
    @pytest.mark.parametrize(
        "value",
        [
            "8080",
            "8080:80",
            "8080:80/udp",
            "127.0.0.1:8080:80/tcp",
            "8000-8010:8000-8010",
            "3000-3005",
            "[::1]:8080:80",
        ],
    )
    def test_valid(self, value):
        assert is_valid_port_mapping(value)
        assert_valid_port_mapping(value)

    @pytest.mark.parametrize(
        "value",
        ["0:80", "70000:80", "8010-8000:80", "abc", "8080:80/http", "", "8080:", "1.2.3:80:80"],
    )
    def test_invalid(self, value):
        assert not is_valid_port_mapping(value)
        with pytest.raises(PolicyViolation) as exc_info:
            assert_valid_port_mapping(value, field="publish")

        assert exc_info.value.kind is ViolationKind.INVALID_PORT_MAPPING
        assert exc_info.value.field == "publish"
        assert "Invalid port mapping" in exc_info.value.message
