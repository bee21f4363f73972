"""test_sanitize.py - ANSI stripping and path sanitization."""

import pytest

from pare.sanitize import REDACTED, sanitize_all_paths_enabled, sanitize_error_output, strip_ansi


class TestStripAnsi:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("\x1b[31mred\x1b[0m", "red"),
            ("\x1b[1;32;40mbold\x1b[m", "bold"),
            ("\x1b[2K\x1b[1Gprogress", "progress"),
            ("\x1b]8;;https://example.com\x07link\x1b]8;;\x07", "link"),
            ("\x1b]0;title\x1b\\text", "text"),
            ("plain text", "plain text"),
            ("", ""),
        ],
    )
    def test_strip(self, raw, expected):
        assert strip_ansi(raw) == expected


class TestSanitizeHomePaths:
    def test_linux_home(self):
        assert sanitize_error_output("/home/dave/.gitconfig: Permission denied") == "~/.gitconfig: Permission denied"

    def test_macos_home(self):
        assert sanitize_error_output("/Users/dave/projects/app/src/index.ts") == "~/projects/app/src/index.ts"

    def test_root_home(self):
        assert sanitize_error_output("/root/.bashrc: No such file") == "~/.bashrc: No such file"

    def test_windows_home(self):
        assert sanitize_error_output("C:\\Users\\dave\\Documents\\file.txt") == "~\\Documents\\file.txt"

    @pytest.mark.parametrize("drive", ["c", "D"])
    def test_windows_drive_letter_case(self, drive):
        assert sanitize_error_output(f"{drive}:\\Users\\dave\\file.txt") == "~\\file.txt"

    def test_multiple_paths(self):
        text = "error in /home/alice/project/a.ts and /Users/bob/project/b.ts"

        assert sanitize_error_output(text) == "error in ~/project/a.ts and ~/project/b.ts"

    @pytest.mark.parametrize("text", ["./src/index.ts", "Error: command failed", "", "/etc/nginx/nginx.conf"])
    def test_unchanged(self, text):
        assert sanitize_error_output(text) == text


class TestSanitizeAllPaths:
    """Broad mode: every absolute path is reduced to its basename."""

    @pytest.fixture(autouse=True)
    def broad_mode(self, monkeypatch):
        monkeypatch.setenv("PARE_SANITIZE_ALL_PATHS", "true")

    @pytest.mark.parametrize(
        "path, basename",
        [
            ("/etc/nginx/nginx.conf", "nginx.conf"),
            ("/var/log/syslog", "syslog"),
            ("/opt/homebrew/bin/node", "node"),
            ("/usr/local/bin/git", "git"),
            ("/tmp/build/output.js", "output.js"),
            ("/srv/www/index.html", "index.html"),
            ("/nix/store/abc123-pkg", "abc123-pkg"),
        ],
    )
    def test_unix_system_paths(self, path, basename):
        assert sanitize_error_output(path) == f"{REDACTED}/{basename}"

    def test_windows_system_paths(self):
        assert sanitize_error_output("D:\\tools\\node\\node.exe") == f"{REDACTED}\\node.exe"
        assert sanitize_error_output("C:\\Windows\\System32\\cmd.exe") == f"{REDACTED}\\cmd.exe"

    def test_home_paths_still_use_tilde(self):
        assert sanitize_error_output("/home/dave/project/file.ts") == "~/project/file.ts"
        assert sanitize_error_output("/Users/alice/code/app.js") == "~/code/app.js"

    def test_mixed(self):
        text = "error: /home/dave/app.ts requires /etc/ssl/cert.pem"

        assert sanitize_error_output(text) == "error: ~/app.ts requires <redacted-path>/cert.pem"

    def test_other_values_disable(self, monkeypatch):
        monkeypatch.setenv("PARE_SANITIZE_ALL_PATHS", "false")

        assert sanitize_error_output("/etc/nginx/nginx.conf") == "/etc/nginx/nginx.conf"
        assert sanitize_error_output("C:\\Program Files\\app\\bin.exe") == "C:\\Program Files\\app\\bin.exe"


class TestSanitizeSetting:
    def test_disabled_by_default(self):
        assert sanitize_all_paths_enabled() is False

    def test_enabled_from_settings_file(self, write_settings):
        write_settings({"sanitize": {"all_paths": True}})

        assert sanitize_all_paths_enabled() is True
        assert sanitize_error_output("/var/log/syslog") == f"{REDACTED}/syslog"

    def test_environment_overrides_settings(self, write_settings, monkeypatch):
        write_settings({"sanitize": {"all_paths": True}})
        monkeypatch.setenv("PARE_SANITIZE_ALL_PATHS", "false")

        assert sanitize_all_paths_enabled() is False
