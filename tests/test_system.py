"""
Tests for session discovery, user discovery and power control.
"""

import pytest
from unittest.mock import MagicMock


def _desktop(directory, name, body):
    directory.mkdir(parents=True, exist_ok=True)
    (directory / f"{name}.desktop").write_text(body)


@pytest.mark.unit
class TestSessionDiscovery:
    """Tests for .desktop session discovery."""

    def test_wayland_and_x11(self, tmp_path):
        from system.session import SessionType, discover_sessions

        _desktop(tmp_path / "wayland-sessions", "sway",
                 "[Desktop Entry]\nName=Sway\nExec=sway\nDesktopNames=sway;wlroots;\n")
        _desktop(tmp_path / "xsessions", "i3",
                 "[Desktop Entry]\nName=i3\nExec=i3\n")

        sessions = discover_sessions(str(tmp_path))

        assert [s.slug for s in sessions] == ["i3", "sway"]
        sway = sessions[1]
        assert sway.session_type is SessionType.WAYLAND
        assert sway.build_env() == ["XDG_SESSION_TYPE=wayland", "XDG_CURRENT_DESKTOP=sway:wlroots"]
        assert sessions[0].build_env() == ["XDG_SESSION_TYPE=x11"]

    def test_hidden_and_incomplete_skipped(self, tmp_path):
        from system.session import discover_sessions

        base = tmp_path / "wayland-sessions"
        _desktop(base, "hidden", "[Desktop Entry]\nName=Hidden\nExec=x\nHidden=true\n")
        _desktop(base, "nodisplay", "[Desktop Entry]\nName=NoDisplay\nExec=x\nNoDisplay=True\n")
        _desktop(base, "noexec", "[Desktop Entry]\nName=NoExec\n")
        _desktop(base, "nosection", "Name=Nothing\n")

        assert discover_sessions(str(tmp_path)) == []

    def test_dedup_by_slug_across_dirs(self, tmp_path):
        from system.session import discover_sessions

        _desktop(tmp_path / "a" / "wayland-sessions", "gnome", "[Desktop Entry]\nName=GNOME\nExec=gnome-session\n")
        _desktop(tmp_path / "b" / "xsessions", "gnome", "[Desktop Entry]\nName=GNOME\nExec=gnome-session\n")

        sessions = discover_sessions(f"{tmp_path / 'a'}:{tmp_path / 'b'}")
        assert len(sessions) == 1

    def test_build_cmd_splits_exec(self, sway_session):
        assert sway_session.build_cmd() == ["sway", "--unsupported-gpu"]

    def test_build_cmd_falls_back_on_bad_quotes(self):
        from system.session import Session, SessionType

        session = Session("Broken", "broken", 'run "unterminated', SessionType.X11)
        assert session.build_cmd() == ['run "unterminated']


@pytest.mark.unit
class TestUserDiscovery:
    """Tests for /etc/passwd user discovery."""

    PASSWD = "\n".join([
        "root:x:0:0:root:/root:/bin/bash",
        "alice:x:1000:1000:Alice Liddell,,,:/home/alice:/bin/bash",
        "bob:x:1001:1001:bob:/home/bob:/bin/zsh",
        "svc:x:1002:1002::/srv:/usr/sbin/nologin",
        "greeter:x:1003:1003::/var/lib/greeter:/bin/sh",
        "nobody:x:65534:65534::/:/bin/false",
        "broken line",
    ])

    def test_filters_and_display_names(self, tmp_path):
        from system.user import discover_users

        passwd = tmp_path / "passwd"
        passwd.write_text(self.PASSWD)

        users = discover_users(passwd, tmp_path / "missing.defs")

        assert [u.username for u in users] == ["alice", "bob"]
        assert users[0].display_name == "Alice Liddell"
        assert users[0].label == "Alice Liddell (alice)"
        assert users[1].display_name is None

    def test_uid_range_from_login_defs(self, tmp_path):
        from system.user import discover_users, read_uid_range

        defs = tmp_path / "login.defs"
        defs.write_text("# comment\nUID_MIN  1001\nUID_MAX 2000\n")
        passwd = tmp_path / "passwd"
        passwd.write_text(self.PASSWD)

        assert read_uid_range(defs) == (1001, 2000)
        assert [u.username for u in discover_users(passwd, defs)] == ["bob"]

    def test_missing_passwd(self, tmp_path):
        from system.user import discover_users

        assert discover_users(tmp_path / "nope", tmp_path / "nope.defs") == []


@pytest.mark.unit
class TestPowerControl:
    """Tests for systemctl power actions."""

    def test_demo_does_nothing(self, mock_subprocess):
        from system.power import PowerControl

        PowerControl(demo=True).reboot()
        mock_subprocess.assert_not_called()

    def test_reboot_runs_systemctl(self, mock_subprocess):
        from system.power import PowerControl

        PowerControl().reboot()
        assert mock_subprocess.call_args[0][0] == ["systemctl", "reboot"]

    def test_poweroff_failure_raises(self, mock_subprocess):
        from common.exceptions import PowerError
        from system.power import PowerControl

        mock_subprocess.return_value = MagicMock(returncode=1, stdout="", stderr="Access denied")

        with pytest.raises(PowerError) as exc:
            PowerControl().poweroff()
        assert exc.value.message == "Poweroff failed: Access denied"

    def test_missing_systemctl(self, mock_subprocess):
        from common.exceptions import PowerError
        from system.power import PowerControl

        mock_subprocess.side_effect = FileNotFoundError("systemctl")
        with pytest.raises(PowerError):
            PowerControl().reboot()
