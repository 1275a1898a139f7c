"""
Tests for common module (errors, logging, cleanup) and file helpers.
"""

import pytest
import json
import logging
import os
import stat


@pytest.mark.unit
class TestExceptions:
    """Tests for exception hierarchy."""

    def test_vimgreet_error_basic(self):
        """Test basic VimgreetError."""
        from common.exceptions import VimgreetError

        error = VimgreetError("Something failed")
        assert str(error) == "[VimgreetError] Something failed"
        assert error.recoverable is True

    def test_vimgreet_error_to_dict(self):
        """Test JSON serialization."""
        from common.exceptions import VimgreetError

        error = VimgreetError("Test", code="TEST", details={"key": 1})
        d = error.to_dict()

        assert d["error"] == "TEST"
        assert d["message"] == "Test"
        assert d["details"]["key"] == 1

    def test_socket_not_found(self):
        from common.exceptions import GreetdError, SocketNotFoundError

        error = SocketNotFoundError()
        assert isinstance(error, GreetdError)
        assert error.message == "greetd socket not found (GREETD_SOCK not set)"
        assert error.recoverable is False

    def test_session_start_error_keeps_reason(self):
        from common.exceptions import SessionStartError

        error = SessionStartError("no such binary")
        assert error.reason == "no such binary"
        assert error.message == "Session failed: no such binary"

    def test_config_load_error(self):
        from common.exceptions import ConfigLoadError, OnboardError

        error = ConfigLoadError("/etc/x.toml", "invalid TOML")
        assert isinstance(error, OnboardError)
        assert "/etc/x.toml" in error.message
        assert error.code == "CONFIG_LOAD_FAILED"

    def test_power_error(self):
        from common.exceptions import PowerError

        error = PowerError("Reboot", "permission denied")
        assert error.message == "Reboot failed: permission denied"


@pytest.mark.unit
class TestLogging:
    """Tests for logging configuration."""

    def test_no_log_file_disables_output(self):
        from common.logging_config import setup_logging

        assert setup_logging(None) is False

        root = logging.getLogger()
        assert all(isinstance(h, logging.NullHandler) for h in root.handlers)
        assert not root.isEnabledFor(logging.CRITICAL)

    def test_file_handler_writes(self, tmp_path):
        from common.logging_config import setup_logging

        log_file = tmp_path / "logs" / "greeter.log"
        assert setup_logging(log_file, level=logging.DEBUG) is True

        logging.getLogger("vimgreet.test").info("hello file")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "hello file" in log_file.read_text()
        setup_logging(None)

    def test_json_logs(self, tmp_path):
        from common.logging_config import setup_logging

        log_file = tmp_path / "greeter.json"
        setup_logging(log_file, json_logs=True)

        logging.getLogger("vimgreet.test").warning("structured")
        for handler in logging.getLogger().handlers:
            handler.flush()

        record = json.loads(log_file.read_text().splitlines()[-1])
        assert record["message"] == "structured"
        assert record["level"] == "WARNING"
        setup_logging(None)

    def test_resolve_level(self, clean_env):
        from common.logging_config import resolve_level

        assert resolve_level("debug") == logging.DEBUG
        assert resolve_level(None) == logging.INFO
        assert resolve_level("nonsense") == logging.INFO

    def test_env_overrides_level(self, clean_env, monkeypatch):
        from common.logging_config import resolve_level

        monkeypatch.setenv("VIMGREET_LOG", "ERROR")
        assert resolve_level("DEBUG") == logging.ERROR


@pytest.mark.unit
class TestCleanupRegistry:
    """Tests for cleanup callbacks."""

    def test_runs_in_reverse_order(self):
        from common.resources import CleanupRegistry

        registry = CleanupRegistry()
        order = []
        registry.register(lambda: order.append(1))
        registry.register(lambda: order.append(2))

        registry.cleanup_all()

        assert order == [2, 1]
        assert len(registry) == 0

    def test_failing_callback_does_not_stop_others(self):
        from common.resources import CleanupRegistry

        registry = CleanupRegistry()
        ran = []

        def boom():
            raise RuntimeError("boom")

        registry.register(lambda: ran.append("first"))
        registry.register(boom, "exploding finalizer")

        assert registry.cleanup_all() == 1
        assert ran == ["first"]

    def test_runs_once(self):
        from common.resources import CleanupRegistry

        registry = CleanupRegistry()
        ran = []
        registry.register(lambda: ran.append(1))

        registry.cleanup_all()
        registry.cleanup_all()

        assert ran == [1]

    def test_signal_handlers_installed(self):
        import signal
        from common import resources

        saved = {sig: signal.getsignal(sig) for sig in (signal.SIGTERM, signal.SIGHUP)}
        try:
            resources.install_signal_handlers()
            assert signal.getsignal(signal.SIGTERM) is resources._on_terminate
            assert signal.getsignal(signal.SIGHUP) is resources._on_terminate
        finally:
            for sig, handler in saved.items():
                signal.signal(sig, handler)


@pytest.mark.unit
class TestAtomicWrite:
    """Tests for atomic file replacement."""

    def test_replaces_content_and_keeps_mode(self, tmp_path):
        from utils.atomic_write import atomic_write_text

        target = tmp_path / "config.toml"
        target.write_text("old")
        os.chmod(target, 0o600)

        atomic_write_text(target, "new")

        assert target.read_text() == "new"
        assert stat.S_IMODE(target.stat().st_mode) == 0o600

    def test_no_temp_files_left(self, tmp_path):
        from utils.atomic_write import atomic_write_text

        target = tmp_path / "config.toml"
        atomic_write_text(target, "content")

        assert [p.name for p in tmp_path.iterdir()] == ["config.toml"]
