"""
Pytest configuration and shared fixtures for vimgreet tests.

Provides fake greetd transports, sample configs and subprocess mocks.
"""

import os
import pytest
from unittest.mock import MagicMock, patch
from pathlib import Path
import sys

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


# ============ Key Helpers ============

def press(target, *names):
    """Feed key names ("a", "enter", "ctrl+w") to a controller; return the last action."""
    from modal import KeyPress

    action = None
    for name in names:
        action = target.handle_key(KeyPress.of(name))
    return action


def type_text(target, text):
    """Type each character of text as a key press."""
    from modal import KeyPress

    for ch in text:
        target.handle_key(KeyPress(ch, ch))


@pytest.fixture
def keys():
    """Expose the key helpers to tests."""
    class Keys:
        pass
    helpers = Keys()
    helpers.press = press
    helpers.type = type_text
    return helpers


# ============ Greeter Fixtures ============

@pytest.fixture
def sway_session():
    """A Wayland session with desktop names."""
    from system.session import Session, SessionType

    return Session(
        name="Sway",
        slug="sway",
        exec="sway --unsupported-gpu",
        session_type=SessionType.WAYLAND,
        desktop_names=["sway", "wlroots"],
    )


@pytest.fixture
def scripted_transport():
    """
    Transport that replays canned greetd responses and records requests.
    """
    class ScriptedTransport:
        def __init__(self):
            self.responses = []
            self.requests = []

        def request(self, message):
            self.requests.append(message)
            if not self.responses:
                return {"type": "success"}
            return self.responses.pop(0)

        def close(self):
            pass

    return ScriptedTransport()


@pytest.fixture
def demo_client():
    """A greetd client on the demo transport."""
    from greeter.ipc import GreetdClient

    return GreetdClient.connect(demo=True)


# ============ Onboarding Fixtures ============

@pytest.fixture
def sample_updates():
    """Two update categories, one with a required package and a sudo command."""
    from onboarding.config import CommandConfig, PackageItem, UpdateCategory

    return [
        UpdateCategory(
            name="Desktop",
            enabled_by_default=True,
            packages=[
                PackageItem(
                    title="Firefox",
                    required=True,
                    commands=[CommandConfig("Install Firefox", ["flatpak", "install", "firefox"])],
                ),
                PackageItem(
                    title="GIMP",
                    enabled_by_default=False,
                    commands=[CommandConfig("Install GIMP", ["flatpak", "install", "gimp"])],
                ),
            ],
        ),
        UpdateCategory(
            name="System",
            enabled_by_default=False,
            packages=[
                PackageItem(
                    title="Upgrade",
                    commands=[CommandConfig("Upgrade system", ["pacman", "-Syu"], sudo=True)],
                ),
            ],
        ),
    ]


@pytest.fixture
def three_package_category():
    """One required and two optional packages, all on by default."""
    from onboarding.config import CommandConfig, PackageItem, UpdateCategory

    return UpdateCategory(
        name="Office",
        enabled_by_default=True,
        packages=[
            PackageItem(title="Fonts", required=True,
                        commands=[CommandConfig("Install fonts", ["pacman", "-S", "noto-fonts"], sudo=True)]),
            PackageItem(title="LibreOffice",
                        commands=[CommandConfig("Install LibreOffice", ["flatpak", "install", "libreoffice"])]),
            PackageItem(title="Thunderbird",
                        commands=[CommandConfig("Install Thunderbird", ["flatpak", "install", "thunderbird"])]),
        ],
    )


@pytest.fixture
def dryrun_config():
    """Default config in dry-run mode."""
    from onboarding.config import OnboardConfig

    config = OnboardConfig()
    config.general.dryrun = True
    return config


@pytest.fixture
def dryrun_wizard(dryrun_config):
    """Wizard over the dry-run service."""
    from onboarding.service import DryrunService
    from onboarding.wizard import OnboardWizard

    return OnboardWizard(dryrun_config, DryrunService())


@pytest.fixture
def mock_service():
    """A MagicMock standing in for LiveService."""
    service = MagicMock()
    service.dryrun = False
    service.check_network.return_value = True
    service.list_locales.return_value = ["de_DE.UTF-8", "en_US.UTF-8"]
    service.list_keymaps.return_value = ["de", "us"]
    service.list_timezones.return_value = ["Europe/Berlin", "UTC"]
    service.create_user.return_value = None
    service.run_command.return_value = ""
    service.run_command_sudo.return_value = ""
    return service


# ============ Subprocess Fixtures ============

@pytest.fixture
def mock_subprocess():
    """Mock subprocess.run for tests."""
    with patch('subprocess.run') as mock_run:
        mock_run.return_value = MagicMock(
            returncode=0,
            stdout="",
            stderr="",
        )
        yield mock_run


@pytest.fixture
def clean_env():
    """Remove vimgreet-related environment variables for the test."""
    saved = {k: os.environ.pop(k) for k in ("GREETD_SOCK", "VIMGREET_LOG") if k in os.environ}
    yield
    os.environ.update(saved)


# ============ Marker Configuration ============

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "unit: fast unit tests with no external deps"
    )

