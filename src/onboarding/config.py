"""
Onboarding configuration.

Loaded from a TOML document; every section and key is optional and falls
back to the defaults below. Example:

    [general]
    title = "Welcome"

    [[updates]]
    name = "Browsers"
    enabled_by_default = true

    [[updates.packages]]
    title = "Firefox"
    required = false

    [[updates.packages.commands]]
    name = "Install Firefox"
    command = ["flatpak", "install", "-y", "flathub", "org.mozilla.firefox"]
    sudo = false
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

from common.exceptions import ConfigLoadError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("/etc/vimgreet/onboard.toml")


@dataclass
class GeneralConfig:
    title: str = "System Setup"
    subtitle: str = "Welcome to your new system"
    dryrun: bool = False


@dataclass
class NetworkConfig:
    enabled: bool = True
    program: str = "wifitui"
    args: List[str] = field(default_factory=list)
    skip_if_connected: bool = True


@dataclass
class UserConfig:
    groups: List[str] = field(default_factory=lambda: ["wheel"])
    shell: str = "/bin/bash"
    min_password_length: int = 8


@dataclass
class LocaleConfig:
    enabled: bool = True
    default_locale: str = "en_US.UTF-8"


@dataclass
class KeyboardConfig:
    enabled: bool = True
    default_layout: str = "us"


@dataclass
class PreferencesConfig:
    timezone_enabled: bool = True
    default_timezone: str = "UTC"
    ntp_enabled: bool = True
    keyring_enabled: bool = True


@dataclass
class CompletionConfig:
    action: str = "reboot"
    remove_initial_session: bool = True


@dataclass
class CommandConfig:
    """One command of a package; argv, optionally run through sudo."""
    name: str = ""
    command: List[str] = field(default_factory=list)
    sudo: bool = False


@dataclass
class PackageItem:
    title: str = ""
    description: str = ""
    enabled_by_default: Optional[bool] = None
    required: bool = False
    commands: List[CommandConfig] = field(default_factory=list)

    def is_default_enabled(self, category_default: bool) -> bool:
        """Required wins, then the package default, then the category's."""
        if self.required:
            return True
        if self.enabled_by_default is None:
            return category_default
        return self.enabled_by_default


@dataclass
class UpdateCategory:
    name: str = ""
    description: str = ""
    enabled_by_default: bool = False
    packages: List[PackageItem] = field(default_factory=list)


@dataclass
class OnboardConfig:
    general: GeneralConfig = field(default_factory=GeneralConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    user: UserConfig = field(default_factory=UserConfig)
    locale: LocaleConfig = field(default_factory=LocaleConfig)
    keyboard: KeyboardConfig = field(default_factory=KeyboardConfig)
    preferences: PreferencesConfig = field(default_factory=PreferencesConfig)
    completion: CompletionConfig = field(default_factory=CompletionConfig)
    updates: List[UpdateCategory] = field(default_factory=list)

    @property
    def has_updates(self) -> bool:
        return bool(self.updates)


_SECTIONS = {
    "general": GeneralConfig,
    "network": NetworkConfig,
    "user": UserConfig,
    "locale": LocaleConfig,
    "keyboard": KeyboardConfig,
    "preferences": PreferencesConfig,
    "completion": CompletionConfig,
}


def _check_type(path: str, name: str, value: Any, expected: type) -> None:
    ok = isinstance(value, expected)
    if expected is int and isinstance(value, bool):
        ok = False
    if not ok:
        raise ConfigLoadError(path, f"{name} must be {expected.__name__}")


def _str_list(path: str, name: str, value: Any) -> List[str]:
    _check_type(path, name, value, list)
    for item in value:
        _check_type(path, f"{name}[]", item, str)
    return list(value)


def _build_section(path: str, section: str, cls, data: Any):
    """Build a flat section dataclass, typing each key by its default."""
    _check_type(path, section, data, dict)
    instance = cls()
    for f in fields(cls):
        if f.name not in data:
            continue
        value = data[f.name]
        name = f"{section}.{f.name}"
        default = getattr(instance, f.name)
        if isinstance(default, list):
            value = _str_list(path, name, value)
        else:
            _check_type(path, name, value, type(default))
        setattr(instance, f.name, value)
    return instance


def _build_command(path: str, data: Any) -> CommandConfig:
    _check_type(path, "command", data, dict)
    name = data.get("name", "")
    sudo = data.get("sudo", False)
    _check_type(path, "command.name", name, str)
    _check_type(path, "command.sudo", sudo, bool)
    argv = _str_list(path, "command.command", data.get("command", []))
    return CommandConfig(name=name, command=argv, sudo=sudo)


def _build_package(path: str, data: Any) -> PackageItem:
    _check_type(path, "package", data, dict)
    item = PackageItem(
        title=data.get("title", ""),
        description=data.get("description", ""),
        enabled_by_default=data.get("enabled_by_default"),
        required=data.get("required", False),
    )
    _check_type(path, "package.title", item.title, str)
    _check_type(path, "package.description", item.description, str)
    _check_type(path, "package.required", item.required, bool)
    if item.enabled_by_default is not None:
        _check_type(path, "package.enabled_by_default", item.enabled_by_default, bool)
    commands = data.get("commands", [])
    _check_type(path, "package.commands", commands, list)
    item.commands = [_build_command(path, c) for c in commands]
    return item


def _build_category(path: str, data: Any) -> UpdateCategory:
    _check_type(path, "updates", data, dict)
    category = UpdateCategory(
        name=data.get("name", ""),
        description=data.get("description", ""),
        enabled_by_default=data.get("enabled_by_default", False),
    )
    _check_type(path, "updates.name", category.name, str)
    _check_type(path, "updates.description", category.description, str)
    _check_type(path, "updates.enabled_by_default", category.enabled_by_default, bool)
    packages = data.get("packages", [])
    _check_type(path, "updates.packages", packages, list)
    category.packages = [_build_package(path, p) for p in packages]
    return category


def parse_config(data: Dict[str, Any], path: str = "<memory>") -> OnboardConfig:
    """
    Build an OnboardConfig from a parsed TOML document.

    Raises:
        ConfigLoadError: A value has the wrong type
    """
    config = OnboardConfig()
    for section, cls in _SECTIONS.items():
        if section in data:
            setattr(config, section, _build_section(path, section, cls, data[section]))

    updates = data.get("updates", [])
    _check_type(path, "updates", updates, list)
    config.updates = [_build_category(path, c) for c in updates]
    return config


def load_config(path: Optional[Path] = None) -> OnboardConfig:
    """
    Load the onboarding configuration.

    Args:
        path: Config file (default: /etc/vimgreet/onboard.toml)

    Returns:
        Parsed configuration, or defaults when the file does not exist

    Raises:
        ConfigLoadError: The file is unreadable or malformed
    """
    path = path or DEFAULT_CONFIG_PATH
    if not path.exists():
        logger.info(f"No config at {path}, using defaults")
        return OnboardConfig()

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigLoadError(str(path), "invalid TOML", cause=e)
    except OSError as e:
        raise ConfigLoadError(str(path), "cannot read file", cause=e)

    config = parse_config(data, str(path))
    logger.info(f"Loaded config from {path} ({len(config.updates)} update categories)")
    return config
