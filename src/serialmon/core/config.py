"""
Configuration management for serialmon.

Loads server settings from YAML files with environment variable overrides.
The desired-state document (which ports to open) is kept separately by
ConfigStore; this module only covers how the server itself runs.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml


# Default configuration paths
DEFAULT_CONFIG_DIR = Path.home() / ".config" / "serialmon"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
SYSTEM_CONFIG_FILE = Path("/etc/serialmon/config.yaml")


@dataclass
class SerialConfig:
    """Serial port configuration."""

    default_baud: int = 115200
    read_timeout: float = 0.1


@dataclass
class WebConfig:
    """Web server configuration."""

    host: str = "0.0.0.0"
    port: int = 3000


@dataclass
class ObserverConfig:
    """Observer delivery configuration."""

    queue_size: int = 256


@dataclass
class Config:
    """Main configuration for serialmon."""

    serial: SerialConfig = field(default_factory=SerialConfig)
    web: WebConfig = field(default_factory=WebConfig)
    observers: ObserverConfig = field(default_factory=ObserverConfig)
    state_file: Path = field(default_factory=lambda: DEFAULT_CONFIG_DIR / "config.json")
    log_dir: Path = field(default_factory=lambda: DEFAULT_CONFIG_DIR / "logs")
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """Create Config from dictionary."""
        serial_data = data.get("serial", {})
        web_data = data.get("web", {})
        observer_data = data.get("observers", {})

        serial = SerialConfig(
            default_baud=serial_data.get("default_baud", 115200),
            read_timeout=serial_data.get("read_timeout", 0.1),
        )

        web = WebConfig(
            host=web_data.get("host", "0.0.0.0"),
            port=web_data.get("port", 3000),
        )

        observers = ObserverConfig(
            queue_size=observer_data.get("queue_size", 256),
        )

        return cls(
            serial=serial,
            web=web,
            observers=observers,
            state_file=Path(
                data.get("state_file", str(DEFAULT_CONFIG_DIR / "config.json"))
            ),
            log_dir=Path(data.get("log_dir", str(DEFAULT_CONFIG_DIR / "logs"))),
            log_level=data.get("log_level", "INFO"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert Config to dictionary."""
        return {
            "serial": {
                "default_baud": self.serial.default_baud,
                "read_timeout": self.serial.read_timeout,
            },
            "web": {
                "host": self.web.host,
                "port": self.web.port,
            },
            "observers": {
                "queue_size": self.observers.queue_size,
            },
            "state_file": str(self.state_file),
            "log_dir": str(self.log_dir),
            "log_level": self.log_level,
        }


def load_config(
    config_path: Optional[Path] = None,
    create_if_missing: bool = False,
) -> Config:
    """
    Load configuration from YAML file.

    Search order:
    1. Explicit path if provided
    2. SERIALMON_CONFIG environment variable
    3. ~/.config/serialmon/config.yaml
    4. /etc/serialmon/config.yaml
    5. Default values

    Environment variable overrides:
    - SERIALMON_STATE_FILE: Override state_file
    - SERIALMON_LOG_DIR: Override log_dir
    - SERIALMON_LOG_LEVEL: Override log_level
    - SERIALMON_PORT or PORT: Override web.port

    Args:
        config_path: Optional explicit path to config file
        create_if_missing: Create default config if no config found

    Returns:
        Loaded configuration
    """
    if config_path:
        paths_to_try = [config_path]
    else:
        env_path = os.environ.get("SERIALMON_CONFIG")
        paths_to_try = []
        if env_path:
            paths_to_try.append(Path(env_path))
        paths_to_try.extend([DEFAULT_CONFIG_FILE, SYSTEM_CONFIG_FILE])

    config_data = {}
    for path in paths_to_try:
        if path.exists():
            try:
                with open(path) as f:
                    config_data = yaml.safe_load(f) or {}
                break
            except (OSError, yaml.YAMLError):
                continue

    config = Config.from_dict(config_data)
    config = _apply_env_overrides(config)

    if create_if_missing and not any(p.exists() for p in paths_to_try):
        save_config(config, DEFAULT_CONFIG_FILE)

    return config


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config."""
    if "SERIALMON_STATE_FILE" in os.environ:
        config.state_file = Path(os.environ["SERIALMON_STATE_FILE"])

    if "SERIALMON_LOG_DIR" in os.environ:
        config.log_dir = Path(os.environ["SERIALMON_LOG_DIR"])

    if "SERIALMON_LOG_LEVEL" in os.environ:
        config.log_level = os.environ["SERIALMON_LOG_LEVEL"]

    # SERIALMON_PORT wins over the generic PORT
    for var in ("PORT", "SERIALMON_PORT"):
        if var in os.environ:
            try:
                config.web.port = int(os.environ[var])
            except ValueError:
                pass

    return config


def save_config(config: Config, path: Path) -> None:
    """
    Save configuration to YAML file.

    Args:
        config: Configuration to save
        path: Path to save to
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        f.write("# serialmon configuration\n")
        f.write("# Desired ports live in state_file, not here\n\n")
        yaml.dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)


def get_default_config() -> Config:
    """Get default configuration without loading from file."""
    return Config()
