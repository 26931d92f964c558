"""
Settings for the tokenprinter tools.

Responsibilities:
- Resolve the settings file path with environment and XDG support
- Load the JSON settings, falling back to defaults when the file is missing
- Expose discovery timeouts and limits as a DiscoverySettings object
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

from .exceptions import InvalidConfigurationError

logger = logging.getLogger(__name__)

APP_DIR = "tokenprinter"


def default_config_dir() -> Path:
    """
    Resolve the settings directory using:
    1) $XDG_CONFIG_HOME/tokenprinter
    2) ~/.config/tokenprinter
    """
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / APP_DIR
    return Path.home() / ".config" / APP_DIR


def get_config_path() -> str:
    """Return the settings path honoring the TOKENPRINTER_CONFIG_PATH override."""
    return os.environ.get("TOKENPRINTER_CONFIG_PATH", str(default_config_dir() / "config.json"))


@dataclass
class DiscoverySettings:
    """Scanner timeouts (seconds) and sweep limits."""

    network_ports: tuple = (9100, 515, 631)
    network_hosts: int = 20
    network_probe_timeout: float = 1.0
    max_concurrent_probes: int = 60
    wifi_browse_timeout: float = 5.0
    wifi_hosts: int = 10
    wifi_ports: tuple = (9100, 515, 631, 8080, 80)
    wifi_probe_timeout: float = 0.5
    wifi_identify_timeout: float = 1.0
    bluetooth_scan_timeout: float = 10.0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "DiscoverySettings":
        data = data or {}
        known = {f.name: f for f in fields(cls)}
        values = {}
        for key, value in data.items():
            if key not in known:
                logger.warning(f"[Config] Ignoring unknown discovery setting: {key}")
                continue
            default = known[key].default
            try:
                if isinstance(default, tuple):
                    values[key] = tuple(int(v) for v in value)
                else:
                    values[key] = type(default)(value)
            except (TypeError, ValueError) as e:
                raise InvalidConfigurationError(
                    f"Invalid discovery setting '{key}'",
                    context={'value': value, 'error': str(e)}
                ) from e
        return cls(**values)


@dataclass
class Settings:
    store_path: str
    log_level: str = "INFO"
    discovery: DiscoverySettings = field(default_factory=DiscoverySettings)


def load_settings(path: Optional[str] = None) -> Settings:
    """
    Load settings from the JSON file, using defaults for anything missing.

    Args:
        path: Settings file, defaults to get_config_path()

    Returns:
        Settings object

    Raises:
        InvalidConfigurationError: If the file exists but is not valid JSON
    """
    cfg_path = Path(path or get_config_path())
    data: Dict[str, Any] = {}
    if cfg_path.exists():
        try:
            with cfg_path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise InvalidConfigurationError(
                f"Failed to load configuration from {cfg_path}",
                context={'path': str(cfg_path), 'error': str(e)}
            ) from e
        logger.debug(f"[Config] Configuration loaded from {cfg_path}")

    store_path = (data.get("store") or {}).get("path") or str(cfg_path.parent / "printers.json")
    log_level = os.environ.get("TOKENPRINTER_LOG_LEVEL") or (data.get("logging") or {}).get("level") or "INFO"

    return Settings(
        store_path=os.path.expanduser(store_path),
        log_level=str(log_level).upper(),
        discovery=DiscoverySettings.from_dict(data.get("discovery")),
    )
