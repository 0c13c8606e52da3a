"""
Configuration loader for Remote Mouse.
Supports YAML config files with sensible defaults.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)


# Default configuration
DEFAULT_CONFIG = {
    "server": {
        "port": 3000,
        "host": "0.0.0.0",
        "ws_port": None,
        "cors_origin": "*",
    },
    "mouse": {
        "max_delta": 100,
        "smoothing": 0.3,
        "min_move": 1,
        "reset_gap_ms": 100,
        "backend": "auto",
    },
    "sampler": {
        "base_sensitivity": 1.5,
        "min_sensitivity": 0.5,
        "max_sensitivity": 5.0,
        "sensitivity_step": 1.2,
        "min_speed_multiplier": 0.5,
        "max_speed_multiplier": 2.0,
        "speed_scale": 10,
        "dead_zone": 0.1,
    },
    "client": {
        "timeout_seconds": 5,
    },
}


def get_config_paths() -> list[Path]:
    """Get list of possible config file locations (in priority order)."""
    paths = []
    
    # 1. Current directory
    paths.append(Path.cwd() / "config.yaml")
    
    # 2. XDG config directory
    xdg_config = os.environ.get("XDG_CONFIG_HOME", "")
    if xdg_config:
        paths.append(Path(xdg_config) / "remote-mouse" / "config.yaml")
    
    # 3. ~/.config/remote-mouse/
    paths.append(Path.home() / ".config" / "remote-mouse" / "config.yaml")
    
    # 4. ~/.remote-mouse.yaml
    paths.append(Path.home() / ".remote-mouse.yaml")
    
    return paths


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries."""
    result = base.copy()
    
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    
    return result


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from file.
    
    Args:
        config_path: Explicit config file path. If None, searches default locations.
    
    Returns:
        Configuration dictionary with defaults filled in.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    
    if config_path:
        paths = [Path(config_path)]
    else:
        paths = get_config_paths()
    
    for path in paths:
        if path.exists():
            try:
                with open(path, "r") as f:
                    file_config = yaml.safe_load(f) or {}
                config = deep_merge(config, file_config)
                logger.debug("Loaded config from %s", path)
                break
            except (OSError, yaml.YAMLError) as e:
                logger.warning("Failed to load config from %s: %s", path, e)
    
    return config


def get_local_ip() -> str:
    """
    Get the local network IP address.
    
    Returns:
        Local IP address string (e.g., "192.168.1.100")
    """
    try:
        import netifaces
    except ImportError:
        return "127.0.0.1"
    
    interfaces = netifaces.interfaces()
    
    # Wired first, then wireless
    priority = ["eth", "enp", "wlan", "wlp", "eno", "ens"]
    ordered = [i for p in priority for i in interfaces if i.startswith(p)]
    ordered += [i for i in interfaces if i not in ordered and i != "lo"]
    
    for iface in ordered:
        try:
            addrs = netifaces.ifaddresses(iface)
        except ValueError:
            continue
        for addr in addrs.get(netifaces.AF_INET, []):
            ip = addr.get("addr", "")
            if ip and not ip.startswith("127."):
                return ip
    
    return "127.0.0.1"


class Config:
    """Configuration wrapper with easy access to settings."""
    
    def __init__(self, config_path: Optional[Path] = None):
        self._config = load_config(config_path)
        
        # Resolve "auto" host
        if self._config["server"]["host"] == "auto":
            self._config["server"]["host"] = get_local_ip()
    
    def set(self, section: str, key: str, value: Any) -> None:
        """Override a single setting (used for CLI flags)."""
        self._config.setdefault(section, {})[key] = value
    
    @property
    def host(self) -> str:
        return self._config["server"]["host"]
    
    @property
    def port(self) -> int:
        return int(self._config["server"]["port"])
    
    @property
    def ws_port(self) -> int:
        """WebSocket motion channel port (one above HTTP unless set)."""
        ws_port = self._config["server"].get("ws_port")
        if ws_port is None:
            return self.port + 1
        return int(ws_port)
    
    @property
    def cors_origin(self) -> str:
        return self._config["server"]["cors_origin"]
    
    @property
    def max_delta(self) -> float:
        return float(self._config["mouse"]["max_delta"])
    
    @property
    def smoothing(self) -> float:
        return float(self._config["mouse"]["smoothing"])
    
    @property
    def min_move(self) -> float:
        return float(self._config["mouse"]["min_move"])
    
    @property
    def reset_gap_ms(self) -> float:
        return float(self._config["mouse"]["reset_gap_ms"])
    
    @property
    def backend(self) -> str:
        return self._config["mouse"]["backend"]
    
    @property
    def sampler(self) -> Dict[str, float]:
        return dict(self._config["sampler"])
    
    @property
    def client_timeout(self) -> float:
        return float(self._config["client"]["timeout_seconds"])
    
    def to_dict(self) -> Dict[str, Any]:
        """Return config as dictionary."""
        return copy.deepcopy(self._config)


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reload_config(config_path: Optional[Path] = None) -> Config:
    """Reload configuration from file."""
    global _config
    _config = Config(config_path)
    return _config
