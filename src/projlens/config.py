"""Configuration for the projlens background process.

Loads settings from .projlens/config.yaml (or .yml/.json) so the worker
location, the UI bridge address and the configuration handed to the UI can
change without code edits.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigError

# Default WebSocket port for the UI bridge
DEFAULT_WS_PORT = 9160


@dataclass
class WorkerConfig:
    """How to launch the analysis worker."""
    path: Optional[str] = None
    args: List[str] = field(default_factory=list)
    cwd: Optional[str] = None


@dataclass
class BridgeConfig:
    """Where the UI bridge listens."""
    host: str = "127.0.0.1"
    port: int = DEFAULT_WS_PORT


@dataclass
class LoggingConfig:
    """Logging settings."""
    level: str = "INFO"
    log_dir: Optional[str] = "logs"


@dataclass
class AppConfig:
    """Top-level configuration.

    ``ui`` is opaque here; it is delivered unchanged to the UI in reply to
    the config command.
    """
    worker: WorkerConfig = field(default_factory=WorkerConfig)
    bridge: BridgeConfig = field(default_factory=BridgeConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    ui: Dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> 'AppConfig':
        """Create an AppConfig from a dictionary (parsed YAML/JSON)."""
        config = AppConfig()

        worker_data = _section(data, "worker")
        config.worker = WorkerConfig(
            path=worker_data.get("path"),
            args=[str(a) for a in worker_data.get("args", [])],
            cwd=worker_data.get("cwd"),
        )

        bridge_data = _section(data, "bridge")
        config.bridge = BridgeConfig(
            host=bridge_data.get("host", "127.0.0.1"),
            port=int(bridge_data.get("port", DEFAULT_WS_PORT)),
        )

        logging_data = _section(data, "logging")
        config.logging = LoggingConfig(
            level=str(logging_data.get("level", "INFO")).upper(),
            log_dir=logging_data.get("log_dir", "logs"),
        )

        config.ui = _section(data, "ui")

        return config


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    """Return the mapping under ``name``; a missing or null section is empty."""
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a mapping")
    return section


def _find_project_root() -> Path:
    """Walk up from the current directory to the nearest git checkout."""
    current = Path.cwd().resolve()
    while current != current.parent:
        if (current / ".git").exists():
            return current
        current = current.parent
    return Path.cwd()


def _load_config_file(config_path: Path) -> Dict[str, Any]:
    """Load a config file (YAML or JSON).

    Args:
        config_path: Path to the config file.

    Returns:
        Parsed configuration dictionary.

    Raises:
        ConfigError: If the file cannot be read or parsed, or has an
            unsupported extension.
    """
    try:
        content = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {config_path}: {exc}") from exc

    if config_path.suffix in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc
        return data if isinstance(data, dict) else {}

    if config_path.suffix == ".json":
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in {config_path}: {exc}") from exc
        return data if isinstance(data, dict) else {}

    raise ConfigError(f"Unsupported config file format: {config_path.suffix}")


# Module-level cached config
_cached_config: Optional[AppConfig] = None


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load the configuration.

    Searches for config in this order:
    1. Explicit path (if provided)
    2. .projlens/config.yaml
    3. .projlens/config.yml
    4. .projlens/config.json
    5. projlens.config.json (project root)

    If no config file is found, returns defaults.
    """
    global _cached_config

    if _cached_config is not None and config_path is None:
        return _cached_config

    if config_path is not None:
        config = AppConfig.from_dict(_load_config_file(config_path))
        _cached_config = config
        return config

    root = _find_project_root()
    candidates = [
        root / ".projlens" / "config.yaml",
        root / ".projlens" / "config.yml",
        root / ".projlens" / "config.json",
        root / "projlens.config.json",
    ]

    for candidate in candidates:
        if candidate.exists():
            config = AppConfig.from_dict(_load_config_file(candidate))
            _cached_config = config
            return config

    config = AppConfig()
    _cached_config = config
    return config


def reset_config() -> None:
    """Reset the cached configuration (useful for testing)."""
    global _cached_config
    _cached_config = None


def get_config() -> AppConfig:
    """Get the current configuration (cached)."""
    return load_config()
