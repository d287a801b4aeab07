"""
Config system - layered configuration for the server and the router.

Merge order (later overrides earlier):
1. Defaults
2. ``.env`` file (QUILLON_* keys only)
3. Environment variables (QUILLON_* prefix, ``__`` for nesting)
4. Manual overrides
"""

from typing import Any, Dict, Optional
from dataclasses import dataclass, fields
from pathlib import Path
import json
import os

from dotenv import dotenv_values


class ConfigError(Exception):
    """Raised when configuration validation fails."""
    pass


@dataclass
class RoutingConfig:
    """Routing options. ``root_path`` prefixes every controller route."""
    root_path: str = "/"


@dataclass
class ServerConfig:
    """Settings used by Server.build() and the ``serve`` command."""
    root_path: str = "/"
    base_path: str = "/"
    debug: bool = False
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "info"
    force_controllers: bool = True

    @classmethod
    def from_loader(cls, loader: "ConfigLoader") -> "ServerConfig":
        """Build from the ``server`` section of a loader."""
        section = loader.get("server", {}) or {}
        if not isinstance(section, dict):
            raise ConfigError("'server' configuration must be a mapping")

        known = {f.name for f in fields(cls)}
        unknown = set(section) - known
        if unknown:
            raise ConfigError(f"Unknown server settings: {', '.join(sorted(unknown))}")

        config = cls(**section)
        if not isinstance(config.port, int) or isinstance(config.port, bool):
            raise ConfigError(f"server.port must be an integer, got {config.port!r}")
        return config

    @property
    def routing(self) -> RoutingConfig:
        return RoutingConfig(root_path=self.root_path)


class ConfigLoader:
    """
    Loads and merges configuration from defaults, a ``.env`` file, the
    environment and explicit overrides.

    ``QUILLON_SERVER__PORT=9000`` becomes ``{"server": {"port": 9000}}``.
    """

    def __init__(self, env_prefix: str = "QUILLON_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        env_prefix: str = "QUILLON_",
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
        defaults: Optional[Dict[str, Any]] = None,
        environ: Optional[Dict[str, str]] = None,
    ) -> "ConfigLoader":
        """
        Load configuration with proper merge strategy.

        Args:
            env_prefix: Prefix for environment variables
            env_file: Path to a .env file (missing files are ignored)
            overrides: Manual overrides (highest precedence)
            defaults: Base values (lowest precedence)
            environ: Environment to read instead of ``os.environ``
        """
        loader = cls(env_prefix=env_prefix)

        if defaults:
            loader._merge_dict(loader.config_data, defaults)

        if env_file:
            loader._load_env_file(env_file)

        loader._load_from_env(os.environ if environ is None else environ)

        if overrides:
            loader._merge_dict(loader.config_data, overrides)

        return loader

    def _load_env_file(self, path: str):
        if not Path(path).exists():
            return
        for key, value in dotenv_values(path).items():
            if value is not None and key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _load_from_env(self, environ: Dict[str, str]):
        for key, value in environ.items():
            if key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str):
        """Convert QUILLON_SERVER__PORT to a nested dict entry."""
        key = key[len(self.env_prefix):]
        parts = key.lower().split("__")

        current = self.config_data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        current[parts[-1]] = self._parse_value(value)

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        lowered = value.lower()
        if lowered in ("true", "yes", "on"):
            return True
        if lowered in ("false", "no", "off"):
            return False

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def _merge_dict(self, target: dict, source: dict):
        """Deep merge source into target."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._merge_dict(target[key], value)
            else:
                target[key] = value

    def get(self, path: str, default: Any = None) -> Any:
        """Get config value by dot-separated path."""
        current = self.config_data
        for part in path.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    def to_dict(self) -> dict:
        return self.config_data
