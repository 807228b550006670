"""
Config system - Layered typed database options with validation.

Merge order (later overrides earlier):
1. Config files (YAML or JSON)
2. .env file
3. Environment variables (SHELLITE_* prefix)
4. Manual overrides
"""

from typing import Any, Dict, List, Optional, Type, get_args, get_origin
from dataclasses import asdict, dataclass, field, fields, MISSING
from pathlib import Path
import json
import logging
import os
import types

from .faults import ConfigFault

logger = logging.getLogger("shellite.config")

__all__ = ["DatabaseOptions", "ConfigLoader", "BACKENDS"]

BACKENDS = ("shell", "native")


@dataclass
class DatabaseOptions:
    """
    Options for a ``Database``.

    Attributes:
        bin: Path of the sqlite3 shell (default: ``sqlite3`` on PATH)
        args: Extra arguments passed to the shell
        readonly: Open the database read-only
        timeout: Busy timeout in milliseconds
        wal: Switch the database to WAL journaling
        ttl: Seconds of inactivity after which the shell is closed
        page: Page size in bytes
        size: Maximum database size in bytes (needs ``page``)
        close_timeout: Seconds a graceful shutdown may take before SIGKILL
        backend: ``"shell"`` or ``"native"``
    """

    bin: Optional[str] = None
    args: List[str] = field(default_factory=list)
    readonly: bool = False
    timeout: Optional[int] = None
    wal: bool = False
    ttl: Optional[float] = None
    page: Optional[int] = None
    size: Optional[int] = None
    close_timeout: float = 5.0
    backend: str = "shell"

    def validate(self) -> "DatabaseOptions":
        if self.backend not in BACKENDS:
            raise ConfigFault("backend", f"expected one of {', '.join(BACKENDS)}, got {self.backend!r}")
        for name in ("timeout", "ttl", "page", "size"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ConfigFault(name, "must not be negative")
        if self.close_timeout <= 0:
            raise ConfigFault("close_timeout", "must be positive")
        if self.size is not None and not self.page:
            raise ConfigFault("size", "requires 'page' to be set")
        return self

    def init_script(self) -> str:
        """SQL run on every fresh session before the first command."""
        statements = []
        if self.wal:
            statements.append("PRAGMA journal_mode=WAL")
            statements.append("PRAGMA synchronous=NORMAL")
        if self.page:
            statements.append(f"PRAGMA page_size={int(self.page)}")
            if self.size:
                statements.append(f"PRAGMA max_page_count={int(self.size) // int(self.page)}")
        return ";\n".join(statements)

    def to_dict(self) -> dict:
        return asdict(self)


class ConfigLoader:
    """
    Loads and merges database options from multiple sources.

    Options may sit at the root of a file or under a ``database`` section;
    the section wins over the root.
    """

    def __init__(self, env_prefix: str = "SHELLITE_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        paths: Optional[List[str]] = None,
        env_prefix: str = "SHELLITE_",
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "ConfigLoader":
        """
        Load configuration from multiple sources with proper merge strategy.

        Args:
            paths: List of config file paths (glob patterns supported)
            env_prefix: Prefix for environment variables
            env_file: Path to .env file
            overrides: Manual overrides (highest precedence)

        Returns:
            Configured ConfigLoader instance
        """
        loader = cls(env_prefix=env_prefix)

        for pattern in paths or []:
            loader._load_from_files(pattern)

        if env_file:
            loader._load_env_file(env_file)

        loader._load_from_env()

        if overrides:
            loader._merge_dict(loader.config_data, {k: v for k, v in overrides.items() if v is not None})

        return loader

    def _load_from_files(self, pattern: str):
        """Load config from JSON or YAML files."""
        from glob import glob

        matches = sorted(glob(pattern))
        if not matches:
            raise ConfigFault("paths", f"no config file matches {pattern!r}")
        for path_str in matches:
            path = Path(path_str)
            if path.suffix == ".json":
                self._load_json_file(path)
            elif path.suffix in (".yaml", ".yml"):
                self._load_yaml_file(path)
            else:
                raise ConfigFault("paths", f"unsupported config file type: {path.name}")
            logger.debug(f"Loaded config file {path}")

    def _load_json_file(self, path: Path):
        """Load config from JSON file."""
        try:
            with open(path) as f:
                data = json.load(f)
        except json.JSONDecodeError as exc:
            raise ConfigFault(str(path), f"invalid JSON: {exc}") from exc
        if data:
            self._merge_dict(self.config_data, data)

    def _load_yaml_file(self, path: Path):
        """Load config from YAML file."""
        import yaml
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigFault(str(path), f"invalid YAML: {exc}") from exc
        if data:
            self._merge_dict(self.config_data, data)

    def _load_env_file(self, path: str):
        """Load config from .env file."""
        from dotenv import dotenv_values

        env_path = Path(path)
        if not env_path.exists():
            return

        for key, value in dotenv_values(env_path).items():
            if value is not None and key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _load_from_env(self):
        """Load config from environment variables."""
        for key, value in os.environ.items():
            if key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str):
        """Convert SHELLITE_DATABASE__TIMEOUT to nested dict."""
        key = key[len(self.env_prefix):]

        # Double underscore separates nested keys
        parts = key.lower().split("__")

        current = self.config_data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        current[parts[-1]] = self._parse_value(value)

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "yes", "on"):
            return True
        if value.lower() in ("false", "no", "off"):
            return False

        try:
            if "." in value or "e" in value.lower():
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

    def get_options(self) -> DatabaseOptions:
        """
        Build validated ``DatabaseOptions``.

        Raises:
            ConfigFault: On a type mismatch or an invalid value
        """
        section = self.get("database", {})
        if not isinstance(section, dict):
            raise ConfigFault("database", "expected a mapping")
        root = {k: v for k, v in self.config_data.items() if k != "database"}
        return self._instantiate_dataclass(DatabaseOptions, {**root, **section}).validate()

    def _instantiate_dataclass(self, config_class: Type, data: dict):
        """Instantiate dataclass config with validation."""
        kwargs = {}

        for field_info in fields(config_class):
            field_name = field_info.name
            field_type = field_info.type

            if field_name in data:
                value = data[field_name]

                if field_name == "args" and isinstance(value, str):
                    value = value.split()

                if not self._check_type(value, field_type):
                    raise ConfigFault(
                        field_name,
                        f"expected {getattr(field_type, '__name__', field_type)}, "
                        f"got {type(value).__name__}",
                    )

                kwargs[field_name] = value
            elif field_info.default is not MISSING:
                kwargs[field_name] = field_info.default
            elif field_info.default_factory is not MISSING:
                kwargs[field_name] = field_info.default_factory()

        return config_class(**kwargs)

    def _check_type(self, value: Any, expected_type: Type) -> bool:
        """Basic type checking."""
        origin = get_origin(expected_type)
        if origin is types.UnionType or str(origin) == "typing.Union":
            if value is None:
                return True
            args = [arg for arg in get_args(expected_type) if arg is not type(None)]
            return any(self._check_type(value, arg) for arg in args)

        if origin:
            return isinstance(value, origin)

        # bool is an int subclass, but never a valid number here
        if expected_type in (int, float) and isinstance(value, bool):
            return False
        if expected_type is float:
            return isinstance(value, (int, float))

        try:
            return isinstance(value, expected_type)
        except TypeError:
            return True

    def to_dict(self) -> dict:
        """Export all config as dictionary."""
        return self.config_data.copy()
