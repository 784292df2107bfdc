"""
Configuration management for the API Builder server.

Handles configuration from multiple sources:
1. Command-line arguments
2. Environment variables
3. ~/.apibuilder/config.json
4. Project-local .apibuilder.json
5. Smart defaults
"""

import json
import os
from pathlib import Path
from typing import Dict, Any, Optional, List
import logging

logger = logging.getLogger(__name__)

PROJECT_CONFIG_NAME = ".apibuilder.json"
USER_CONFIG_DIR = "~/.apibuilder"


class BuilderConfig:
    """Manages configuration for the API Builder server."""

    # Configuration priority (highest to lowest)
    CONFIG_SOURCES = [
        "cli",         # Command-line arguments
        "env",         # Environment variables
        "user",        # ~/.apibuilder/config.json
        "project",     # .apibuilder.json in current directory
        "defaults",    # Built-in defaults
    ]

    DEFAULTS = {
        "server": {
            "host": "localhost",
            "port": 3002,
            "log_level": "INFO",
        },
        "urls": {
            "backend": "http://localhost:3002",
            "frontend": "http://localhost:8080",
        },
        "paths": {
            "data": "./data",
            "logs": "./logs",
        },
        "monitoring": {
            "max_stored_calls": 10000,
            "max_stored_metrics": 1440,  # 24 hours of minute snapshots
            "metrics_interval": 60,
            "save_interval": 300,
            "memory_warmup": 30,
            "thresholds": {
                "error_rate": 5.0,
                "latency": 2000.0,
                "uptime_alert": 99.0,
                "memory_usage": 85.0,
                "response_time_95": 1000.0,
            },
        },
        "connectors": {
            "timeout": 10.0,
            "custom_registry": None,
        },
        "generation": {
            "stage_scale": 1.0,
            "task_ttl": 3600,
            "max_stored_steps": 10000,
        },
    }

    ENV_MAPPING = {
        "API_BUILDER_HOST": ["server", "host"],
        "API_BUILDER_PORT": ["server", "port"],
        "API_BUILDER_LOG_LEVEL": ["server", "log_level"],
        "API_BUILDER_DATA_DIR": ["paths", "data"],
        "API_BUILDER_LOG_DIR": ["paths", "logs"],
        "BACKEND_URL": ["urls", "backend"],
        "FRONTEND_URL": ["urls", "frontend"],
    }

    def __init__(self, project_dir: Optional[Path] = None, user_dir: Optional[Path] = None):
        """Initialize configuration manager."""
        self.project_dir = Path(project_dir) if project_dir else Path.cwd()
        self.user_dir = Path(user_dir) if user_dir else Path(USER_CONFIG_DIR).expanduser()
        self._config: Dict[str, Any] = {}
        self._sources: Dict[str, str] = {}  # dotted path -> source name

    def load(self, cli_args: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Load configuration from all sources.

        Args:
            cli_args: Command-line arguments override

        Returns:
            Merged configuration dictionary
        """
        self._config = self._deep_copy(self.DEFAULTS)
        self._sources = {}
        self._track_source(self._config, "defaults")

        project_config = self._load_json(self.project_dir / PROJECT_CONFIG_NAME, "project")
        if project_config:
            self._merge_config(project_config, "project")

        user_config = self._load_json(self.user_dir / "config.json", "user")
        if user_config:
            self._merge_config(user_config, "user")

        env_config = self._load_env_config()
        if env_config:
            self._merge_config(env_config, "env")

        # CLI arguments last (highest priority)
        if cli_args:
            self._merge_config(cli_args, "cli")

        self._expand_paths()

        return self._config

    def _load_json(self, path: Path, label: str) -> Optional[Dict[str, Any]]:
        """Load a JSON config file if it exists."""
        if not path.exists():
            return None
        try:
            with open(path) as f:
                config = json.load(f)
            logger.info(f"Loaded {label} config from {path}")
            return config
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load {label} config: {e}")
        return None

    def _load_env_config(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        config: Dict[str, Any] = {}

        for env_var, config_path in self.ENV_MAPPING.items():
            value = os.environ.get(env_var)
            if value is None:
                continue
            if env_var == "API_BUILDER_PORT":
                try:
                    value = int(value)
                except ValueError:
                    logger.warning(f"Ignoring non-integer {env_var}={value!r}")
                    continue
            elif env_var == "API_BUILDER_LOG_LEVEL":
                value = value.upper()

            self._set_nested(config, config_path, value)

        return config

    def _merge_config(self, new_config: Dict[str, Any], source: str):
        """Merge new configuration with existing, tracking sources."""
        self._deep_merge(self._config, new_config, source)

    def _deep_merge(self, base: Dict[str, Any], update: Dict[str, Any], source: str, prefix: str = ""):
        """Deep merge update into base, tracking source by dotted path."""
        for key, value in update.items():
            path = f"{prefix}.{key}" if prefix else key
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value, source, path)
            else:
                base[key] = self._deep_copy(value)
                if isinstance(value, dict):
                    self._track_source(value, source, path)
                else:
                    self._sources[path] = source

    def _expand_paths(self):
        """Expand ~ and environment variables in paths."""
        paths = self._config.get("paths", {})
        for key, path in paths.items():
            if isinstance(path, str):
                paths[key] = os.path.expanduser(os.path.expandvars(path))

        registry = self._config.get("connectors", {}).get("custom_registry")
        if isinstance(registry, str):
            self._config["connectors"]["custom_registry"] = os.path.expanduser(registry)

    def _deep_copy(self, obj: Any) -> Any:
        """Deep copy a configuration object."""
        if isinstance(obj, dict):
            return {k: self._deep_copy(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [self._deep_copy(v) for v in obj]
        else:
            return obj

    def _set_nested(self, config: Dict[str, Any], path: List[str], value: Any):
        """Set a nested configuration value."""
        current = config
        for key in path[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]
        current[path[-1]] = value

    def _track_source(self, config: Dict[str, Any], source: str, prefix: str = ""):
        """Track the source of all configuration values."""
        for key, value in config.items():
            path = f"{prefix}.{key}" if prefix else key
            if isinstance(value, dict):
                self._track_source(value, source, path)
            else:
                self._sources[path] = source

    def get(self, path: str, default: Any = None) -> Any:
        """
        Get a configuration value by path.

        Args:
            path: Dot-separated path (e.g., "server.port")
            default: Default value if not found

        Returns:
            Configuration value
        """
        if not self._config:
            self.load()

        current = self._config
        for part in path.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default

        return current

    def get_source(self, path: str) -> Optional[str]:
        """Get the source of a configuration value."""
        return self._sources.get(path)

    @property
    def data_dir(self) -> Path:
        return Path(self.get("paths.data", "./data"))

    def to_dict(self) -> Dict[str, Any]:
        """Get the full configuration as a dictionary."""
        return self._deep_copy(self._config)
