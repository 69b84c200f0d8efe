"""YAML configuration loading for plantdoc.

Loads plantdoc.yaml with tag processing and engine settings.

Example plantdoc.yaml:

    version: 1
    log_level: INFO

    # method-derived sources: <Type>_<method>.sequence.<ext>
    sequence_basepath: doc/sequences
    sequence_extension: uml

    # whole file is handed to the engine as configuration
    plantuml_config: plantuml.cfg

    output_format: svg

    engine:
      prefer: auto          # auto | jar | server
      jar_path: tools/plantuml.jar
      server_url: https://www.plantuml.com/plantuml
      timeout: 60

Relative paths resolve against the directory holding this file. Values taken
from environment variables resolve against the effective working directory.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Any, Literal

import yaml
from loguru import logger
from pydantic import BaseModel, Field, PrivateAttr

from plantdoc.errors import ConfigLoadError
from plantdoc.paths import expand_path, get_effective_cwd, get_project_config_path

# Current config schema version
CURRENT_CONFIG_VERSION = 1

# Environment variable naming the settings file
CONFIG_ENV_VAR = "PLANTDOC_CONFIG"

# Environment overrides: variable -> (section, key); None section is top level
ENV_OVERRIDES: dict[str, tuple[str | None, str]] = {
    "PLANTDOC_SEQUENCE_BASEPATH": (None, "sequence_basepath"),
    "PLANTDOC_PLANTUML_CONFIG": (None, "plantuml_config"),
    "PLANTUML_JAR_PATH": ("engine", "jar_path"),
    "PLANTUML_SERVER_URL": ("engine", "server_url"),
}

# Overrides holding filesystem paths (anchored at the effective cwd)
_PATH_KEYS = frozenset({"sequence_basepath", "plantuml_config", "jar_path"})

DEFAULT_SERVER_URL = "https://www.plantuml.com/plantuml"


class EngineConfig(BaseModel):
    """Where and how PlantUML diagrams are rendered."""

    prefer: Literal["auto", "jar", "server"] = Field(
        default="auto",
        description="auto tries the local JAR first and falls back to the server",
    )
    jar_path: str | None = Field(
        default=None, description="Path to plantuml.jar for local rendering"
    )
    server_url: str = Field(
        default=DEFAULT_SERVER_URL, description="PlantUML server base URL"
    )
    timeout: float = Field(
        default=60.0,
        ge=1.0,
        le=600.0,
        description="Render timeout in seconds",
    )


class TagletConfig(BaseModel):
    """Root configuration for the plantUml taglet."""

    version: int = Field(default=CURRENT_CONFIG_VERSION, description="Schema version")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Log level for the CLI"
    )
    sequence_basepath: str | None = Field(
        default=None,
        description="Base directory for method-derived diagram sources (default: cwd)",
    )
    sequence_extension: str = Field(
        default="uml", description="Extension of method-derived diagram sources"
    )
    plantuml_config: str | None = Field(
        default=None, description="PlantUML configuration file passed to the engine"
    )
    output_format: str = Field(
        default="svg", description="Extension of generated diagram files"
    )
    engine: EngineConfig = Field(default_factory=EngineConfig)

    _config_dir: Path | None = PrivateAttr(default=None)

    def _resolve_config_relative_path(self, path: str) -> Path:
        return expand_path(path, self._config_dir or get_effective_cwd())

    def get_sequence_basepath(self) -> Path:
        """Directory holding ``<Type>_<method>.sequence.<ext>`` files."""
        if self.sequence_basepath:
            return self._resolve_config_relative_path(self.sequence_basepath)
        return get_effective_cwd()

    def get_plantuml_config_path(self) -> Path | None:
        """Engine configuration file, or None when the engine runs on defaults."""
        if self.plantuml_config:
            return self._resolve_config_relative_path(self.plantuml_config)
        return None

    def get_jar_path(self) -> Path | None:
        """Local plantuml.jar, if configured."""
        if self.engine.jar_path:
            return self._resolve_config_relative_path(self.engine.jar_path)
        return None

    def output_suffix(self) -> str:
        """Suffix appended to generated diagram file names, e.g. ``.svg``."""
        return "." + self.output_format.lstrip(".").lower()


def _resolve_config_path(config_path: Path | str | None) -> Path | None:
    """Resolve config path from explicit path, env var, or default location.

    Resolution order:
    1. Explicit config_path if provided
    2. PLANTDOC_CONFIG env var
    3. cwd/.plantdoc/plantdoc.yaml
    4. None (use defaults)
    """
    if config_path is not None:
        return Path(config_path)

    env_config = os.getenv(CONFIG_ENV_VAR)
    if env_config:
        return Path(env_config)

    return get_project_config_path()


def _load_yaml_file(config_path: Path) -> dict[str, Any]:
    """Load and parse a YAML settings file.

    Raises:
        ConfigLoadError: If the file is missing, unreadable, or not a mapping.
    """
    if not config_path.exists():
        raise ConfigLoadError(config_path, "file not found")

    try:
        with config_path.open(encoding="utf-8") as f:
            raw_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigLoadError(config_path, f"invalid YAML: {e}") from e
    except OSError as e:
        raise ConfigLoadError(config_path, e) from e

    if raw_data is None:
        return {}
    if not isinstance(raw_data, dict):
        raise ConfigLoadError(config_path, "top level must be a mapping")
    return raw_data


def _validate_version(data: dict[str, Any], config_path: Path) -> None:
    """Validate config version and set default if missing.

    Raises:
        ConfigLoadError: If version is unsupported.
    """
    config_version = data.get("version")
    if config_version is None:
        logger.warning(
            f"Config file missing 'version' field, assuming version 1. "
            f"Add 'version: {CURRENT_CONFIG_VERSION}' to {config_path}"
        )
        data["version"] = 1
    elif not isinstance(config_version, int) or config_version > CURRENT_CONFIG_VERSION:
        raise ConfigLoadError(
            config_path,
            f"config version {config_version} is not supported, "
            f"maximum supported version is {CURRENT_CONFIG_VERSION}",
        )


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay environment variables on the raw settings (modified in place)."""
    for env_var, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if not value:
            continue
        if key in _PATH_KEYS:
            value = str(expand_path(value))
        target = data
        if section is not None:
            target = data.setdefault(section, {})
            if not isinstance(target, dict):
                target = data[section] = {}
        logger.debug(f"{env_var} overrides {key}")
        target[key] = value
    return data


def load_config(config_path: Path | str | None = None) -> TagletConfig:
    """Load plantdoc configuration from YAML file.

    Resolution order (when config_path is None):
    1. PLANTDOC_CONFIG env var
    2. cwd/.plantdoc/plantdoc.yaml
    3. Built-in defaults

    Environment overrides (PLANTDOC_SEQUENCE_BASEPATH,
    PLANTDOC_PLANTUML_CONFIG, PLANTUML_JAR_PATH, PLANTUML_SERVER_URL) win
    over file values.

    Raises:
        ConfigLoadError: If the file is unreadable or validation fails
    """
    resolved_path = _resolve_config_path(config_path)

    if resolved_path is None:
        logger.debug("No config file found, using defaults")
        config = TagletConfig.model_validate(_apply_env_overrides({}))
        config._config_dir = get_effective_cwd()
        return config

    logger.debug(f"Loading config from {resolved_path}")

    raw_data = _load_yaml_file(resolved_path)
    _validate_version(raw_data, resolved_path)
    _apply_env_overrides(raw_data)

    try:
        config = TagletConfig.model_validate(raw_data)
    except Exception as e:
        raise ConfigLoadError(resolved_path, f"invalid configuration: {e}") from e

    config._config_dir = resolved_path.parent.resolve()
    logger.debug(f"Config loaded: version {config.version}")
    return config


# Global config instance
_config: TagletConfig | None = None
_config_lock = threading.Lock()


def get_config(
    config_path: Path | str | None = None, reload: bool = False
) -> TagletConfig:
    """Get or load the process-wide configuration.

    Loaded at most once, even when several threads ask concurrently.

    Args:
        config_path: Path to config file (only used on first load)
        reload: Force reload configuration
    """
    global _config

    if _config is not None and not reload:
        return _config

    with _config_lock:
        if _config is None or reload:
            _config = load_config(config_path)
        return _config


def reset_config() -> None:
    """Drop the cached configuration (next get_config() reloads)."""
    global _config
    with _config_lock:
        _config = None
