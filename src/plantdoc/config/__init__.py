"""Centralized configuration for plantdoc.

Usage:
    from plantdoc.config import get_config, RenderConfig

    config = get_config()
    render_config = RenderConfig.load(config.get_plantuml_config_path())
"""

from plantdoc.config.loader import (
    EngineConfig,
    TagletConfig,
    get_config,
    load_config,
    reset_config,
)
from plantdoc.config.render import RenderConfig

__all__ = [
    "EngineConfig",
    "RenderConfig",
    "TagletConfig",
    "get_config",
    "load_config",
    "reset_config",
]
