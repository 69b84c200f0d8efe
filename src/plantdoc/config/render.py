"""Engine configuration blob handed to PlantUML with every diagram."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from plantdoc.errors import ConfigLoadError


@dataclass(frozen=True)
class RenderConfig:
    """PlantUML configuration lines, immutable once loaded.

    Either empty (engine defaults) or a single entry holding the whole
    configuration file.
    """

    lines: tuple[str, ...] = ()
    source: Path | None = None

    @classmethod
    def load(cls, path: Path | str | None) -> RenderConfig:
        """Read the configuration file at ``path``.

        Raises:
            ConfigLoadError: If a path is given but cannot be read.
        """
        if path is None:
            return cls()

        config_path = Path(path)
        try:
            text = config_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigLoadError(config_path, e) from e

        logger.debug(f"Loaded PlantUML configuration from {config_path}")
        return cls(lines=(text,), source=config_path)

    def __bool__(self) -> bool:
        return bool(self.lines)
