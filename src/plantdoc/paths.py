"""Path resolution for plantdoc.

plantdoc looks for its settings in a per-project directory:
- Project: .plantdoc/plantdoc.yaml under the effective working directory

The effective working directory is also the default base for method-derived
diagram source files.
"""

from __future__ import annotations

import os
from pathlib import Path

# Directory and file names
PROJECT_DIR_NAME = ".plantdoc"
CONFIG_FILE_NAME = "plantdoc.yaml"

# Environment variable overriding the working directory
CWD_ENV_VAR = "PLANTDOC_CWD"


def get_effective_cwd() -> Path:
    """Get the effective working directory.

    Returns PLANTDOC_CWD if set, else Path.cwd(). This provides a single
    point of control for working directory resolution.

    Returns:
        Resolved Path for working directory
    """
    env_cwd = os.getenv(CWD_ENV_VAR)
    if env_cwd:
        return Path(env_cwd).resolve()
    return Path.cwd()


def get_project_config_path(start: Path | None = None) -> Path | None:
    """Get the project settings file.

    Returns cwd/.plantdoc/plantdoc.yaml if it exists, else None. No
    tree-walking.

    Args:
        start: Starting directory (default: get_effective_cwd())

    Returns:
        Path to plantdoc.yaml if found, None otherwise
    """
    cwd = start or get_effective_cwd()
    candidate = cwd / PROJECT_DIR_NAME / CONFIG_FILE_NAME
    if candidate.is_file():
        return candidate
    return None


def expand_path(path: str | Path, base: Path | None = None) -> Path:
    """Expand ~ and anchor relative paths.

    Args:
        path: Path string potentially containing ~
        base: Directory for relative paths (default: get_effective_cwd())

    Returns:
        Expanded absolute Path
    """
    expanded = Path(path).expanduser()
    if not expanded.is_absolute():
        expanded = (base or get_effective_cwd()) / expanded
    return expanded.resolve()
