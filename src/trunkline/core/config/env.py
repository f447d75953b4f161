"""
Layered .env loading.

`.env` files fill in the process environment before configuration is
loaded, so TRUNKLINE_* overrides can live in files next to the repository
or in the user's config directory:

    os.environ (already set) > project .env.local > project .env > user .env

The user file is `<XDG config home>/trunkline/.env`. Project files sit at
the repository root found by `find_project_root`.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path

from dotenv import dotenv_values

from trunkline.core.config.loader import get_xdg_config_home
from trunkline.utils.project import find_project_root

logger = logging.getLogger(__name__)

# Later files win over earlier ones
PROJECT_ENV_FILES = (".env", ".env.local")


def get_user_env_path() -> Path:
    """Path to the user's .env file (~/.config/trunkline/.env or XDG equivalent)."""
    return get_xdg_config_home() / "trunkline" / ".env"


def get_project_env_paths(project_dir: Path) -> list[Path]:
    return [project_dir / name for name in PROJECT_ENV_FILES]


def read_env_file(path: Path) -> dict[str, str]:
    """Parse one .env file. A missing file, or a key without a value, contributes nothing."""
    if not path.is_file():
        return {}
    values = {key: value for key, value in dotenv_values(path).items() if value is not None}
    logger.debug("Read %d variables from %s", len(values), path)
    return values


def load_layered_env(
    *,
    project_dir: Path | None = None,
    user_env_paths: Iterable[Path] | None = None,
    project_env_paths: Iterable[Path] | None = None,
) -> dict[str, str]:
    """
    Load user and project .env files into os.environ.

    Variables already present in the environment when this is called are
    never overwritten.

    Args:
        project_dir: Repository root (defaults to the discovered root, else cwd)
        user_env_paths: Explicit user .env files, lowest precedence first
        project_env_paths: Explicit project .env files, lowest precedence first

    Returns:
        The variables that were set, by name.

    Example:
        >>> load_layered_env(project_dir=Path("/work/repo"))
        {'TRUNKLINE_TRUNK': 'develop'}
    """
    if project_dir is None:
        project_dir = find_project_root() or Path.cwd()
    if user_env_paths is None:
        user_env_paths = [get_user_env_path()]
    if project_env_paths is None:
        project_env_paths = get_project_env_paths(project_dir)

    preset = set(os.environ)
    applied: dict[str, str] = {}
    for path in [*user_env_paths, *project_env_paths]:
        for key, value in read_env_file(Path(path)).items():
            if key not in preset:
                applied[key] = value

    os.environ.update(applied)
    return applied
