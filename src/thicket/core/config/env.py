"""Environment loading helpers.

Thicket reads one setting from the environment, THICKET_DIR, which points
at a data directory to use instead of searching for .thicket/. It may come
from the shell or from .env files:

  os.environ (pre-existing) > project .env > user .env

.env files never override a value already exported in the shell.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import dotenv_values

DATA_DIR_ENV = "THICKET_DIR"


def user_env_path() -> Path:
    """$XDG_CONFIG_HOME/thicket/.env, defaulting to ~/.config."""
    config_home = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(config_home) / "thicket" / ".env"


def load_layered_env(
    *,
    project_dir: Path | None = None,
    project_env: Path | None = None,
    user_env: Path | None = None,
) -> None:
    """Set THICKET_DIR from the first .env file that defines it.

    Args:
        project_dir: directory holding the project .env (defaults to cwd)
        project_env: explicit project .env path
        user_env: explicit user .env path
    """
    if DATA_DIR_ENV in os.environ:
        return

    if project_env is None:
        project_env = (project_dir or Path.cwd()) / ".env"
    if user_env is None:
        user_env = user_env_path()

    for path in (project_env, user_env):
        if not path.is_file():
            continue
        value = dotenv_values(path).get(DATA_DIR_ENV)
        if value:
            os.environ[DATA_DIR_ENV] = value
            return


def resolve_data_dir(explicit: Path | str | None = None) -> Path | None:
    """
    Pick the data directory override, if any.

    An explicit value (such as a --data-dir option) wins over THICKET_DIR.
    Returns None when neither is set, meaning "search for .thicket/".
    """
    if explicit:
        return Path(explicit)
    value = os.environ.get(DATA_DIR_ENV, "").strip()
    return Path(value) if value else None
