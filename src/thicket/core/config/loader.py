"""
Project discovery and config file handling.

A project is a directory containing .thicket/. An explicit data directory
(from --data-dir or THICKET_DIR) replaces the search: its parent is treated
as the project root.
"""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from thicket.core.exceptions import AlreadyInitializedError, ConfigError, NotInitializedError
from thicket.core.tickets.models import validate_project_code

from .models import DATA_DIR_NAME, ThicketConfig, ThicketPaths

logger = logging.getLogger(__name__)

GITIGNORE_CONTENT = "cache.db\ncache.db-*\n"


def get_paths(root: Path, data_dir: Path | None = None) -> ThicketPaths:
    """
    Resolve the file locations for a project.

    Args:
        root: Project root directory
        data_dir: Data directory override; defaults to root/.thicket
    """
    root = Path(root).resolve()
    if data_dir is not None:
        return ThicketPaths(root=root, data_dir=Path(data_dir).resolve())
    return ThicketPaths(root=root, data_dir=root / DATA_DIR_NAME)


def find_root(start: Path | None = None, data_dir: Path | None = None) -> Path:
    """
    Find the project root by searching upward for a .thicket directory.

    Args:
        start: Directory to start from. Defaults to the current directory.
        data_dir: Data directory override; when set no search happens and
            its parent directory is returned.

    Raises:
        NotInitializedError: If no .thicket directory is found

    Example:
        >>> find_root(Path("/project/src/module"))  # doctest: +SKIP
        PosixPath('/project')
    """
    if data_dir is not None:
        return Path(data_dir).resolve().parent

    current = (start or Path.cwd()).resolve()
    for candidate in (current, *current.parents):
        if (candidate / DATA_DIR_NAME).is_dir():
            return candidate

    raise NotInitializedError(
        f"No {DATA_DIR_NAME} directory found in {current} or any parent"
    )


def load_config(paths: ThicketPaths) -> ThicketConfig:
    """
    Read and validate config.json.

    Raises:
        NotInitializedError: If config.json does not exist
        ConfigError: If config.json is not valid JSON or fails validation
    """
    try:
        text = paths.config.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise NotInitializedError(f"No config found at {paths.config}") from None

    try:
        return ThicketConfig.model_validate(json.loads(text))
    except (json.JSONDecodeError, ValidationError) as e:
        raise ConfigError(f"Invalid config at {paths.config}: {e}") from e


def save_config(paths: ThicketPaths, config: ThicketConfig) -> None:
    """Write config.json, creating the data directory if needed."""
    paths.data_dir.mkdir(parents=True, exist_ok=True)
    paths.config.write_text(
        json.dumps(config.model_dump(), indent=2) + "\n",
        encoding="utf-8",
    )


def init_project(root: Path, project_code: str, data_dir: Path | None = None) -> ThicketPaths:
    """
    Create a new thicket project.

    Writes config.json, an empty tickets.jsonl and a .gitignore that keeps
    the cache out of version control.

    Raises:
        InvalidProjectCodeError: If project_code is not two uppercase letters
        AlreadyInitializedError: If the data directory already exists
    """
    validate_project_code(project_code)
    paths = get_paths(root, data_dir)
    if paths.data_dir.exists():
        raise AlreadyInitializedError(f"Thicket already initialized at {paths.data_dir}")

    save_config(paths, ThicketConfig(project_code=project_code))
    paths.tickets.touch()
    paths.gitignore.write_text(GITIGNORE_CONTENT, encoding="utf-8")

    logger.info(f"Initialized thicket project {project_code} in {paths.data_dir}")
    return paths
