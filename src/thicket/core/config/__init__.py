"""
Configuration models and project discovery.

Resolution order for the data directory: explicit --data-dir, then
THICKET_DIR (shell or .env), then the nearest .thicket/ above the current
directory.
"""

from .env import DATA_DIR_ENV, load_layered_env, resolve_data_dir
from .loader import find_root, get_paths, init_project, load_config, save_config
from .models import ThicketConfig, ThicketPaths

__all__ = [
    # Models
    "ThicketConfig",
    "ThicketPaths",
    # Loader functions
    "find_root",
    "get_paths",
    "init_project",
    "load_config",
    "save_config",
    # Environment
    "DATA_DIR_ENV",
    "load_layered_env",
    "resolve_data_dir",
]
