"""Filesystem locations for user data."""

import os
from pathlib import Path

DATA_DIR_ENV = "AGENTKB_HOME"


def get_user_data_dir() -> Path:
    """Return the per-user data directory (``~/.agentkb`` by default).

    The location can be overridden with the ``AGENTKB_HOME`` environment
    variable. The directory is not created here.
    """
    override = os.getenv(DATA_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".agentkb"


def get_config_file() -> Path:
    return get_user_data_dir() / "config.yaml"
