"""Filesystem locations for user data."""

import os
from pathlib import Path

HOME_ENV_VAR = "GROUNDSOURCE_HOME"


def get_user_data_dir() -> Path:
    """Get the GroundSource data directory, creating it if needed.

    Defaults to ~/.groundsource; set GROUNDSOURCE_HOME to override.
    """
    override = os.getenv(HOME_ENV_VAR)
    path = Path(override).expanduser() if override else Path.home() / ".groundsource"
    path.mkdir(parents=True, exist_ok=True)
    return path
