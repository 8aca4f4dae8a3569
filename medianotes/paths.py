"""
Store location.
"""

import os
from pathlib import Path

STORE_ENV_VAR = "MEDIANOTES_STORE_PATH"
DATABASE_FILENAME = "medianotes.db"


def get_default_store_path() -> Path:
    """MEDIANOTES_STORE_PATH if set, else ~/.medianotes."""
    override = os.environ.get(STORE_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".medianotes"


def database_path(store_path: Path) -> Path:
    return store_path / DATABASE_FILENAME
