"""
Local destination for downloaded save data.

Layout:
    <destination root>/
        <game data folder>/    - Local mirror, one child per remote entry
            <entry name>/

The destination root is either the parent of the internal game data
directory or a user-configured external storage path.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from django.conf import settings

from savesync.paths import is_safe_entry_name, is_within
from savesync.sync.exceptions import DeleteError, UnsafePathError

logger = logging.getLogger(__name__)


def resolve_destination_root() -> Path | None:
    """
    Resolve the configured destination root.

    Returns:
        Existing directory to mirror into, or None if storage is not
        configured or not available
    """
    if settings.SAVESYNC_USE_EXTERNAL_STORAGE:
        external_path = settings.SAVESYNC_EXTERNAL_STORAGE_PATH
        if not external_path:
            logger.info("External storage selected but no path configured")
            return None
        root = Path(external_path)
    else:
        root = Path(settings.SAVESYNC_GAME_DATA_DIR).parent

    if not root.is_dir():
        logger.warning(f"Destination root {root} is not an available directory")
        return None
    return root


def mirror_folder_name() -> str:
    """Name of the local game data folder mirrored under the destination root."""
    return Path(settings.SAVESYNC_GAME_DATA_DIR).name


class LocalMirror:
    """Game data folder under a destination root."""

    def __init__(self, root: Path, folder_name: str):
        self.root = Path(root)
        self.folder_name = folder_name
        self.path = self.root / folder_name

    def ensure(self) -> Path:
        """Create the mirror folder if it doesn't exist."""
        self.path.mkdir(parents=True, exist_ok=True)
        return self.path

    def find(self, name: str) -> Path | None:
        """
        Find the local copy of a remote entry.

        Args:
            name: Remote entry name

        Returns:
            Path of the existing local copy, or None

        Raises:
            UnsafePathError: If the name is not a single path component
        """
        if not is_safe_entry_name(name):
            raise UnsafePathError(f"Refusing to map remote name {name!r} into {self.path}")
        candidate = self.path / name
        if candidate.exists() or candidate.is_symlink():
            return candidate
        return None

    def delete(self, target: Path) -> None:
        """
        Remove a local copy, recursing into folders.

        Raises:
            UnsafePathError: If the target is not inside the mirror folder
            DeleteError: If the copy could not be removed
        """
        if not is_within(target, self.path):
            raise UnsafePathError(f"Refusing to delete {target} outside {self.path}")

        try:
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            else:
                target.unlink()
        except OSError as e:
            raise DeleteError(f"Failed to delete {target}: {e}") from e

        logger.debug(f"Deleted local copy: {target}")
