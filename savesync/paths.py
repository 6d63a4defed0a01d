"""
Local path checks for names that come from the remote store.

Remote entry names are joined onto local folders, so a name must stay a
single path component.
"""

from __future__ import annotations

from pathlib import Path

# Separators on any platform the mirror may be written from
PATH_SEPARATORS = ("/", "\\")

RESERVED_NAMES = ("", ".", "..")


def is_safe_entry_name(name: str) -> bool:
    """
    Check that a remote name maps to exactly one child of a local folder.

    Args:
        name: Remote entry name

    Returns:
        False for empty, ".", ".." or names with a separator or NUL
    """
    if name in RESERVED_NAMES:
        return False
    if "\x00" in name:
        return False
    return not any(sep in name for sep in PATH_SEPARATORS)


def is_within(path: Path, root: Path) -> bool:
    """
    Check that ``path`` stays under ``root`` without following ``path``
    itself, so a symlink inside ``root`` still counts as inside.
    """
    parent = Path(path).parent.resolve()
    root = Path(root).resolve()
    return parent == root or root in parent.parents
