"""
Sync requests, target resolution and remote name matching.

A request names either one game or the whole catalog. It is resolved
into Target Items, each carrying the two directory names the game's save
data may live under plus the display and header names that remote
entries are allowed to start with.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Protocol, Union

if TYPE_CHECKING:
    from savesync.models import CatalogEntry

from savesync.catalog import SECTIONLESS_NAME, region_name
from savesync.sync.exceptions import InvalidSyncRequest

logger = logging.getLogger(__name__)

# Characters forbidden in directory names on most filesystems
INVALID_CHARS = '<>:"/\\|?*\x00'


class CatalogSource(Protocol):
    def iterate_entries(self) -> Iterable[CatalogEntry]: ...


@dataclass(frozen=True)
class SingleItem:
    """Sync the save data of one game."""

    md5: str
    crc: str
    header_name: str
    good_name: str
    country_code: int | str


@dataclass(frozen=True)
class AllItems:
    """Sync the save data of every game in the catalog."""


SyncRequest = Union[SingleItem, AllItems]


@dataclass(frozen=True)
class TargetItem:
    """One game being synced in the current run."""

    primary_dir_name: str
    alternate_dir_name: str
    display_name: str
    header_name: str

    def matches(self, remote_name: str) -> bool:
        """
        Check whether a remote entry belongs to this game.

        A remote name matches when it equals either directory name or
        starts with the display or header name. Comparison is
        case-sensitive; empty names never prefix-match.
        """
        return (
            remote_name == self.primary_dir_name
            or remote_name == self.alternate_dir_name
            or (bool(self.display_name) and remote_name.startswith(self.display_name))
            or (bool(self.header_name) and remote_name.startswith(self.header_name))
        )


def contains_match(targets: Iterable[TargetItem], remote_name: str) -> bool:
    """Return True if any target matches the remote name."""
    return any(target.matches(remote_name) for target in targets)


def parse_request(
    md5: str | None = None,
    crc: str | None = None,
    header_name: str | None = None,
    good_name: str | None = None,
    country_code: int | str | None = None,
) -> SyncRequest:
    """
    Build a request from loosely-typed boundary fields.

    Raises:
        InvalidSyncRequest: If some but not all fields are given
    """
    fields = (md5, crc, header_name, good_name, country_code)
    present = [value is not None and value != "" for value in fields]

    if all(present):
        return SingleItem(md5, crc, header_name, good_name, country_code)
    if not any(present):
        return AllItems()

    missing = [
        name
        for name, ok in zip(("md5", "crc", "header_name", "good_name", "country_code"), present)
        if not ok
    ]
    raise InvalidSyncRequest(f"Single-game request is missing: {', '.join(missing)}")


def sanitize_dir_name(name: str) -> str:
    """Replace characters that are invalid in directory names."""
    for char in INVALID_CHARS:
        name = name.replace(char, "_")

    name = name.strip(". ")
    if not name:
        name = "unnamed"
    return name


def primary_dir_name(md5: str, header_name: str, region: str) -> str:
    """Directory name keyed by the ROM header name."""
    return f"{header_name} {sanitize_dir_name(region)} {md5}"


def alternate_dir_name(md5: str, good_name: str, region: str) -> str:
    """Directory name keyed by the sanitized good name."""
    return f"{sanitize_dir_name(good_name)} {sanitize_dir_name(region)} {md5}"


def build_target(
    md5: str,
    header_name: str,
    good_name: str,
    country_code: int | str,
) -> TargetItem:
    """Derive a TargetItem under both directory-name layouts."""
    region = region_name(country_code)
    return TargetItem(
        primary_dir_name=primary_dir_name(md5, header_name, region),
        alternate_dir_name=alternate_dir_name(md5, good_name, region),
        display_name=good_name,
        header_name=header_name,
    )


def resolve_targets(request: SyncRequest, store: CatalogSource) -> list[TargetItem]:
    """
    Turn a sync request into the ordered list of games to sync.

    Args:
        request: SingleItem or AllItems
        store: Catalog to iterate for AllItems requests

    Returns:
        Target items in catalog order; empty if nothing is eligible
    """
    if isinstance(request, SingleItem):
        fields = (
            request.md5,
            request.crc,
            request.header_name,
            request.good_name,
            request.country_code,
        )
        if any(value is None or value == "" for value in fields):
            logger.info("Single-game request has empty fields, nothing to sync")
            return []
        try:
            target = build_target(
                request.md5, request.header_name, request.good_name, request.country_code
            )
        except ValueError:
            logger.warning(f"Invalid country code {request.country_code!r} for {request.md5}")
            return []
        return [target]

    if isinstance(request, AllItems):
        targets = []
        for entry in store.iterate_entries():
            if entry.md5 == SECTIONLESS_NAME:
                continue
            descriptive = (entry.crc, entry.header_name, entry.good_name, entry.country_code)
            if any(value is None or value == "" for value in descriptive):
                logger.debug(f"Skipping incomplete catalog entry {entry.md5}")
                continue
            try:
                targets.append(
                    build_target(entry.md5, entry.header_name, entry.good_name, entry.country_code)
                )
            except ValueError:
                logger.warning(f"Skipping {entry.md5}: invalid country code {entry.country_code!r}")
        logger.info(f"Resolved {len(targets)} catalog entries to sync")
        return targets

    raise TypeError(f"Unsupported sync request: {request!r}")
