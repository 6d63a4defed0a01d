"""
Read access to the game catalog.

The catalog maps a ROM's MD5 checksum to the descriptive fields used to
derive its save-data directory names. The sync engine only needs to
iterate it and look single entries up; anything exposing
``iterate_entries()`` and ``lookup()`` can stand in for ``CatalogStore``.
"""

from __future__ import annotations

import logging
from typing import Iterator

from savesync.models import CatalogEntry

logger = logging.getLogger(__name__)

# Pseudo-key the legacy key/value cache uses for settings outside any section
SECTIONLESS_NAME = "[<sectionless!>]"

# ROM header country code byte -> region label used in directory names
REGION_NAMES = {
    0x00: "Demo",
    0x37: "Beta",
    0x41: "USA/Japan",
    0x42: "Brazil",
    0x43: "China",
    0x44: "Germany",
    0x45: "USA",
    0x46: "France",
    0x48: "Netherlands",
    0x49: "Italy",
    0x4A: "Japan",
    0x4B: "Korea",
    0x4E: "Canada",
    0x50: "Europe",
    0x53: "Spain",
    0x55: "Australia",
    0x57: "Scandinavia",
    0x58: "Europe",
    0x59: "Europe",
}

UNKNOWN_REGION = "Unknown"


def region_name(country_code: int | str) -> str:
    """
    Convert a ROM country code to its region label.

    The cache stores the code as a signed decimal byte (e.g. "69" or "-1"),
    so strings are parsed and the value is folded into 0..255.

    Args:
        country_code: Code as an int or a decimal string

    Returns:
        Region label, or "Unknown" for unrecognized codes

    Raises:
        ValueError: If a string code is not a decimal integer
    """
    if isinstance(country_code, str):
        country_code = int(country_code.strip())
    return REGION_NAMES.get(country_code & 0xFF, UNKNOWN_REGION)


class CatalogStore:
    """Catalog backed by the CatalogEntry table."""

    def iterate_entries(self) -> Iterator[CatalogEntry]:
        """Yield every entry in insertion order, skipping the sectionless key."""
        yield from CatalogEntry.objects.exclude(md5=SECTIONLESS_NAME).order_by("id").iterator()

    def lookup(self, identifier: str) -> CatalogEntry | None:
        """Return the entry for an MD5 checksum, or None."""
        if identifier == SECTIONLESS_NAME:
            return None
        try:
            return CatalogEntry.objects.get(md5=identifier)
        except CatalogEntry.DoesNotExist:
            logger.debug(f"No catalog entry for {identifier}")
            return None
