from django.db import models


class CatalogEntry(models.Model):
    """
    A known game, keyed by the MD5 checksum of its ROM image.

    Descriptive fields are nullable because the catalog is imported from
    a legacy key/value cache that may hold partial records. Only complete
    entries take part in a sync.
    """

    md5 = models.CharField(max_length=64, unique=True)
    crc = models.CharField(max_length=32, null=True, blank=True)
    header_name = models.CharField(max_length=255, null=True, blank=True)
    good_name = models.CharField(max_length=255, null=True, blank=True)
    country_code = models.CharField(
        max_length=8,
        null=True,
        blank=True,
        help_text="ROM country code byte, stored as a decimal string.",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["id"]
        verbose_name_plural = "catalog entries"

    def __str__(self):
        return f"{self.good_name or self.header_name or 'Unknown'} ({self.md5})"

    @property
    def is_complete(self) -> bool:
        return all(
            value not in (None, "")
            for value in (self.crc, self.header_name, self.good_name, self.country_code)
        )


# Run history lives with the sync code but belongs to this app
from savesync.sync.models import SyncEvent, SyncSession  # noqa: E402,F401
