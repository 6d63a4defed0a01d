"""
Models for tracking sync runs and events.
"""

from django.db import models


class SyncSession(models.Model):
    """
    Records each sync run for audit and debugging.

    Tracks what was requested, how the run ended, and how many remote
    entries were matched, replaced and downloaded.
    """

    started_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    # Request scope
    scope = models.CharField(
        max_length=10,
        choices=[("single", "Single Game"), ("all", "All Games")],
    )
    game_md5 = models.CharField(max_length=64, blank=True)

    status = models.CharField(
        max_length=20,
        choices=[
            ("running", "Running"),
            ("completed", "Completed"),
            ("cancelled", "Cancelled"),
            ("failed", "Failed"),
            ("noop", "Nothing To Do"),
            ("rejected", "Rejected"),
        ],
        default="running",
    )

    # Statistics
    targets = models.PositiveIntegerField(default=0)
    entries_listed = models.PositiveIntegerField(default=0)
    entries_matched = models.PositiveIntegerField(default=0)
    entries_deleted = models.PositiveIntegerField(default=0)
    entries_downloaded = models.PositiveIntegerField(default=0)

    error_message = models.TextField(blank=True)

    # Set from outside the worker; the run stops before its next entry
    cancel_requested = models.BooleanField(default=False)

    class Meta:
        indexes = [
            models.Index(fields=["-started_at"], name="savesync_session_started_idx"),
            models.Index(fields=["status"], name="savesync_session_status_idx"),
        ]
        ordering = ["-started_at"]

    def __str__(self):
        scope = self.game_md5 if self.scope == "single" else "all games"
        return f"Sync of {scope} - {self.get_status_display()}"


class SyncEvent(models.Model):
    """
    Individual events during a sync run.

    One event per local copy deleted, remote entry downloaded, or error.
    """

    session = models.ForeignKey(
        SyncSession, on_delete=models.CASCADE, related_name="events"
    )
    timestamp = models.DateTimeField(auto_now_add=True)

    event_type = models.CharField(
        max_length=20,
        choices=[
            ("entry_deleted", "Entry Deleted"),
            ("entry_downloaded", "Entry Downloaded"),
            ("entry_skipped", "Entry Skipped"),
            ("error", "Error"),
        ],
    )

    entry_name = models.CharField(max_length=255, blank=True)
    message = models.TextField(blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["session", "timestamp"], name="savesync_event_session_idx"),
            models.Index(fields=["event_type"], name="savesync_event_type_idx"),
        ]
        ordering = ["timestamp", "id"]

    def __str__(self):
        return f"{self.get_event_type_display()}: {self.entry_name or 'N/A'}"
