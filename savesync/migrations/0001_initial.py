import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="CatalogEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("md5", models.CharField(max_length=64, unique=True)),
                ("crc", models.CharField(blank=True, max_length=32, null=True)),
                ("header_name", models.CharField(blank=True, max_length=255, null=True)),
                ("good_name", models.CharField(blank=True, max_length=255, null=True)),
                (
                    "country_code",
                    models.CharField(
                        blank=True,
                        help_text="ROM country code byte, stored as a decimal string.",
                        max_length=8,
                        null=True,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name_plural": "catalog entries",
                "ordering": ["id"],
            },
        ),
        migrations.CreateModel(
            name="SyncSession",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("started_at", models.DateTimeField(auto_now_add=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "scope",
                    models.CharField(
                        choices=[("single", "Single Game"), ("all", "All Games")],
                        max_length=10,
                    ),
                ),
                ("game_md5", models.CharField(blank=True, max_length=64)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("running", "Running"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                            ("failed", "Failed"),
                            ("noop", "Nothing To Do"),
                        ],
                        default="running",
                        max_length=20,
                    ),
                ),
                ("targets", models.PositiveIntegerField(default=0)),
                ("entries_listed", models.PositiveIntegerField(default=0)),
                ("entries_matched", models.PositiveIntegerField(default=0)),
                ("entries_deleted", models.PositiveIntegerField(default=0)),
                ("entries_downloaded", models.PositiveIntegerField(default=0)),
                ("error_message", models.TextField(blank=True)),
            ],
            options={
                "ordering": ["-started_at"],
                "indexes": [
                    models.Index(fields=["-started_at"], name="savesync_session_started_idx"),
                    models.Index(fields=["status"], name="savesync_session_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SyncEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("timestamp", models.DateTimeField(auto_now_add=True)),
                (
                    "event_type",
                    models.CharField(
                        choices=[
                            ("entry_deleted", "Entry Deleted"),
                            ("entry_downloaded", "Entry Downloaded"),
                            ("error", "Error"),
                        ],
                        max_length=20,
                    ),
                ),
                ("entry_name", models.CharField(blank=True, max_length=255)),
                ("message", models.TextField(blank=True)),
                (
                    "session",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="events",
                        to="savesync.syncsession",
                    ),
                ),
            ],
            options={
                "ordering": ["timestamp", "id"],
                "indexes": [
                    models.Index(fields=["session", "timestamp"], name="savesync_event_session_idx"),
                    models.Index(fields=["event_type"], name="savesync_event_type_idx"),
                ],
            },
        ),
    ]
