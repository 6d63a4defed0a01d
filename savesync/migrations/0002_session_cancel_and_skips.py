from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("savesync", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="syncsession",
            name="cancel_requested",
            field=models.BooleanField(default=False),
        ),
        migrations.AlterField(
            model_name="syncsession",
            name="status",
            field=models.CharField(
                choices=[
                    ("running", "Running"),
                    ("completed", "Completed"),
                    ("cancelled", "Cancelled"),
                    ("failed", "Failed"),
                    ("noop", "Nothing To Do"),
                    ("rejected", "Rejected"),
                ],
                default="running",
                max_length=20,
            ),
        ),
        migrations.AlterField(
            model_name="syncevent",
            name="event_type",
            field=models.CharField(
                choices=[
                    ("entry_deleted", "Entry Deleted"),
                    ("entry_downloaded", "Entry Downloaded"),
                    ("entry_skipped", "Entry Skipped"),
                    ("error", "Error"),
                ],
                max_length=20,
            ),
        ),
    ]
