"""
Django management command to download save data from Google Drive.
"""

import signal

from django.core.management.base import BaseCommand, CommandError

from savesync.catalog import CatalogStore
from savesync.providers.google_drive import GoogleDriveClient
from savesync.sync import (
    InvalidSyncRequest,
    SingleItem,
    SyncEngine,
    SyncListener,
    SyncOutcome,
    parse_request,
    resolve_targets,
)
from savesync.sync.destination import resolve_destination_root
from savesync.sync.recorder import (
    SessionCancellationToken,
    SessionRecorder,
    record_rejected_request,
)


class ConsoleListener(SyncListener):
    """Prints per-entry progress to the command's stdout."""

    def __init__(self, command: BaseCommand):
        self.command = command

    def report_progress(self, label: str) -> None:
        self.command.stdout.write(f"  {label}")

    def on_entry_skipped(self, name: str, reason: str) -> None:
        self.command.stdout.write(self.command.style.WARNING(f"  Skipped {name}: {reason}"))


class Command(BaseCommand):
    help = "Replace local save data with the copies stored on Google Drive"

    def add_arguments(self, parser):
        parser.add_argument("--md5", help="ROM MD5 checksum")
        parser.add_argument("--crc", help="ROM CRC")
        parser.add_argument("--header-name", help="ROM header name")
        parser.add_argument("--good-name", help="ROM good name")
        parser.add_argument("--country-code", type=int, help="ROM country code byte")
        parser.add_argument(
            "--token-file",
            help="Authorized-user token file (default: settings.GOOGLE_TOKEN_FILE)",
        )

    def handle(self, *args, **options):
        try:
            request = parse_request(
                md5=options["md5"],
                crc=options["crc"],
                header_name=options["header_name"],
                good_name=options["good_name"],
                country_code=options["country_code"],
            )
        except InvalidSyncRequest as e:
            record_rejected_request(options["md5"], str(e))
            raise CommandError(
                f"{e}. Pass all of --md5 --crc --header-name --good-name "
                "--country-code, or none of them to sync every game."
            )

        if isinstance(request, SingleItem):
            self.stdout.write(f"Syncing save data for: {request.good_name}")
        else:
            self.stdout.write("Syncing save data for all games in the catalog")

        targets = resolve_targets(request, CatalogStore())
        if not targets:
            self.stdout.write(self.style.WARNING("No catalog entries to sync"))

        recorder = SessionRecorder(request, targets=len(targets), inner=ConsoleListener(self))
        engine = SyncEngine(
            client=GoogleDriveClient(token_file=options["token_file"]),
            destination_root=resolve_destination_root(),
            listener=recorder,
        )

        token = SessionCancellationToken(recorder.session.id)

        def request_stop(signum, frame):
            self.stdout.write(self.style.WARNING("\nStopping after the current entry..."))
            token.cancel()

        previous_handler = signal.signal(signal.SIGINT, request_stop)
        try:
            result = engine.run(targets, token)
        finally:
            signal.signal(signal.SIGINT, previous_handler)

        if result.outcome is SyncOutcome.FAILED:
            self.stdout.write(self.style.ERROR(f"\n✗ Sync failed: {result.error}"))
            raise CommandError(f"Sync failed: {result.error}")

        if result.outcome is SyncOutcome.NOOP:
            self.stdout.write(
                self.style.WARNING("\nNothing to sync: remote folder or local storage unavailable")
            )
            return

        summary = (
            f"  - Entries matched: {result.entries_matched}\n"
            f"  - Local copies replaced: {result.entries_deleted}\n"
            f"  - Entries downloaded: {result.entries_downloaded}\n"
            f"  - Entries skipped: {len(result.skipped)}"
        )
        if result.outcome is SyncOutcome.CANCELLED:
            self.stdout.write(self.style.WARNING(f"\nSync cancelled:\n{summary}"))
        else:
            self.stdout.write(self.style.SUCCESS(f"\n✓ Sync completed successfully:\n{summary}"))
