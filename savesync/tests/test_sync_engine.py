"""Tests for the SyncEngine."""

import shutil
import tempfile
from pathlib import Path
from unittest.mock import Mock, patch

from django.test import SimpleTestCase, TestCase, override_settings
from googleapiclient.errors import HttpError

from savesync.providers.google_drive import FOLDER_MIME_TYPE, DriveFile, TokenExpiredError
from savesync.sync import (
    AllItems,
    CancellationToken,
    SingleItem,
    SyncEngine,
    SyncListener,
    SyncOutcome,
    resolve_targets,
)
from savesync.sync.exceptions import DeleteError, DownloadError, ListingError
from savesync.sync.models import SyncEvent, SyncSession
from savesync.sync.recorder import (
    SessionCancellationToken,
    SessionRecorder,
    record_rejected_request,
    request_cancel,
)
from savesync.sync.targets import build_target

MD5 = "0123456789abcdef0123456789abcdef"
APP_FOLDER = "Mupen64Plus AE"
MIRROR = "GameData"


def folder(name: str, file_id: str | None = None) -> DriveFile:
    return DriveFile(id=file_id or f"id-{name}", name=name, mime_type=FOLDER_MIME_TYPE)


class FakeDriveClient:
    """In-memory stand-in for GoogleDriveClient that records every call."""

    def __init__(self, entries=None, root=None, failures=None):
        self.root = root if root is not None else folder(APP_FOLDER, "app-root")
        self.entries = entries or []
        self.failures = failures or {}
        self.calls = []

    def find_root_folder(self, name):
        self.calls.append(("find_root_folder", name))
        return self.root

    def list_entries(self, folder_id):
        self.calls.append(("list_entries", folder_id))
        return iter(self.entries)

    def download_entry(self, entry, destination):
        self.calls.append(("download", entry.name))
        if entry.name in self.failures:
            raise self.failures[entry.name]
        target = Path(destination) / entry.name
        target.mkdir()
        (target / "save.eep").write_text(f"remote {entry.id}")
        return target

    @property
    def downloads(self):
        return [name for call, name in self.calls if call == "download"]


class RecordingListener(SyncListener):
    def __init__(self):
        self.events = []

    def report_progress(self, label):
        self.events.append(("progress", label))

    def on_entry_deleted(self, name):
        self.events.append(("deleted", name))

    def on_entry_downloaded(self, name, path):
        self.events.append(("downloaded", name))

    def on_entry_skipped(self, name, reason):
        self.events.append(("skipped", name))

    def on_finished(self, result):
        self.events.append(("finished", result.outcome))

    @property
    def finished_count(self):
        return sum(1 for event in self.events if event[0] == "finished")


class SyncEngineTestCase(SimpleTestCase):
    """Base test case with a temporary destination root."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.root = Path(self.temp_dir)
        self.mirror = self.root / MIRROR
        self.listener = RecordingListener()
        self.token = CancellationToken()
        self.super_game = build_target(MD5, "SUPER GAME", "Super Game", 0x45)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _engine(self, client, destination_root="default"):
        return SyncEngine(
            client=client,
            destination_root=self.root if destination_root == "default" else destination_root,
            listener=self.listener,
            app_folder_name=APP_FOLDER,
            folder_name=MIRROR,
        )

    def _make_local(self, name: str) -> Path:
        path = self.mirror / name
        path.mkdir(parents=True)
        (path / "save.eep").write_text("stale")
        return path


class MatchingScenarioTests(SyncEngineTestCase):
    def test_display_name_prefix_selects_entry(self):
        """Only the entry starting with the display name is downloaded."""
        client = FakeDriveClient([folder("Super Game (USA)"), folder("Other Game")])

        result = self._engine(client).run([self.super_game], self.token)

        self.assertEqual(result.outcome, SyncOutcome.COMPLETED)
        self.assertEqual(client.downloads, ["Super Game (USA)"])
        self.assertEqual(result.entries_listed, 2)
        self.assertEqual(result.entries_matched, 1)
        self.assertEqual(result.processed, ["Super Game (USA)"])
        self.assertTrue((self.mirror / "Super Game (USA)" / "save.eep").exists())
        self.assertFalse((self.mirror / "Other Game").exists())

    def test_single_request_matches_primary_dir_name(self):
        request = SingleItem(MD5, "ABCD1234", "SUPER GAME", "Super Game", 0x45)
        targets = resolve_targets(request, store=None)
        primary = f"SUPER GAME USA {MD5}"
        client = FakeDriveClient([folder("Unrelated"), folder(primary)])

        result = self._engine(client).run(targets, self.token)

        self.assertEqual(result.outcome, SyncOutcome.COMPLETED)
        self.assertEqual(client.downloads, [primary])

    def test_stale_local_copy_is_replaced(self):
        local = self._make_local("Super Game (USA)")
        client = FakeDriveClient([folder("Super Game (USA)", "remote-1")])

        result = self._engine(client).run([self.super_game], self.token)

        self.assertEqual(result.entries_deleted, 1)
        self.assertEqual((local / "save.eep").read_text(), "remote remote-1")
        self.assertEqual(
            self.listener.events,
            [
                ("progress", "Super Game (USA)"),
                ("deleted", "Super Game (USA)"),
                ("downloaded", "Super Game (USA)"),
                ("finished", SyncOutcome.COMPLETED),
            ],
        )

    def test_local_file_with_entry_name_is_replaced(self):
        (self.mirror).mkdir()
        (self.mirror / "Super Game.sra").write_text("stale")
        client = FakeDriveClient([folder("Super Game.sra")])

        result = self._engine(client).run([self.super_game], self.token)

        self.assertEqual(result.entries_deleted, 1)
        self.assertTrue((self.mirror / "Super Game.sra").is_dir())

    def test_missing_local_copy_is_not_counted_as_deleted(self):
        client = FakeDriveClient([folder("Super Game (USA)")])

        result = self._engine(client).run([self.super_game], self.token)

        self.assertEqual(result.entries_deleted, 0)
        self.assertEqual(result.entries_downloaded, 1)

    def test_entries_processed_in_listing_order(self):
        names = ["SUPER GAME b", "Super Game a", "Zelda", "SUPER GAME c"]
        client = FakeDriveClient([folder(n) for n in names])

        result = self._engine(client).run([self.super_game], self.token)

        self.assertEqual(result.processed, ["SUPER GAME b", "Super Game a", "SUPER GAME c"])

    def test_progress_label_is_truncated(self):
        long_name = "Super Game " + "x" * 40
        client = FakeDriveClient([folder(long_name)])

        self._engine(client).run([self.super_game], self.token)

        progress = [label for kind, label in self.listener.events if kind == "progress"]
        self.assertEqual(progress, [long_name[:30]])
        self.assertEqual(len(progress[0]), 30)

    def test_empty_targets_skip_every_entry(self):
        client = FakeDriveClient([folder("Super Game (USA)"), folder("Other Game")])

        result = self._engine(client).run([], self.token)

        self.assertEqual(result.outcome, SyncOutcome.COMPLETED)
        self.assertEqual(client.downloads, [])
        self.assertEqual(self.listener.events, [("finished", SyncOutcome.COMPLETED)])

    def test_empty_listing_still_finishes(self):
        client = FakeDriveClient([])

        result = self._engine(client).run([self.super_game], self.token)

        self.assertEqual(result.outcome, SyncOutcome.COMPLETED)
        self.assertEqual(result.entries_listed, 0)
        self.assertEqual(self.listener.finished_count, 1)
        self.assertTrue(self.mirror.is_dir())

    def test_repeated_runs_perform_same_operations(self):
        entries = [folder("Super Game (USA)"), folder("Other"), folder("SUPER GAME (E)")]

        first_client = FakeDriveClient(entries)
        first = self._engine(first_client).run([self.super_game], CancellationToken())
        second_client = FakeDriveClient(entries)
        second = self._engine(second_client).run([self.super_game], CancellationToken())

        self.assertEqual(first_client.calls, second_client.calls)
        self.assertEqual(first.processed, second.processed)
        self.assertEqual(first.entries_deleted, 0)
        self.assertEqual(second.entries_deleted, 2)


class SkippedEntryTests(SyncEngineTestCase):
    def test_traversal_name_is_skipped(self):
        """A matching name with separators never reaches the filesystem."""
        self._make_local("Super Game")
        victim = self.root / "victim"
        victim.mkdir()
        (victim / "keep.txt").write_text("keep")
        name = "Super Game/../../victim"
        client = FakeDriveClient([folder(name)])

        result = self._engine(client).run([self.super_game], self.token)

        self.assertEqual(result.outcome, SyncOutcome.COMPLETED)
        self.assertEqual(result.skipped, [name])
        self.assertEqual(result.entries_deleted, 0)
        self.assertEqual(client.downloads, [])
        self.assertTrue((victim / "keep.txt").exists())
        self.assertTrue((self.mirror / "Super Game" / "save.eep").exists())

    def test_dot_dot_and_backslash_names_are_skipped(self):
        names = ["..", "Super Game\\..\\..\\victim"]
        target = build_target(MD5, "..", "Super Game", 0x45)
        client = FakeDriveClient([folder(n) for n in names])

        result = self._engine(client).run([target], self.token)

        self.assertEqual(result.skipped, names)
        self.assertEqual(client.downloads, [])

    def test_google_native_document_is_skipped(self):
        doc = DriveFile("doc1", "Super Game notes", "application/vnd.google-apps.document")
        self._make_local("Super Game notes")
        client = FakeDriveClient([doc, folder("Super Game (USA)")])

        result = self._engine(client).run([self.super_game], self.token)

        self.assertEqual(result.outcome, SyncOutcome.COMPLETED)
        self.assertEqual(client.downloads, ["Super Game (USA)"])
        self.assertEqual(result.skipped, ["Super Game notes"])
        self.assertEqual(result.entries_matched, 2)
        self.assertEqual(result.entries_downloaded, 1)
        self.assertEqual(result.entries_deleted, 0)
        self.assertTrue((self.mirror / "Super Game notes" / "save.eep").exists())
        self.assertIn(("skipped", "Super Game notes"), self.listener.events)
        self.assertNotIn(("progress", "Super Game notes"), self.listener.events)

    def test_regular_file_entry_is_downloaded(self):
        save = DriveFile("f1", "Super Game.sra", "application/octet-stream")
        client = FakeDriveClient([save])

        result = self._engine(client).run([self.super_game], self.token)

        self.assertEqual(result.skipped, [])
        self.assertEqual(client.downloads, ["Super Game.sra"])


class NoOpTests(SyncEngineTestCase):
    def test_missing_remote_root(self):
        client = FakeDriveClient([folder("Super Game (USA)")])
        client.root = None

        result = self._engine(client).run([self.super_game], self.token)

        self.assertEqual(result.outcome, SyncOutcome.NOOP)
        self.assertEqual(client.calls, [("find_root_folder", APP_FOLDER)])
        self.assertEqual(self.listener.events, [("finished", SyncOutcome.NOOP)])
        self.assertFalse(self.mirror.exists())

    def test_missing_destination_root(self):
        client = FakeDriveClient([folder("Super Game (USA)")])

        result = self._engine(client, destination_root=None).run([self.super_game], self.token)

        self.assertEqual(result.outcome, SyncOutcome.NOOP)
        self.assertEqual(client.calls, [])
        self.assertEqual(self.listener.finished_count, 1)
        self.assertTrue(result.succeeded)


class CancellationTests(SyncEngineTestCase):
    def test_cancel_before_run_processes_nothing(self):
        client = FakeDriveClient([folder("Super Game 1"), folder("Super Game 2")])
        self.token.cancel()

        result = self._engine(client).run([self.super_game], self.token)

        self.assertEqual(result.outcome, SyncOutcome.CANCELLED)
        self.assertEqual(client.downloads, [])
        self.assertEqual(self.listener.events, [("finished", SyncOutcome.CANCELLED)])

    def test_cancel_takes_effect_at_next_entry(self):
        """Entries at or after the index where the flag is seen are untouched."""
        names = ["Super Game 1", "Super Game 2", "Super Game 3", "Super Game 4"]
        client = FakeDriveClient([folder(n) for n in names])
        token = self.token

        class CancelAfterSecond(RecordingListener):
            def on_entry_downloaded(self, name, path):
                super().on_entry_downloaded(name, path)
                if name == "Super Game 2":
                    token.cancel()

        self.listener = CancelAfterSecond()
        result = self._engine(client).run([self.super_game], token)

        self.assertEqual(result.outcome, SyncOutcome.CANCELLED)
        self.assertEqual(client.downloads, ["Super Game 1", "Super Game 2"])
        self.assertEqual(result.processed, ["Super Game 1", "Super Game 2"])
        self.assertTrue((self.mirror / "Super Game 2").exists())
        self.assertFalse((self.mirror / "Super Game 3").exists())
        self.assertEqual(self.listener.finished_count, 1)

    def test_cancel_does_not_interrupt_in_flight_download(self):
        client = FakeDriveClient([folder("Super Game 1"), folder("Super Game 2")])
        original_download = client.download_entry

        def download_then_cancel(entry, destination):
            self.token.cancel()
            return original_download(entry, destination)

        client.download_entry = download_then_cancel

        result = self._engine(client).run([self.super_game], self.token)

        self.assertEqual(result.processed, ["Super Game 1"])
        self.assertTrue((self.mirror / "Super Game 1" / "save.eep").exists())


class TransferFailureTests(SyncEngineTestCase):
    def test_download_failure_aborts_run(self):
        client = FakeDriveClient(
            [folder("Super Game 1"), folder("Super Game 2"), folder("Super Game 3")],
            failures={"Super Game 2": OSError("disk full")},
        )

        result = self._engine(client).run([self.super_game], self.token)

        self.assertEqual(result.outcome, SyncOutcome.FAILED)
        self.assertFalse(result.succeeded)
        self.assertIsInstance(result.error, DownloadError)
        self.assertIn("disk full", str(result.error))
        self.assertEqual(client.downloads, ["Super Game 1", "Super Game 2"])
        self.assertEqual(result.processed, ["Super Game 1"])
        self.assertTrue((self.mirror / "Super Game 1").exists())
        self.assertEqual(self.listener.events[-1], ("finished", SyncOutcome.FAILED))
        self.assertEqual(self.listener.finished_count, 1)

    def test_http_error_during_download_is_a_download_error(self):
        response = Mock(status=500, reason="Server Error")
        client = FakeDriveClient(
            [folder("Super Game 1")],
            failures={"Super Game 1": HttpError(response, b"boom")},
        )

        result = self._engine(client).run([self.super_game], self.token)

        self.assertEqual(result.outcome, SyncOutcome.FAILED)
        self.assertIsInstance(result.error, DownloadError)

    def test_delete_failure_aborts_before_download(self):
        self._make_local("Super Game 1")
        client = FakeDriveClient([folder("Super Game 1"), folder("Super Game 2")])

        with patch("savesync.sync.destination.shutil.rmtree", side_effect=PermissionError("locked")):
            result = self._engine(client).run([self.super_game], self.token)

        self.assertEqual(result.outcome, SyncOutcome.FAILED)
        self.assertIsInstance(result.error, DeleteError)
        self.assertEqual(client.downloads, [])
        self.assertEqual(self.listener.finished_count, 1)

    def test_listing_failure_is_reported(self):
        client = FakeDriveClient([folder("Super Game 1")])
        client.find_root_folder = Mock(side_effect=TokenExpiredError("expired"))

        result = self._engine(client).run([self.super_game], self.token)

        self.assertEqual(result.outcome, SyncOutcome.FAILED)
        self.assertIsInstance(result.error, ListingError)
        self.assertEqual(self.listener.finished_count, 1)

    def test_unexpected_error_propagates_after_finishing(self):
        client = FakeDriveClient([folder("Super Game 1")], failures={"Super Game 1": KeyError("bug")})

        with self.assertRaises(KeyError):
            self._engine(client).run([self.super_game], self.token)

        self.assertEqual(self.listener.events[-1], ("finished", SyncOutcome.FAILED))


class SessionRecorderTests(TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.root = Path(self.temp_dir)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _run(self, request, client, targets):
        recorder = SessionRecorder(request, targets=len(targets))
        engine = SyncEngine(
            client=client,
            destination_root=self.root,
            listener=recorder,
            app_folder_name=APP_FOLDER,
            folder_name=MIRROR,
        )
        return recorder, engine.run(targets, CancellationToken())

    def test_completed_run_is_recorded(self):
        (self.root / MIRROR / "Super Game 1").mkdir(parents=True)
        targets = [build_target(MD5, "SUPER GAME", "Super Game", 0x45)]
        client = FakeDriveClient([folder("Super Game 1"), folder("Other")])

        recorder, result = self._run(AllItems(), client, targets)

        session = SyncSession.objects.get(id=recorder.session.id)
        self.assertEqual(session.status, "completed")
        self.assertEqual(session.scope, "all")
        self.assertEqual(session.targets, 1)
        self.assertEqual(session.entries_listed, 2)
        self.assertEqual(session.entries_matched, 1)
        self.assertEqual(session.entries_deleted, 1)
        self.assertEqual(session.entries_downloaded, 1)
        self.assertIsNotNone(session.completed_at)
        self.assertEqual(
            list(session.events.values_list("event_type", "entry_name")),
            [("entry_deleted", "Super Game 1"), ("entry_downloaded", "Super Game 1")],
        )

    def test_failed_run_records_error(self):
        request = SingleItem(MD5, "ABCD1234", "SUPER GAME", "Super Game", 0x45)
        targets = resolve_targets(request, store=None)
        client = FakeDriveClient(
            [folder("Super Game 1")], failures={"Super Game 1": OSError("no space")}
        )

        recorder, result = self._run(request, client, targets)

        session = SyncSession.objects.get(id=recorder.session.id)
        self.assertEqual(session.status, "failed")
        self.assertEqual(session.scope, "single")
        self.assertEqual(session.game_md5, MD5)
        self.assertIn("no space", session.error_message)
        self.assertTrue(
            SyncEvent.objects.filter(session=session, event_type="error").exists()
        )

    def test_noop_run_is_recorded(self):
        client = FakeDriveClient([folder("Super Game 1")])
        client.root = None

        recorder, result = self._run(AllItems(), client, [])

        session = SyncSession.objects.get(id=recorder.session.id)
        self.assertEqual(session.status, "noop")
        self.assertEqual(session.events.count(), 0)

    def test_skipped_entry_is_recorded(self):
        targets = [build_target(MD5, "SUPER GAME", "Super Game", 0x45)]
        doc = DriveFile("doc1", "Super Game notes", "application/vnd.google-apps.document")
        client = FakeDriveClient([doc])

        recorder, result = self._run(AllItems(), client, targets)

        event = SyncEvent.objects.get(session=recorder.session)
        self.assertEqual(event.event_type, "entry_skipped")
        self.assertEqual(event.entry_name, "Super Game notes")
        self.assertIn("no downloadable content", event.message)

    def test_record_rejected_request(self):
        session = record_rejected_request(MD5, "Single-game request is missing: crc")

        session.refresh_from_db()
        self.assertEqual(session.status, "rejected")
        self.assertEqual(session.scope, "single")
        self.assertEqual(session.game_md5, MD5)
        self.assertIsNotNone(session.completed_at)
        self.assertEqual(session.events.get().event_type, "error")

    def test_session_flag_cancels_run(self):
        targets = [build_target(MD5, "SUPER GAME", "Super Game", 0x45)]
        recorder = SessionRecorder(AllItems(), targets=1)
        token = SessionCancellationToken(recorder.session.id)
        client = FakeDriveClient([folder("Super Game 1"), folder("Super Game 2")])
        original_download = client.download_entry

        def download_then_flag(entry, destination):
            self.assertTrue(request_cancel(recorder.session.id))
            return original_download(entry, destination)

        client.download_entry = download_then_flag
        engine = SyncEngine(
            client=client,
            destination_root=self.root,
            listener=recorder,
            app_folder_name=APP_FOLDER,
            folder_name=MIRROR,
        )

        result = engine.run(targets, token)

        self.assertEqual(result.outcome, SyncOutcome.CANCELLED)
        self.assertEqual(result.processed, ["Super Game 1"])
        self.assertTrue(token.is_cancelled)
        self.assertEqual(SyncSession.objects.get(id=recorder.session.id).status, "cancelled")

    def test_request_cancel_ignores_finished_sessions(self):
        session = SyncSession.objects.create(scope="all", status="completed")

        self.assertFalse(request_cancel(session.id))
        self.assertFalse(SessionCancellationToken(session.id).is_cancelled)

    def test_recorder_forwards_to_inner_listener(self):
        inner = RecordingListener()
        recorder = SessionRecorder(AllItems(), inner=inner)

        recorder.report_progress("Super Game")

        self.assertEqual(inner.events, [("progress", "Super Game")])


@override_settings(SAVESYNC_APP_FOLDER_NAME="Configured Folder", SAVESYNC_GAME_DATA_DIR="/data/Saves")
class EngineSettingsTests(SimpleTestCase):
    def test_defaults_come_from_settings(self):
        engine = SyncEngine(client=FakeDriveClient(), destination_root=None)

        self.assertEqual(engine.app_folder_name, "Configured Folder")
        self.assertEqual(engine.folder_name, "Saves")
