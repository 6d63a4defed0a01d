"""
Google Drive API client for save data downloads.

Provides credential loading and refresh, folder lookup, folder listing
and recursive folder download.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator

from django.conf import settings
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.http import MediaIoBaseDownload

from savesync.paths import is_safe_entry_name

logger = logging.getLogger(__name__)

# Only files created by the app are visible with this scope
SCOPES = [
    "https://www.googleapis.com/auth/drive.file",
    "https://www.googleapis.com/auth/userinfo.email",
]

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"

# Google-native types have no binary content to download
NON_DOWNLOADABLE_PREFIX = "application/vnd.google-apps."

FILE_FIELDS = "id,name,mimeType,size,modifiedTime,parents"


class GoogleDriveError(Exception):
    """Base exception for Google Drive operations."""

    pass


class TokenExpiredError(GoogleDriveError):
    """Raised when credentials are missing or cannot be refreshed."""

    pass


class FileNotDownloadableError(GoogleDriveError):
    """Raised when a file type cannot be downloaded."""

    pass


class UnsafeNameError(GoogleDriveError):
    """Raised when a remote name cannot be used as a local path component."""

    pass


@dataclass
class DriveFile:
    """Represents a file or folder from Google Drive."""

    id: str
    name: str
    mime_type: str
    size: int | None = None
    modified_time: datetime | None = None
    parents: list[str] | None = None

    @classmethod
    def from_api_response(cls, data: dict) -> "DriveFile":
        """Create DriveFile from Google API response."""
        modified = data.get("modifiedTime")
        return cls(
            id=data["id"],
            name=data["name"],
            mime_type=data.get("mimeType", ""),
            size=int(data["size"]) if "size" in data else None,
            modified_time=datetime.fromisoformat(modified.replace("Z", "+00:00"))
            if modified
            else None,
            parents=data.get("parents", []),
        )

    @property
    def is_folder(self) -> bool:
        return self.mime_type == FOLDER_MIME_TYPE

    @property
    def is_downloadable(self) -> bool:
        return not self.mime_type.startswith(NON_DOWNLOADABLE_PREFIX)


def _quote(value: str) -> str:
    """Escape a value for use inside a Drive query string literal."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


class GoogleDriveClient:
    """
    Client for Google Drive API operations.

    Handles token refresh, root folder lookup, listing and downloads.
    """

    def __init__(self, token_file: str | Path | None = None, credentials: Credentials | None = None):
        """
        Initialize the client.

        Args:
            token_file: Authorized-user JSON file (default: settings.GOOGLE_TOKEN_FILE)
            credentials: Pre-built credentials, used instead of the token file
        """
        self.token_file = Path(token_file or settings.GOOGLE_TOKEN_FILE)
        self._credentials = credentials
        self._persist_refresh = credentials is None
        self._service = None

    def _get_credentials(self) -> Credentials:
        """Load credentials from the token file on first use."""
        if self._credentials is None:
            if not self.token_file.exists():
                raise TokenExpiredError(f"No token file found at {self.token_file}")
            try:
                self._credentials = Credentials.from_authorized_user_file(
                    str(self.token_file), scopes=SCOPES
                )
            except ValueError as e:
                raise TokenExpiredError(f"Invalid token file {self.token_file}: {e}") from e
        return self._credentials

    def refresh_token_if_needed(self) -> bool:
        """
        Refresh the access token if expired or expiring soon.

        Returns:
            True if token was refreshed, False otherwise

        Raises:
            TokenExpiredError: If refresh fails
        """
        credentials = self._get_credentials()

        # google-auth keeps expiry as a naive UTC datetime
        if credentials.token and credentials.expiry:
            buffer = timedelta(minutes=5)
            if credentials.expiry > datetime.now(timezone.utc).replace(tzinfo=None) + buffer:
                return False

        if not credentials.refresh_token:
            raise TokenExpiredError("No refresh token available")

        try:
            credentials.refresh(Request())
        except Exception as e:
            logger.error(f"Token refresh failed: {e}")
            raise TokenExpiredError(f"Token refresh failed: {e}") from e

        if self._persist_refresh:
            self.token_file.write_text(credentials.to_json())

        logger.info("Refreshed Google Drive access token")
        return True

    def _get_service(self):
        """Get or create the Drive API service."""
        if self._service is None:
            self.refresh_token_if_needed()
            self._service = build("drive", "v3", credentials=self._get_credentials())
        return self._service

    def find_root_folder(self, name: str) -> DriveFile | None:
        """
        Find the app's top-level folder by name.

        Args:
            name: Folder name

        Returns:
            The folder, or None if it has never been created
        """
        service = self._get_service()
        response = (
            service.files()
            .list(
                q=(
                    f"mimeType = '{FOLDER_MIME_TYPE}' and name = '{_quote(name)}' "
                    "and 'root' in parents and trashed = false"
                ),
                spaces="drive",
                fields=f"files({FILE_FIELDS})",
                pageSize=1,
            )
            .execute()
        )

        files = response.get("files", [])
        if not files:
            logger.info(f"Remote folder '{name}' not found")
            return None
        return DriveFile.from_api_response(files[0])

    def list_entries(self, folder_id: str, page_size: int = 1000) -> Iterator[DriveFile]:
        """
        List the direct children of a folder (non-recursive).

        Args:
            folder_id: The folder ID
            page_size: Number of files per page

        Yields:
            DriveFile objects in listing order
        """
        service = self._get_service()
        page_token = None

        while True:
            params = {
                "q": f"'{folder_id}' in parents and trashed = false",
                "spaces": "drive",
                "pageSize": page_size,
                "fields": f"nextPageToken,files({FILE_FIELDS})",
            }
            if page_token:
                params["pageToken"] = page_token

            response = service.files().list(**params).execute()

            for file_data in response.get("files", []):
                yield DriveFile.from_api_response(file_data)

            page_token = response.get("nextPageToken")
            if not page_token:
                break

    def download_file(self, drive_file: DriveFile, target: Path) -> int:
        """
        Download a regular file to a local path.

        Content is written to a ``.part`` file first and renamed into place.

        Returns:
            Number of bytes written

        Raises:
            FileNotDownloadableError: If file type cannot be downloaded
        """
        if not drive_file.is_downloadable:
            raise FileNotDownloadableError(
                f"File type {drive_file.mime_type} cannot be downloaded"
            )

        service = self._get_service()
        request = service.files().get_media(fileId=drive_file.id)
        tmp_path = target.with_name(target.name + ".part")

        try:
            with open(tmp_path, "wb") as f:
                downloader = MediaIoBaseDownload(f, request)
                done = False
                while not done:
                    status, done = downloader.next_chunk()
                    if status:
                        logger.debug(
                            f"Download progress for {drive_file.name}: {int(status.progress() * 100)}%"
                        )
            tmp_path.replace(target)
        except Exception:
            if tmp_path.exists():
                tmp_path.unlink()
            raise

        return target.stat().st_size

    def download_entry(self, entry: DriveFile, destination: Path) -> Path:
        """
        Download a remote entry into a local folder.

        Folders are recreated under ``destination`` and downloaded
        recursively. Children that are Google-native documents, or whose
        names are not a single path component, are skipped.

        Args:
            entry: Remote file or folder
            destination: Existing local folder to download into

        Returns:
            Local path of the downloaded entry

        Raises:
            UnsafeNameError: If the entry name would escape ``destination``
        """
        if not is_safe_entry_name(entry.name):
            raise UnsafeNameError(f"Entry name {entry.name!r} is not a valid local name")
        target = Path(destination) / entry.name

        if not entry.is_folder:
            self.download_file(entry, target)
            return target

        target.mkdir(parents=True, exist_ok=True)
        for child in self.list_entries(entry.id):
            if not is_safe_entry_name(child.name):
                logger.warning(f"Skipping {entry.name}/{child.name!r}: unsafe local name")
                continue
            if child.is_folder:
                self.download_entry(child, target)
                continue
            try:
                self.download_file(child, target / child.name)
            except FileNotDownloadableError as e:
                logger.warning(f"Skipping {entry.name}/{child.name}: {e}")

        logger.debug(f"Downloaded folder {entry.name} to {target}")
        return target
