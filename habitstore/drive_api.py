"""Google Drive API helpers used to locate and create the habit store files."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httplib2
from googleapiclient.discovery import build

from habitstore.google_credentials import RequestExecutor, build_credentials

logger = logging.getLogger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
SPREADSHEET_MIME_TYPE = "application/vnd.google-apps.spreadsheet"
FILE_FIELDS = "id, name, mimeType, parents, createdTime, modifiedTime"


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def build_query(
    *,
    name: str,
    mime_type: str,
    parent_id: Optional[str] = None,
) -> str:
    """Return a Drive ``q`` expression matching live files by name and kind."""

    parts = [
        f"name = '{_escape(name)}'",
        f"mimeType = '{mime_type}'",
        "trashed = false",
    ]
    if parent_id:
        parts.append(f"'{_escape(parent_id)}' in parents")
    return " and ".join(parts)


class DriveClient:
    """Thin wrapper over the Drive v3 ``files`` resource."""

    def __init__(
        self,
        access_token: str = "",
        *,
        service=None,
        executor: Optional[RequestExecutor] = None,
    ) -> None:
        if executor is None:
            credentials = build_credentials(access_token) if access_token else None
            executor = RequestExecutor(credentials, authorize=service is None)
        self._executor = executor
        self._service = service

    @property
    def executor(self) -> RequestExecutor:
        return self._executor

    def _files(self):
        if self._service is None:
            logger.debug("Building Drive v3 service")
            self._service = build("drive", "v3", http=httplib2.Http(), cache_discovery=False)
        return self._service.files()

    def list_files(
        self,
        *,
        name: str,
        mime_type: str,
        parent_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        query = build_query(name=name, mime_type=mime_type, parent_id=parent_id)
        files: List[Dict[str, Any]] = []
        page_token: Optional[str] = None
        while True:
            request = self._files().list(
                q=query,
                spaces="drive",
                fields=f"nextPageToken, files({FILE_FIELDS})",
                pageToken=page_token,
            )
            response = self._executor.execute(request, "List Drive files")
            files.extend(response.get("files", []))
            page_token = response.get("nextPageToken")
            if not page_token:
                break
        return files

    def create_folder(self, name: str, parent_id: Optional[str] = None) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {"name": name, "mimeType": FOLDER_MIME_TYPE}
        if parent_id:
            metadata["parents"] = [parent_id]
        request = self._files().create(body=metadata, fields=FILE_FIELDS)
        return self._executor.execute(request, "Create folder")

    def get_file(self, file_id: str) -> Dict[str, Any]:
        request = self._files().get(fileId=file_id, fields=FILE_FIELDS)
        return self._executor.execute(request, "Get file metadata")

    def move_file(self, file_id: str, folder_id: str) -> Dict[str, Any]:
        """Re-parent ``file_id`` so that it lives only inside ``folder_id``."""

        current = self.get_file(file_id)
        previous = ",".join(current.get("parents", []) or [])
        logger.debug("Moving %s from %s to %s", file_id, previous or "(no parent)", folder_id)
        request = self._files().update(
            fileId=file_id,
            addParents=folder_id,
            removeParents=previous or None,
            fields="id, parents",
        )
        return self._executor.execute(request, "Move file")


__all__ = [
    "DriveClient",
    "FOLDER_MIME_TYPE",
    "SPREADSHEET_MIME_TYPE",
    "build_query",
]
