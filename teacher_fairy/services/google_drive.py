"""
Google Drive v3 storage for project backups.

Talks to the Drive REST API directly with ``requests`` using an OAuth bearer
token (``GOOGLE_DRIVE_ACCESS_TOKEN`` by default). Uploads are
``multipart/related`` with JSON metadata plus the JSON payload.
"""
import json
import logging
import os

import requests

logger = logging.getLogger(__name__)

DRIVE_API = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_API = "https://www.googleapis.com/upload/drive/v3"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
MULTIPART_BOUNDARY = "-------314159265358979323846"
REQUEST_TIMEOUT = 30


class DriveAuthError(RuntimeError):
    """No usable Drive credential, or Drive rejected it."""


class DriveRequestError(RuntimeError):
    """A Drive call failed in transport or returned a non-success status."""

    def __init__(self, message, status=None):
        super().__init__(message)
        self.status = status


def _quote(value):
    return str(value).replace("\\", "\\\\").replace("'", "\\'")


def multipart_body(metadata, content, boundary=MULTIPART_BOUNDARY):
    """Body for a ``multipart/related`` upload: metadata part then media part."""
    delimiter = f"\r\n--{boundary}\r\n"
    close_delim = f"\r\n--{boundary}--"
    return (
        delimiter
        + "Content-Type: application/json; charset=UTF-8\r\n\r\n"
        + json.dumps(metadata)
        + "\r\n"
        + delimiter
        + "Content-Type: application/json\r\n\r\n"
        + content
        + close_delim
    ).encode('utf-8')


def _env_token():
    return os.getenv("GOOGLE_DRIVE_ACCESS_TOKEN", "")


class GoogleDriveStorage:
    """Backup storage port implemented against Google Drive."""

    def __init__(self, token_provider=None, session=None, timeout=REQUEST_TIMEOUT):
        self.token_provider = token_provider or _env_token
        self.session = session or requests.Session()
        self.timeout = timeout

    def authenticate(self):
        token = (self.token_provider() or "").strip()
        if not token:
            raise DriveAuthError("Not connected to Google Drive")
        return {"Authorization": f"Bearer {token}"}

    def _request(self, method, url, **kwargs):
        headers = {**self.authenticate(), **kwargs.pop("headers", {})}
        try:
            resp = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise DriveRequestError(f"Drive request failed: {e}") from e

        if resp.status_code in (401, 403):
            raise DriveAuthError(f"Drive rejected the credential ({resp.status_code})")
        if not resp.ok:
            raise DriveRequestError(f"Drive returned {resp.status_code}: {resp.text[:200]}",
                                    status=resp.status_code)
        return resp

    def _list(self, q, page_size):
        resp = self._request("GET", f"{DRIVE_API}/files", params={
            "q": q,
            "fields": "files(id,name,modifiedTime)",
            "orderBy": "modifiedTime desc",
            "pageSize": page_size,
        })
        return resp.json().get("files", [])

    def upload_file(self, name, content, folder_id=None):
        metadata = {"name": name, "mimeType": "application/json"}
        if folder_id:
            metadata["parents"] = [folder_id]
        resp = self._request(
            "POST", f"{DRIVE_UPLOAD_API}/files",
            params={"uploadType": "multipart"},
            headers={"Content-Type": f"multipart/related; boundary={MULTIPART_BOUNDARY}"},
            data=multipart_body(metadata, content),
        )
        result = resp.json()
        logger.info("Uploaded %s to Drive (%s)", name, result.get("id"))
        return result

    def find_latest(self, name, folder_id=None):
        """Newest non-trashed file called ``name``, or None."""
        q = f"name='{_quote(name)}' and trashed=false"
        if folder_id:
            q += f" and '{_quote(folder_id)}' in parents"
        files = self._list(q, page_size=1)
        return files[0] if files else None

    def download(self, file_id):
        resp = self._request("GET", f"{DRIVE_API}/files/{file_id}", params={"alt": "media"})
        return resp.content

    def ensure_folder(self, name):
        """Find a folder by name, creating it when missing."""
        q = f"mimeType='{FOLDER_MIME_TYPE}' and name='{_quote(name)}' and trashed=false"
        folders = self._list(q, page_size=5)
        if folders:
            return folders[0]
        resp = self._request("POST", f"{DRIVE_API}/files",
                             json={"name": name, "mimeType": FOLDER_MIME_TYPE})
        folder = resp.json()
        logger.info("Created Drive folder %s (%s)", name, folder.get("id"))
        return folder
