"""
Backup / Restore
================

Writes the whole project plus the imported standards catalog to remote
storage as one JSON document and restores the newest copy wholesale.

Payload shape::

    {"project": {...}, "standardsDB": {...}, "ts": <epoch ms>}

The storage backend is any object with ``authenticate``, ``upload_file``,
``find_latest``, ``download`` and ``ensure_folder`` (see
``services/google_drive.py``).
"""
import json
import logging
import threading
import time

from ..config import BACKUP_FILENAME, DEFAULT_DRIVE_FOLDER
from ..models import PlanFormError, Project, clamp_backup_minutes
from .standards_catalog import StandardsImportError, parse_catalog

logger = logging.getLogger(__name__)


class BackupInProgressError(RuntimeError):
    """A backup is already running."""


class BackupNotFoundError(LookupError):
    """No backup file exists in the chosen location."""


class BackupFormatError(ValueError):
    """The backup file could not be parsed or validated."""


def _now_ms():
    return int(time.time() * 1000)


def build_payload(state, ts):
    return {
        "project": state.project.to_dict(),
        "standardsDB": state.standards_db,
        "ts": ts,
    }


def parse_payload(raw):
    """Validate downloaded backup bytes into ``(Project, standards_db)``."""
    if isinstance(raw, bytes):
        raw = raw.decode('utf-8-sig', errors='replace')
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise BackupFormatError(f"Backup file is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise BackupFormatError("Backup file must be a JSON object")

    project_data = data.get("project") or {}
    if not isinstance(project_data, dict):
        raise BackupFormatError("Backup 'project' must be an object")
    try:
        project = Project.from_dict(project_data)
        standards_db = data.get("standardsDB") or {}
        parse_catalog(standards_db)
    except (PlanFormError, StandardsImportError) as e:
        raise BackupFormatError(f"Backup file is malformed: {e}") from e
    return project, standards_db


class BackupService:
    """Backup and restore of the locally stored state."""

    def __init__(self, store, storage, clock=_now_ms, filename=BACKUP_FILENAME):
        self.store = store
        self.storage = storage
        self.clock = clock
        self.filename = filename
        self._lock = threading.Lock()

    @property
    def in_progress(self):
        return self._lock.locked()

    def backup(self):
        """Upload the current state. Returns ``{id, name, ts}``."""
        if not self._lock.acquire(blocking=False):
            raise BackupInProgressError("A backup is already running")
        try:
            self.storage.authenticate()
            state = self.store.load()
            ts = self.clock()
            content = json.dumps(build_payload(state, ts), indent=2, ensure_ascii=False)
            folder_id = self._backup_folder(state.drive)
            result = self.storage.upload_file(self.filename, content, folder_id)

            def record(s):
                s.drive.last_backup_ts = ts
                if folder_id:
                    s.drive.folder_id = folder_id
            self.store.update(record)
            logger.info("Backup saved to Drive as %s", self.filename)
            return {"id": (result or {}).get("id"), "name": self.filename, "ts": ts}
        finally:
            self._lock.release()

    def _backup_folder(self, drive):
        """Id of the chosen folder, recreated by name if it was deleted."""
        if not drive.folder_name:
            return drive.folder_id or None
        folder = self.storage.ensure_folder(drive.folder_name) or {}
        return folder.get("id") or drive.folder_id or None

    def restore(self):
        """Replace project and standards with the newest backup.

        Drive settings are kept. Raises ``BackupNotFoundError`` or
        ``BackupFormatError``; on either, local state is left as it was.
        """
        self.storage.authenticate()
        state = self.store.load()
        found = self.storage.find_latest(self.filename, state.drive.folder_id or None)
        if not found:
            raise BackupNotFoundError("No backup file found in Drive.")

        project, standards_db = parse_payload(self.storage.download(found["id"]))

        state.project = project
        state.standards_db = standards_db
        self.store.save(state)
        logger.info("Restored backup %s (modified %s)", found.get("id"), found.get("modifiedTime", "?"))
        return state

    def choose_folder(self, name=None):
        name = (name or "").strip() or DEFAULT_DRIVE_FOLDER
        self.storage.authenticate()
        folder = self.storage.ensure_folder(name)
        if not folder or not folder.get("id"):
            raise BackupNotFoundError("Could not set Drive folder")

        def record(s):
            s.drive.folder_id = folder["id"]
            s.drive.folder_name = folder.get("name") or name
        state = self.store.update(record)
        logger.info("Drive folder set: %s", state.drive.folder_name)
        return state.drive


class AutoBackup:
    """Re-arming timer that calls ``BackupService.backup`` every N minutes."""

    def __init__(self, service, minutes=None):
        self.service = service
        self.minutes = clamp_backup_minutes(minutes)
        self._timer = None
        self._guard = threading.Lock()

    @property
    def running(self):
        return self._timer is not None

    def start(self, minutes=None):
        with self._guard:
            if minutes is not None:
                self.minutes = clamp_backup_minutes(minutes)
            self._cancel()
            self._arm()

    def stop(self):
        with self._guard:
            self._cancel()

    def _cancel(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _arm(self):
        self._timer = threading.Timer(self.minutes * 60, self._tick)
        self._timer.daemon = True
        self._timer.start()

    def tick(self):
        """Run one backup; a backup already in flight makes this a no-op."""
        try:
            return self.service.backup()
        except BackupInProgressError:
            logger.info("Auto-backup skipped: a backup is already running")
        except Exception as e:
            logger.warning("Auto-backup failed: %s", e)
        return None

    def _tick(self):
        self.tick()
        with self._guard:
            if self._timer is not None:
                self._arm()
