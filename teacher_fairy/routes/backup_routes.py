"""
Google Drive backup routes.
"""
import logging

from flask import Blueprint, current_app, jsonify, request

from ..models import clamp_backup_minutes
from ..services.backup_service import (
    BackupFormatError,
    BackupInProgressError,
    BackupNotFoundError,
)
from ..services.google_drive import DriveAuthError, DriveRequestError

logger = logging.getLogger(__name__)

backup_bp = Blueprint('backup', __name__)


def _service():
    return current_app.config['BACKUP_SERVICE']


def _drive_error(e):
    """JSON error response for a failed Drive call."""
    if isinstance(e, DriveAuthError):
        return jsonify({"error": str(e)}), 401
    logger.warning("Drive request failed: %s", e)
    return jsonify({"error": str(e)}), 502


@backup_bp.route('/api/backup', methods=['POST'])
def backup():
    try:
        receipt = _service().backup()
    except BackupInProgressError as e:
        return jsonify({"error": str(e)}), 409
    except (DriveAuthError, DriveRequestError) as e:
        return _drive_error(e)
    return jsonify({"status": "Backup saved to Drive", **receipt})


@backup_bp.route('/api/restore', methods=['POST'])
def restore():
    try:
        state = _service().restore()
    except BackupNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except BackupFormatError as e:
        logger.warning("Restore rejected: %s", e)
        return jsonify({"error": str(e)}), 422
    except (DriveAuthError, DriveRequestError) as e:
        return _drive_error(e)
    return jsonify({
        "status": "Restored latest backup from Drive",
        "project": state.project.to_dict(),
        "standardsDB": state.standards_db,
    })


@backup_bp.route('/api/drive/folder', methods=['POST'])
def choose_folder():
    name = (request.get_json(silent=True) or {}).get("name")
    try:
        drive = _service().choose_folder(name)
    except BackupNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (DriveAuthError, DriveRequestError) as e:
        return _drive_error(e)
    return jsonify({"status": f"Drive folder set: {drive.folder_name}", "drive": drive.to_dict()})


@backup_bp.route('/api/drive/auto-backup', methods=['PUT'])
def set_auto_backup():
    """Turn the auto-backup timer on or off: ``{"enabled": bool, "minutes": int}``."""
    data = request.get_json(silent=True) or {}
    store = current_app.config['STATE_STORE']
    auto = current_app.config['AUTO_BACKUP']

    def apply(state):
        if "enabled" in data:
            state.drive.auto_backup = bool(data["enabled"])
        if "minutes" in data:
            state.drive.auto_backup_minutes = clamp_backup_minutes(data["minutes"])
    drive = store.update(apply).drive

    if drive.auto_backup:
        auto.start(drive.auto_backup_minutes)
    else:
        auto.stop()
    return jsonify({"drive": drive.to_dict(), "running": auto.running})
