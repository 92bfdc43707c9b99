#!/usr/bin/env python3
"""
Teacher Fairy - Lesson Plan Authoring
=====================================
Run: python3 -m teacher_fairy.app
Then open: http://localhost:3000
"""
import logging

from flask import Flask
from flask_cors import CORS

from .config import DEBUG, HOST, PORT, STATE_FILE
from .routes import register_routes
from .services.backup_service import AutoBackup, BackupService
from .services.google_drive import GoogleDriveStorage
from .services.plan_generator import GenerationTracker, PlanGenerationService
from .services.state_store import JsonFileStateStore

logger = logging.getLogger(__name__)


def create_app(state_store=None, backup_storage=None, plan_service=None, clipboard_writer=None):
    """Build the Flask app around its collaborators.

    Args:
        state_store: ``StateStore`` for the project; defaults to ``STATE_FILE``.
        backup_storage: Backup storage port; defaults to Google Drive.
        plan_service: ``PlanGenerationService``; defaults to the remote endpoint.
        clipboard_writer: Optional callable used by ``/api/copy-plan``.
    """
    app = Flask(__name__)
    CORS(app)

    store = state_store or JsonFileStateStore(STATE_FILE)
    backup_service = BackupService(store, backup_storage or GoogleDriveStorage())
    state = store.load()

    app.config.update(
        STATE_STORE=store,
        BACKUP_SERVICE=backup_service,
        AUTO_BACKUP=AutoBackup(backup_service, state.drive.auto_backup_minutes),
        GENERATION_TRACKER=GenerationTracker(plan_service or PlanGenerationService()),
        CLIPBOARD_WRITER=clipboard_writer,
    )
    register_routes(app)
    return app


def main():
    logging.basicConfig(
        level=logging.DEBUG if DEBUG else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app()

    drive = app.config['STATE_STORE'].load().drive
    if drive.auto_backup:
        app.config['AUTO_BACKUP'].start(drive.auto_backup_minutes)
        logger.info("Auto-backup every %s minutes", drive.auto_backup_minutes)

    logger.info("Teacher Fairy running on http://%s:%s", HOST, PORT)
    app.run(host=HOST, port=PORT, debug=DEBUG)


if __name__ == '__main__':
    main()
