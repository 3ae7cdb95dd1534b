from __future__ import annotations

import atexit
import importlib
import logging
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .container import Container, build_container
from .attendance.controller import register as register_attendance
from .notifications.controller import register as register_notifications
from .scans.controller import register as register_scans
from .students.controller import register as register_students

logger = logging.getLogger(__name__)


def create_app(container: Optional[Container] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    logging.basicConfig(
        level=getattr(settings, "LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    if container is None:
        container = build_container(
            storage_config=getattr(settings, "STORAGE_CONFIG", None),
            scan_policy=getattr(settings, "SCAN_POLICY", None),
            worker_config=getattr(settings, "SCAN_WORKER", None),
        )
    app.extensions["rfid_container"] = container
    logger.info("settings=%s storage=%s", settings_module, container.store.backend_name)

    register_students(app, container)
    register_attendance(app, container)
    register_notifications(app, container)
    register_scans(app, container)

    if bool(getattr(settings, "ENABLE_SCAN_WORKER", False)):
        container.worker.start()
        atexit.register(container.worker.stop)
    atexit.register(container.scan_service.stop_simulation)

    return app
