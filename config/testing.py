from config.config import *  # noqa: F401,F403

SECRET_KEY = "test-secret"

# Tests never reach the hosted store or sleep through settle delays.
STORAGE_CONFIG = {"backend": "local", "local_path": None}
SCAN_POLICY = {**SCAN_POLICY, "keystroke_settle_seconds": 0, "manual_settle_seconds": 0}
ENABLE_SCAN_WORKER = False

DEBUG = False
TESTING = True
LOG_LEVEL = "WARNING"
