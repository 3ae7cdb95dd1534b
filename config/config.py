"""Settings shared by every environment, read from environment variables."""

import os


def env_flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


def env_list(name: str, default: str = "") -> list:
    return [item.strip() for item in os.environ.get(name, default).split(",") if item.strip()]


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY") or "rfid-attendance-dev"

    # Hosted store (Supabase); without URL and key the local JSON store is used.
    SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
    SUPABASE_KEY = os.environ.get("SUPABASE_KEY", "")
    STORAGE_BACKEND = os.environ.get("STORAGE_BACKEND", "remote").lower()
    LOCAL_STORE_PATH = os.environ.get("LOCAL_STORE_PATH", "instance/local_store.json")
    REMOTE_TIMEOUT = int(os.environ.get("REMOTE_TIMEOUT", "10"))

    # Scan acceptance rules
    SCAN_COOLDOWN = float(os.environ.get("SCAN_COOLDOWN", "5"))
    SCAN_PARTIAL_WINDOW = float(os.environ.get("SCAN_PARTIAL_WINDOW", "1"))
    SCAN_SAME_TAG_WINDOW = float(os.environ.get("SCAN_SAME_TAG_WINDOW", "3"))
    SCAN_KEYSTROKE_SETTLE = float(os.environ.get("SCAN_KEYSTROKE_SETTLE", "0.5"))
    SCAN_MANUAL_SETTLE = float(os.environ.get("SCAN_MANUAL_SETTLE", "1.5"))
    SCAN_TAG_LENGTH = int(os.environ.get("SCAN_TAG_LENGTH", "8"))
    LATE_AFTER = os.environ.get("LATE_AFTER", "08:00:00")
    BLOCKED_TAGS = os.environ.get("BLOCKED_TAGS", "38103006")

    # Background worker (realtime queue and pollers)
    ENABLE_SCAN_WORKER = env_flag("ENABLE_SCAN_WORKER", "0")
    POLL_INTERVAL = float(os.environ.get("POLL_INTERVAL", "1"))
    POLL_SCANS_TABLE = env_flag("POLL_SCANS_TABLE", "0")
    HELPER_URL = env_list("HELPER_URL")

    # Helper scan servers
    SCAN_FILE = os.environ.get("SCAN_FILE", "rfid_scans.txt")
    SCAN_DB_HOST = os.environ.get("SCAN_DB_HOST", "localhost")
    SCAN_DB_PORT = int(os.environ.get("SCAN_DB_PORT", "3306"))
    SCAN_DB_USER = os.environ.get("SCAN_DB_USER", "root")
    SCAN_DB_PASSWORD = os.environ.get("SCAN_DB_PASSWORD", "")
    SCAN_DB_NAME = os.environ.get("SCAN_DB_NAME", "rfid_system")


STORAGE_CONFIG = {
    "backend": Config.STORAGE_BACKEND,
    "url": Config.SUPABASE_URL,
    "key": Config.SUPABASE_KEY,
    "timeout": Config.REMOTE_TIMEOUT,
    "local_path": Config.LOCAL_STORE_PATH,
}

SCAN_POLICY = {
    "cooldown_seconds": Config.SCAN_COOLDOWN,
    "partial_read_window_seconds": Config.SCAN_PARTIAL_WINDOW,
    "same_tag_window_seconds": Config.SCAN_SAME_TAG_WINDOW,
    "keystroke_settle_seconds": Config.SCAN_KEYSTROKE_SETTLE,
    "manual_settle_seconds": Config.SCAN_MANUAL_SETTLE,
    "physical_tag_length": Config.SCAN_TAG_LENGTH,
    "late_after": Config.LATE_AFTER,
    "blocked_tags": Config.BLOCKED_TAGS,
}

SCAN_WORKER = {
    "interval": Config.POLL_INTERVAL,
    "poll_table": Config.POLL_SCANS_TABLE,
    "helper_urls": Config.HELPER_URL,
}

SCAN_DB_CONFIG = {
    "host": Config.SCAN_DB_HOST,
    "port": Config.SCAN_DB_PORT,
    "user": Config.SCAN_DB_USER,
    "password": Config.SCAN_DB_PASSWORD,
    "database": Config.SCAN_DB_NAME,
}

SCAN_FILE = Config.SCAN_FILE
SECRET_KEY = Config.SECRET_KEY
ENABLE_SCAN_WORKER = Config.ENABLE_SCAN_WORKER
