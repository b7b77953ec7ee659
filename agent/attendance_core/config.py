"""
Paths, logging setup, agent config load/save, safe_print.
"""

import os
import json
import sys
import logging
from pathlib import Path


# ─── Paths ───────────────────────────────────────────────────────
# One data directory per user. FOLLOWME_HOME overrides it (tests, portable installs).
_FOLDER_NAME = "FollowMe"


def default_base_dir():
    override = os.environ.get("FOLLOWME_HOME")
    if override:
        return Path(override)
    if sys.platform == "win32":
        return Path(os.environ.get("APPDATA", Path.home())) / _FOLDER_NAME
    return Path.home() / ".followme"


BASE_DIR = default_base_dir()

CONFIG_FILE = "config.json"
LOG_FILE = "agent.log"
SECURE_STORE_FILE = "secure.json"
ENTRIES_STORE_FILE = "entries.json"


def ensure_base_dir(base_dir=None):
    base = Path(base_dir or BASE_DIR)
    base.mkdir(parents=True, exist_ok=True)
    return base


# ─── Safe print (no crash when stdout is gone) ───────────────────

def safe_print(*args, **kwargs):
    try:
        print(*args, **kwargs)
    except Exception:
        pass


# ─── Logging ─────────────────────────────────────────────────────

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
LOG_MAX_BYTES = 1_000_000

log = logging.getLogger("followme")


def setup_logging(base_dir=None, level="INFO", console=True):
    """Attach a file handler (and optionally a console handler) to `log`."""
    log_file = ensure_base_dir(base_dir) / LOG_FILE
    try:
        if log_file.exists() and log_file.stat().st_size > LOG_MAX_BYTES:
            log_file.write_text("")
    except OSError:
        pass

    for handler in list(log.handlers):
        log.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)
    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setFormatter(formatter)
    log.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log.addHandler(console_handler)

    log.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    log.propagate = False
    return log


# ─── Config Management ──────────────────────────────────────────

def load_config(base_dir=None):
    """Load agent config from disk. Returns dict (empty when missing or corrupt)."""
    path = Path(base_dir or BASE_DIR) / CONFIG_FILE
    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return data if isinstance(data, dict) else {}
        except (json.JSONDecodeError, IOError):
            return {}
    return {}


def save_config(config, base_dir=None):
    """Save agent config dict to disk."""
    path = ensure_base_dir(base_dir) / CONFIG_FILE
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config, f, indent=2)
    log.info("Config saved to %s", path)
