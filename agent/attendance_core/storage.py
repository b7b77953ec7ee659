"""
Key-value stores backing settings, the auth token and the entry queue.

A store only knows strings: get(key) -> str | None, put(key, value), delete(key).
Callers serialise their own JSON blobs. JsonFileStore keeps all keys in one
JSON file and rewrites it whole on every change (temp file + rename), so the
file on disk is always a complete snapshot.
"""

import json
import os
import threading
from pathlib import Path

from .config import log


class JsonFileStore:
    """File-backed string store. `private=True` restricts the file to its owner."""

    def __init__(self, path, private=False):
        self.path = Path(path)
        self._private = private
        self._lock = threading.Lock()

    def get(self, key):
        with self._lock:
            return self._read().get(key)

    def put(self, key, value):
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def delete(self, key):
        with self._lock:
            data = self._read()
            if key in data:
                del data[key]
                self._write(data)

    def _read(self):
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            log.warning("Store %s unreadable, starting empty: %s", self.path.name, e)
            return {}
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _write(self, data):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
            f.flush()
            os.fsync(f.fileno())
        if self._private:
            os.chmod(tmp, 0o600)
        os.replace(tmp, self.path)
