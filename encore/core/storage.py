"""
Local tier. JSON documents on the host filesystem, one file per key.

Layout: {base_path}/{namespace}/{key}.json

This is the always-available, synchronous store that every component writes
first. The remote tier (database) is optional and asynchronous.
"""

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

_SAFE_KEY_RE = re.compile(r"[^A-Za-z0-9_.-]")


def _safe(part: str) -> str:
    cleaned = _SAFE_KEY_RE.sub("_", part.strip())
    return cleaned or "_"


class LocalStore:
    def __init__(self, base_path: str = "./local_storage"):
        self.base_path = Path(base_path)

    def _path(self, namespace: str, key: str) -> Path:
        return self.base_path / _safe(namespace) / f"{_safe(key)}.json"

    def read(self, namespace: str, key: str, default: Any = None) -> Any:
        """Read a JSON value. Corrupt or missing files return `default`."""
        path = self._path(namespace, key)
        if not path.exists():
            return default
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Unreadable local entry %s/%s: %s", namespace, key, e)
            return default

    def write(self, namespace: str, key: str, value: Any) -> None:
        """Write a JSON value atomically (temp file + replace)."""
        path = self._path(namespace, key)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(value, f, ensure_ascii=False, indent=2, default=str)
            os.replace(tmp, path)
        except Exception:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def delete(self, namespace: str, key: str) -> bool:
        path = self._path(namespace, key)
        if path.exists():
            path.unlink()
            return True
        return False

    def keys(self, namespace: str) -> list[str]:
        folder = self.base_path / _safe(namespace)
        if not folder.exists():
            return []
        return sorted(p.stem for p in folder.glob("*.json"))


def user_namespace(user_id: str, area: str, artist_id: Optional[str] = None) -> str:
    """Namespace for per-user (and optionally per-artist) local entries."""
    parts = [user_id, area]
    if artist_id:
        parts.append(artist_id)
    return "__".join(_safe(p) for p in parts)
