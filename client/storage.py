"""
client/storage.py -- Persistent token storage for the Session Guard.

The token survives process restarts in a small JSON file, one file per
client profile. The file holds {"kind", "token", "principal"} and is written
with owner-only permissions since the token is a bearer credential.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger("musafir.client")

DEFAULT_PATH = Path.home() / ".musafir" / "session.json"


class TokenStorage:
    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path else DEFAULT_PATH

    def load(self) -> Optional[dict[str, Any]]:
        """Return the stored session dict, or None if absent or unreadable."""
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, e)
            return None
        if not isinstance(data, dict) or not data.get("token"):
            return None
        return data

    def save(self, kind: str, token: str, principal: Optional[dict[str, Any]] = None) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"kind": kind, "token": token, "principal": principal}
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        os.chmod(self.path, 0o600)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
