from __future__ import annotations

import json
import logging
import os
from datetime import datetime, UTC
from pathlib import Path
from typing import Dict, Optional


logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR_ENV = "FUNDING_STATE_DIR"
LAST_USED_CONNECTOR = "last_used_connector"


def _default_prefs_file() -> Path:
    base = os.environ.get(DEFAULT_STATE_DIR_ENV)
    if base:
        return Path(base) / "wallet_prefs.json"
    return Path(".cache") / "wallet_prefs.json"


class ConnectorPreferenceStore:
    """
    Tiny JSON file remembering which connector the user last connected with.

    - Backed by a single JSON object: {"last_used_connector": ..., "updated_at": ...}
    - Best-effort: read errors and corrupt files yield "nothing remembered",
      write errors are logged and ignored. Not security-sensitive.
    """

    def __init__(self, path: Optional[os.PathLike[str] | str] = None) -> None:
        self._path = Path(path) if path else _default_prefs_file()
        self._data: Dict[str, str] = {}
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._path

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        self._loaded = True
        try:
            if self._path.exists():
                with self._path.open("r", encoding="utf-8") as f:
                    raw = json.load(f)
                if isinstance(raw, dict):
                    self._data = {str(k): str(v) for k, v in raw.items() if isinstance(v, str)}
        except (OSError, ValueError) as exc:
            logger.warning("ignoring unreadable preferences file %s: %s", self._path, exc)
            self._data = {}

    def _save(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2, sort_keys=True)
        except OSError as exc:
            logger.warning("could not write preferences file %s: %s", self._path, exc)

    def last_connector(self) -> Optional[str]:
        self._ensure_loaded()
        return self._data.get(LAST_USED_CONNECTOR) or None

    def remember_connector(self, connector_id: str) -> None:
        self._ensure_loaded()
        self._data[LAST_USED_CONNECTOR] = connector_id
        self._data["updated_at"] = datetime.now(UTC).isoformat(timespec="seconds")
        self._save()

    def forget_connector(self) -> None:
        self._ensure_loaded()
        if self._data.pop(LAST_USED_CONNECTOR, None) is None:
            return
        self._data.pop("updated_at", None)
        self._save()


class MemoryPreferenceStore(ConnectorPreferenceStore):
    """Same interface, nothing written to disk."""

    def __init__(self, connector_id: Optional[str] = None) -> None:
        super().__init__(path=os.devnull)
        self._loaded = True
        if connector_id:
            self._data[LAST_USED_CONNECTOR] = connector_id

    def _save(self) -> None:
        return None
