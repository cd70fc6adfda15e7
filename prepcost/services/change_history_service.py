"""
Change History Service - remember which items a save retired.

Deprecated item ids are merged into a JSON file next to the database so that
a later consumer (a sync job, a report) can pick them up with
get_and_clear(). The file lives outside the SQLite database and survives a
database reset.

Usage:
    recorder = JsonChangeHistoryRecorder()
    recorder.record([12, 15])
    pending = recorder.get_and_clear()   # [12, 15]
"""

import json
import threading
from pathlib import Path
from typing import Iterable, List, Optional

from prepcost.services.logging_utils import get_service_logger
from prepcost.utils.config import get_config

logger = get_service_logger(__name__)

HISTORY_KEY = "deprecated_item_ids"


class JsonChangeHistoryRecorder:
    """ChangeHistoryRecorder backed by a JSON file."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else get_config().change_history_path
        self._lock = threading.Lock()

    def _load(self) -> List:
        if not self.path.exists():
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Failed to load change history from {self.path}: {e}")
            return []
        ids = data.get(HISTORY_KEY, []) if isinstance(data, dict) else []
        return ids if isinstance(ids, list) else []

    def _save(self, ids: List) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump({HISTORY_KEY: ids}, f, indent=2)

    def record(self, item_ids: Iterable) -> None:
        """
        Merge ids into the pending history, keeping first-seen order.

        Raises:
            OSError: If the history file cannot be written
        """
        new_ids = list(item_ids)
        if not new_ids:
            return
        with self._lock:
            merged = self._load()
            for item_id in new_ids:
                if item_id not in merged:
                    merged.append(item_id)
            self._save(merged)
        logger.debug(f"Recorded {len(new_ids)} deprecated item(s) in {self.path}")

    def get(self) -> List:
        with self._lock:
            return self._load()

    def get_and_clear(self) -> List:
        """Return the pending ids and empty the history."""
        with self._lock:
            ids = self._load()
            if ids:
                self._save([])
            return ids
