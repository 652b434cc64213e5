"""
Durable key-value stores and the collection repository built on top of them.

Every collection (plans, progress, settings, review sessions, activities)
is stored as one whole JSON blob under a fixed key. Mutations read the
full collection, change it in memory and write it back; this is safe for
the single local writer the tracker is built for.
"""

import copy
import json
import logging
import os
import tempfile
from typing import Any, Dict, List, Optional

from hifz_tracker.config import config
from hifz_tracker.models import Activity, PlanBook, Settings, VerseProgress

logger = logging.getLogger(__name__)


class MemoryStore:
    """Process-local store, used for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data = copy.deepcopy(initial or {})

    def read(self, key: str) -> Optional[Any]:
        value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None

    def write(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)


class JsonFileStore:
    """One <key>.json file per collection inside data_dir."""

    def __init__(self, data_dir: str):
        self.data_dir = data_dir
        os.makedirs(data_dir, exist_ok=True)

    def _path(self, key: str) -> str:
        return os.path.join(self.data_dir, f"{key}.json")

    def read(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            # Corrupt blob: fall back to the collection default instead of crashing
            logger.error(f"Unreadable collection '{key}' at {path}: {e}", exc_info=True)
            return None

    def write(self, key: str, value: Any) -> None:
        fd, tmp_path = tempfile.mkstemp(dir=self.data_dir, prefix=f".{key}.", suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(value, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self._path(key))
        except Exception:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


def create_store(backend: str = None, data_dir: str = None, database_url: str = None):
    """Build the configured store backend ('json', 'postgres' or 'memory')."""
    backend = (backend or config.STORE_BACKEND).lower()
    if backend == 'memory':
        return MemoryStore()
    if backend == 'postgres':
        from hifz_tracker.utils.database import PostgresStore
        return PostgresStore(database_url or config.DATABASE_URL)
    if backend == 'json':
        return JsonFileStore(data_dir or config.DATA_DIR)
    raise ValueError(f"Unknown store backend: {backend}. Must be one of: json, postgres, memory")


class Repository:
    """Typed whole-collection access to a key-value store."""

    def __init__(self, store):
        self.store = store

    def _read_dict(self, key: str) -> Dict[str, Any]:
        data = self.store.read(key)
        if not isinstance(data, dict):
            if data is not None:
                logger.warning(f"Collection '{key}' has unexpected shape {type(data).__name__}, using empty default")
            return {}
        return data

    # Plans
    def load_plans(self) -> PlanBook:
        return PlanBook.from_dict(self._read_dict(config.PLANS_KEY))

    def save_plans(self, book: PlanBook) -> None:
        self.store.write(config.PLANS_KEY, book.to_dict())

    # Hafazan progress, keyed '<plan>_<surah>_<ayah>'
    def load_progress(self) -> Dict[str, VerseProgress]:
        return {key: VerseProgress.from_dict(value)
                for key, value in self._read_dict(config.PROGRESS_KEY).items()}

    def save_progress(self, progress: Dict[str, VerseProgress]) -> None:
        self.store.write(config.PROGRESS_KEY, {key: record.to_dict() for key, record in progress.items()})

    # Murajaah history, keyed by range key or legacy single-ayah key
    def load_review_sessions(self) -> Dict[str, Dict[str, List[Dict[str, Any]]]]:
        return self._read_dict(config.REVIEW_SESSIONS_KEY)

    def save_review_sessions(self, sessions: Dict[str, Dict[str, List[Dict[str, Any]]]]) -> None:
        self.store.write(config.REVIEW_SESSIONS_KEY, sessions)

    # Settings
    def load_settings(self) -> Settings:
        return Settings.from_dict(self._read_dict(config.SETTINGS_KEY))

    def save_settings(self, settings: Settings) -> None:
        self.store.write(config.SETTINGS_KEY, settings.to_dict())

    # Activities
    def load_activities(self) -> List[Activity]:
        data = self.store.read(config.ACTIVITIES_KEY)
        if not isinstance(data, list):
            return []
        return [Activity.from_dict(item) for item in data]

    def save_activities(self, activities: List[Activity]) -> None:
        self.store.write(config.ACTIVITIES_KEY, [activity.to_dict() for activity in activities])
