"""
Analysis history and user preferences.

History is a most-recent-first list of StoredAnalysis capped at the user's
`max_history_items` preference. Writes go through a lock so a concurrent
add/remove never loses an entry.
"""

import base64
import io
import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from typing import List, Optional, Union

import cv2
from PIL import Image, UnidentifiedImageError
from pydantic import ValidationError

from app.config import settings
from app.core.file_validator import media_kind
from app.schemas.analysis import AnalysisResult, StoredAnalysis
from app.schemas.usage import HistoryStats, ImportResult, PreferencesUpdate, UserPreferences
from app.services.state_store import StateStore

logger = logging.getLogger(__name__)

HISTORY_KEY = "history"
PREFERENCES_KEY = "preferences"

AUDIO_PLACEHOLDER = (
    "data:image/svg+xml;base64,PHN2ZyB3aWR0aD0iMjAwIiBoZWlnaHQ9IjIwMCIgdmlld0JveD0iMCAwIDIwMCAyMDAiIGZpbGw9Im5vbmUiIHhtbG5z"
    "PSJodHRwOi8vd3d3LnczLm9yZy8yMDAwL3N2ZyI+PHJlY3Qgd2lkdGg9IjIwMCIgaGVpZ2h0PSIyMDAiIGZpbGw9IiNmM2Y0ZjYiLz48cGF0aCBkPSJN"
    "MTAwIDUwSDEyMFY3MEgxMDBWNTBaTTEwMCA4MEgxMjBWMTAwSDEwMFY4MFpNMTAwIDExMEgxMjBWMTMwSDEwMFYxMTBaTTEwMCAxNDBIMTIwVjE2MEgx"
    "MDBWMTQwWiIgZmlsbD0iIzZiNzI4MCIvPjwvc3ZnPg=="
)


def _jpeg_data_uri(data: bytes) -> str:
    return "data:image/jpeg;base64," + base64.b64encode(data).decode("ascii")


def _image_thumbnail(content: bytes) -> str:
    size = settings.thumbnail_max_size
    with Image.open(io.BytesIO(content)) as img:
        img = img.convert("RGB")
        img.thumbnail((size, size))
        buffer = io.BytesIO()
        img.save(buffer, format="JPEG", quality=settings.thumbnail_jpeg_quality)
    return _jpeg_data_uri(buffer.getvalue())


def _video_thumbnail(content: bytes, suffix: str) -> Optional[str]:
    # OpenCV only decodes from a path
    fd, tmp_path = tempfile.mkstemp(suffix=suffix or ".mp4")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)

        cap = cv2.VideoCapture(tmp_path)
        try:
            if not cap.isOpened():
                return None
            fps = cap.get(cv2.CAP_PROP_FPS) or 0
            frames = cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0
            duration_ms = frames / fps * 1000 if fps else 0
            # 10% in, at most 5 s
            cap.set(cv2.CAP_PROP_POS_MSEC, min(duration_ms * 0.1, 5000))
            ok, frame = cap.read()
        finally:
            cap.release()

        if not ok:
            return None
        height, width = frame.shape[:2]
        scale = min(1.0, settings.thumbnail_max_size / max(width, height))
        if scale < 1.0:
            frame = cv2.resize(frame, (int(width * scale), int(height * scale)), interpolation=cv2.INTER_AREA)
        ok, encoded = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, settings.thumbnail_jpeg_quality])
        return _jpeg_data_uri(encoded.tobytes()) if ok else None
    finally:
        os.remove(tmp_path)


def create_thumbnail(content: bytes, file_type: str, filename: str = "") -> Optional[str]:
    """Data-URI thumbnail: scaled JPEG for images/videos, a fixed SVG for audio."""
    kind = media_kind(file_type, filename)
    try:
        if kind == "image":
            return _image_thumbnail(content)
        if kind == "video":
            return _video_thumbnail(content, os.path.splitext(filename)[1])
    except (UnidentifiedImageError, OSError, ValueError, cv2.error) as e:
        logger.warning(f"[HISTORY] Thumbnail failed for {filename}: {e}")
        return None
    return AUDIO_PLACEHOLDER


class HistoryService:
    def __init__(self, store: StateStore):
        self.store = store
        self._lock = threading.Lock()

    # ------------------------------------------------------------------ #
    # Preferences                                                         #
    # ------------------------------------------------------------------ #

    def get_preferences(self) -> UserPreferences:
        stored = self.store.get(PREFERENCES_KEY) or {}
        defaults = UserPreferences(max_history_items=settings.history_max_items).model_dump()
        try:
            return UserPreferences(**{**defaults, **stored})
        except (TypeError, ValidationError) as e:
            logger.error(f"[HISTORY] Stored preferences invalid, using defaults: {e}")
            return UserPreferences(**defaults)

    def update_preferences(self, update: PreferencesUpdate) -> UserPreferences:
        with self._lock:
            merged = self.get_preferences().model_copy(update=update.model_dump(exclude_none=True))
            self.store.set(PREFERENCES_KEY, merged.model_dump())
            # A lowered cap applies immediately
            history = self._load()
            if len(history) > merged.max_history_items:
                self._save(history[:merged.max_history_items])
        return merged

    # ------------------------------------------------------------------ #
    # History                                                             #
    # ------------------------------------------------------------------ #

    def _load(self) -> List[StoredAnalysis]:
        items = self.store.get(HISTORY_KEY) or []
        history = []
        for item in items:
            try:
                history.append(StoredAnalysis.model_validate(item))
            except ValidationError:
                logger.warning("[HISTORY] Dropping unreadable history entry")
        return history

    def _save(self, history: List[StoredAnalysis]) -> None:
        self.store.set(HISTORY_KEY, [h.model_dump(mode="json") for h in history])

    def get_all(self) -> List[StoredAnalysis]:
        return self._load()

    def add(self, analysis: AnalysisResult, thumbnail_blob: Optional[str] = None) -> StoredAnalysis:
        stored = StoredAnalysis.model_validate({**analysis.model_dump(), "thumbnail_blob": thumbnail_blob})
        with self._lock:
            cap = self.get_preferences().max_history_items
            history = [h for h in self._load() if h.id != stored.id]
            self._save(([stored] + history)[:cap])
        logger.info(f"[HISTORY] Stored {stored.id} ({stored.filename})")
        return stored

    def get(self, analysis_id: str) -> Optional[StoredAnalysis]:
        return next((h for h in self._load() if h.id == analysis_id), None)

    def remove(self, analysis_id: str) -> bool:
        with self._lock:
            history = self._load()
            remaining = [h for h in history if h.id != analysis_id]
            if len(remaining) == len(history):
                return False
            self._save(remaining)
        logger.info(f"[HISTORY] Removed {analysis_id}")
        return True

    def clear(self) -> None:
        with self._lock:
            self.store.delete(HISTORY_KEY)
        logger.info("[HISTORY] Cleared")

    def stats(self) -> HistoryStats:
        history = self._load()
        payload = json.dumps([h.model_dump(mode="json") for h in history]) if history else ""
        size_kb = round(len(payload.encode("utf-8")) / 1024, 2)
        return HistoryStats(
            history_count=len(history),
            estimated_size=f"{size_kb:g} KB",
            last_modified=history[0].timestamp if history else None,
        )

    # ------------------------------------------------------------------ #
    # Export / import                                                     #
    # ------------------------------------------------------------------ #

    def export_data(self) -> dict:
        return {
            "analysis_history": [h.model_dump(mode="json") for h in self._load()],
            "user_preferences": self.get_preferences().model_dump(),
            "export_date": datetime.now(timezone.utc).isoformat(),
        }

    def import_data(self, data: Union[str, bytes, dict]) -> ImportResult:
        """Replace history/preferences with a previous export. All-or-nothing."""
        try:
            if isinstance(data, (str, bytes)):
                data = json.loads(data)
            if not isinstance(data, dict):
                raise ValueError("export must be a JSON object")

            raw_history = data.get("analysis_history", data.get("analysisHistory"))
            raw_prefs = data.get("user_preferences", data.get("userPreferences"))
            history = [StoredAnalysis.model_validate(h) for h in raw_history] if raw_history is not None else None
            prefs = UserPreferences.model_validate(raw_prefs) if raw_prefs is not None else None
        except (ValueError, TypeError, ValidationError) as e:
            logger.warning(f"[HISTORY] Import rejected: {e}")
            return ImportResult(success=False, message="Invalid data format")

        with self._lock:
            if prefs is not None:
                self.store.set(PREFERENCES_KEY, prefs.model_dump())
            if history is not None:
                cap = (prefs or self.get_preferences()).max_history_items
                self._save(history[:cap])

        logger.info("[HISTORY] Import completed")
        return ImportResult(success=True, message="Data imported successfully")
