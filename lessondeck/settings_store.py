"""Per-document teaching settings persisted to a local JSON file."""

import json
import os
import re
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import ValidationError

from .config import settings as app_settings
from .logger import logger
from .schema import TeachingSettings

STORAGE_KEY_PREFIX = "teachersCenterSettings_"
DEFAULT_DOCUMENT_KEY = "default"


def storage_key(document: Optional[str]) -> str:
    """Key for one document: non-alphanumeric characters become ``_``."""
    if not document:
        return STORAGE_KEY_PREFIX + DEFAULT_DOCUMENT_KEY
    return STORAGE_KEY_PREFIX + re.sub(r"[^a-zA-Z0-9]", "_", document)


class SettingsStore:
    """JSON file of ``{storage_key: TeachingSettings}``.

    A document without stored settings loads as ``None`` so the caller can
    block on the settings prompt before the first request.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path or app_settings.settings_path)

    def _read_all(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read settings file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.error("Settings file %s does not hold an object", self.path)
            return {}
        return data

    def load(self, document: Optional[str] = None) -> Optional[TeachingSettings]:
        entry = self._read_all().get(storage_key(document))
        if entry is None:
            return None
        try:
            return TeachingSettings.model_validate(entry)
        except ValidationError as e:
            logger.warning(f"Ignoring invalid stored settings for {document or 'default'}: {e}")
            return None

    def save(self, document: Optional[str], teaching: TeachingSettings) -> None:
        data = self._read_all()
        data[storage_key(document)] = teaching.model_dump(mode="json", by_alias=True)

        os.makedirs(self.path.parent, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        logger.debug("Saved settings under %s", storage_key(document))
