import os
import json
import logging
import tempfile
from typing import Dict, Optional, Protocol

from pydantic import ValidationError

from schemas import UserProfile

logger = logging.getLogger(__name__)

STORAGE_KEY = "health_compare_user_profile"

# Superficial "does this look like the right kind of key" check, per provider family.
API_KEY_PREFIXES = {
    "gemini": "AIza",
    "groq": "gsk_",
}
PROVIDER_LABELS = {
    "gemini": "Google Gemini",
    "groq": "Groq",
}


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...
    def set(self, key: str, value: str) -> None: ...
    def delete(self, key: str) -> None: ...


class MemoryStore:
    """In-process store. Used for session scoping and tests."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """
    Durable key-value store backed by a single JSON file, the desktop stand-in
    for the browser's localStorage. Writes replace the file atomically.
    """

    def __init__(self, path: str):
        self.path = os.path.expanduser(path)

    def _read_all(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning("Profile file %s is corrupt, starting fresh: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: Dict[str, str]) -> None:
        folder = os.path.dirname(self.path) or "."
        os.makedirs(folder, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=folder, prefix=".profile-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def delete(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)


class ProfileStore:
    """Narrow read/write interface over the single stored UserProfile."""

    def __init__(self, store: KeyValueStore, key: str = STORAGE_KEY):
        self.store = store
        self.key = key

    def load(self) -> Optional[UserProfile]:
        try:
            raw = self.store.get(self.key)
        except (OSError, ValueError) as e:
            logger.warning("Storage access failed: %s", e)
            return None
        if not raw:
            return None
        try:
            return UserProfile.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Stored profile is unreadable, ignoring it: %s", e)
            return None

    def save(self, profile: UserProfile) -> None:
        self.store.set(self.key, profile.model_dump_json(by_alias=True))

    def clear(self) -> None:
        self.store.delete(self.key)

    def is_configured(self, env_default_key: str = "") -> bool:
        profile = self.load()
        return bool(profile and profile.name and (profile.api_key or env_default_key))


def validate_api_key(key: str, provider: str = "gemini") -> Optional[str]:
    """
    Return an error message if `key` obviously isn't a key for `provider`, else None.
    An empty key is fine: the environment default may cover it.
    """
    key = (key or "").strip()
    prefix = API_KEY_PREFIXES.get(provider)
    if not key or not prefix:
        return None
    if not key.startswith(prefix):
        label = PROVIDER_LABELS.get(provider, provider)
        return f"That doesn't look like a valid {label} API Key (should start with '{prefix}')"
    return None
