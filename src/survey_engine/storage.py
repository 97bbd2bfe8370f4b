"""Local draft and answer caches.

Nothing here is a system of record.  The caches exist so that an authoring
or filling session survives a reload before (or between) authoritative
saves on the server.

``KeyValueStorage`` is the local-storage capability.  When a component is
given ``storage=None`` the capability is absent and every operation is a
silent no-op.  Storage failures (full disk, read-only directory) are treated
the same way: logged at DEBUG, never raised.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import quote

from survey_engine.constants import (
    DRAFT_STORAGE_KEY,
    RESPONDENT_TOKEN_KEY,
    RESPONSE_ANSWERS_KEY_PREFIX,
    RESPONSE_SESSION_KEY_PREFIX,
)
from survey_engine.ids import new_id
from survey_engine.models.survey import Survey
from survey_engine.validator import parse_survey_json, serialize_survey

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Storage backends
# ---------------------------------------------------------------------------

class KeyValueStorage(Protocol):
    """String key/value storage, modelled on browser ``localStorage``."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """Process-local storage backed by a dict."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)


class FileStorage:
    """Storage backed by one UTF-8 file per key in ``directory``.

    Keys are percent-encoded into file names so ``survey_answers_v1:my-slug``
    is a valid name on every platform.
    """

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory)

    def _path(self, key: str) -> Path:
        return self._dir / f"{quote(key, safe='')}.json"

    def get_item(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        self._path(key).write_text(value, encoding="utf-8")

    def remove_item(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


# ---------------------------------------------------------------------------
# Guarded access helpers
# ---------------------------------------------------------------------------

def _read(storage: KeyValueStorage | None, key: str) -> str | None:
    if storage is None:
        return None
    try:
        return storage.get_item(key)
    except (OSError, UnicodeDecodeError) as exc:
        # Undecodable bytes count as an absent entry
        logger.debug("Storage read failed for %s: %s", key, exc)
        return None


def _write(storage: KeyValueStorage | None, key: str, value: str) -> None:
    if storage is None:
        return
    try:
        storage.set_item(key, value)
    except OSError as exc:
        logger.debug("Storage write failed for %s: %s", key, exc)


def _remove(storage: KeyValueStorage | None, key: str) -> None:
    if storage is None:
        return
    try:
        storage.remove_item(key)
    except OSError as exc:
        logger.debug("Storage remove failed for %s: %s", key, exc)


def _read_json(storage: KeyValueStorage | None, key: str) -> Any:
    raw = _read(storage, key)
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return None


# ---------------------------------------------------------------------------
# Draft store: authoring context
# ---------------------------------------------------------------------------

class DraftStore:
    """Local cache of the in-progress survey document.

    ``load`` re-validates the cached document; a corrupt or invalid cache
    entry is reported as absent, never as an error.
    """

    def __init__(
        self,
        storage: KeyValueStorage | None,
        key: str = DRAFT_STORAGE_KEY,
    ) -> None:
        self._storage = storage
        self._key = key

    @property
    def available(self) -> bool:
        return self._storage is not None

    def load(self) -> Survey | None:
        raw = _read(self._storage, self._key)
        if not raw:
            return None
        result = parse_survey_json(raw)
        if not result.ok:
            logger.debug("Ignoring invalid cached draft: %s", result.message)
            return None
        return result.survey

    def save(self, survey: Survey) -> None:
        _write(self._storage, self._key, serialize_survey(survey))

    def clear(self) -> None:
        _remove(self._storage, self._key)


# ---------------------------------------------------------------------------
# Response cache: filling context, keyed by (purpose, slug)
# ---------------------------------------------------------------------------

class ResponseCache:
    """Local cache of a respondent's session identity and answers.

    Keys are scoped per public slug so several surveys cached in the same
    storage never collide.
    """

    def __init__(self, storage: KeyValueStorage | None) -> None:
        self._storage = storage

    @staticmethod
    def key(purpose: str, slug: str) -> str:
        return f"{purpose}:{slug}"

    # --- Respondent identity (storage-wide) ---

    def respondent_token(self) -> str:
        """Return the stable respondent token, creating it on first use.

        Without storage a fresh token is returned each call, so a session
        without local persistence behaves like a new browser every time.
        """
        token = _read(self._storage, RESPONDENT_TOKEN_KEY)
        if token:
            return token
        token = new_id()
        _write(self._storage, RESPONDENT_TOKEN_KEY, token)
        return token

    # --- Session identity ---

    def load_response_id(self, slug: str) -> str | None:
        data = _read_json(self._storage, self.key(RESPONSE_SESSION_KEY_PREFIX, slug))
        if isinstance(data, dict) and isinstance(data.get("response_id"), str):
            return data["response_id"]
        return None

    def save_response_id(self, slug: str, response_id: str) -> None:
        _write(
            self._storage,
            self.key(RESPONSE_SESSION_KEY_PREFIX, slug),
            json.dumps({"response_id": response_id}),
        )

    # --- Answers ---

    def load_answers(self, slug: str) -> dict[str, Any] | None:
        data = _read_json(self._storage, self.key(RESPONSE_ANSWERS_KEY_PREFIX, slug))
        if isinstance(data, dict):
            return data
        return None

    def save_answers(self, slug: str, answers: dict[str, Any]) -> None:
        _write(
            self._storage,
            self.key(RESPONSE_ANSWERS_KEY_PREFIX, slug),
            json.dumps(answers, ensure_ascii=False),
        )

    def clear(self, slug: str) -> None:
        _remove(self._storage, self.key(RESPONSE_SESSION_KEY_PREFIX, slug))
        _remove(self._storage, self.key(RESPONSE_ANSWERS_KEY_PREFIX, slug))
