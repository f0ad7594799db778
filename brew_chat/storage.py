"""JSON file storage.

All local state is stored in flat JSON files under a configurable base
directory, one file per key. There is no database: reads and writes go
through plain helper methods that load and dump strings.

Directory layout:

    {base}/
      conversations.json      ← brewId → Conversation mapping
      brews.json              ← list of Brew objects (local catalog)
      supabase_session.json   ← serialized auth session (opaque)
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from brew_chat.models import Brew

logger = logging.getLogger(__name__)

CONVERSATIONS_KEY = "conversations"
BREWS_KEY = "brews"
SESSION_KEY = "supabase_session"

_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")

_brew_list = TypeAdapter(list[Brew])


class KeyValueStore:
    """String values keyed by name, one file per key."""

    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._base.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._base

    def _path(self, key: str) -> Path:
        if not _KEY_RE.match(key):
            raise ValueError(f"Invalid storage key {key!r}")
        return self._base / f"{key}.json"

    def get_item(self, key: str) -> str | None:
        path = self._path(key)
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        self._path(key).write_text(value, encoding="utf-8")

    def remove_item(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class BrewCatalog:
    """Local copy of the user's brews, looked up by id."""

    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv

    def list_brews(self) -> list[Brew]:
        try:
            raw = self._kv.get_item(BREWS_KEY)
        except UnicodeDecodeError:
            logger.error("Stored brew catalog is not valid UTF-8; treating as empty")
            return []
        if raw is None:
            return []
        try:
            return _brew_list.validate_json(raw)
        except ValidationError:
            logger.error("Stored brew catalog is invalid; treating as empty")
            return []

    def get_brew(self, brew_id: str) -> Brew | None:
        for brew in self.list_brews():
            if brew.id == brew_id:
                return brew
        return None

    def save_brew(self, brew: Brew) -> None:
        """Upsert a brew by id."""
        brews = self.list_brews()
        for i, b in enumerate(brews):
            if b.id == brew.id:
                brews[i] = brew
                break
        else:
            brews.append(brew)
        self._write(brews)

    def replace_all(self, brews: list[Brew]) -> None:
        self._write(brews)

    def delete_brew(self, brew_id: str) -> bool:
        brews = self.list_brews()
        remaining = [b for b in brews if b.id != brew_id]
        if len(remaining) == len(brews):
            return False
        self._write(remaining)
        return True

    def _write(self, brews: list[Brew]) -> None:
        self._kv.set_item(
            BREWS_KEY, json.dumps([b.model_dump() for b in brews], indent=2)
        )
