"""Hosted data service client (PostgREST over HTTP).

The chat flow uses the hosted backend for two things only:

    increment_message_counts()  — best-effort popularity counters, one RPC
                                  each for characters, the scene and mods.
    fetch_brews()               — a user's brews with their scene, characters
                                  and mods joined in, flattened into Brew models.

The turn driver depends on the MessageCounter protocol, not on this client,
so tests and offline runs can use NullCounter.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from brew_chat.models import Brew

logger = logging.getLogger(__name__)

BREW_SELECT = (
    "id,name,"
    "brew_scenes(scene:scenes(*)),"
    "brew_characters(character:characters(*)),"
    "brew_mods(mod:mods(*))"
)


class MessageCounter(Protocol):
    async def increment_message_counts(
        self,
        character_ids: list[str],
        scene_id: str | None,
        mod_ids: list[str],
    ) -> None: ...


class NullCounter:
    """Counter used when no backend is configured."""

    async def increment_message_counts(
        self,
        character_ids: list[str],
        scene_id: str | None,
        mod_ids: list[str],
    ) -> None:
        logger.debug(
            "NullCounter: skipping counters for %d characters, %d mods",
            len(character_ids), len(mod_ids),
        )


class BackendError(RuntimeError):
    """Raised when the hosted backend cannot be reached or returns an error."""


def _numeric(ids: list[str]) -> list[int | str]:
    """Backend ids are integers; pass anything non-numeric through unchanged."""
    return [int(i) if str(i).isdigit() else i for i in ids]


class SupabaseClient:
    """Minimal async client for the hosted PostgREST endpoints.

    Args:
        url:      Project URL, e.g. "https://xyz.supabase.co".
        anon_key: Public anon key, sent as `apikey` and bearer token.
        timeout:  HTTP timeout in seconds. Defaults to 10.
    """

    def __init__(self, url: str, anon_key: str, timeout: float = 10.0) -> None:
        self._base_url = url.rstrip("/")
        self._anon_key = anon_key
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {self._anon_key}",
            "Content-Type": "application/json",
        }

    async def rpc(self, function: str, params: dict[str, Any]) -> Any:
        url = f"{self._base_url}/rest/v1/rpc/{function}"
        logger.debug("rpc %s params=%s", function, params)
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=params, headers=self._headers())
                resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise BackendError(
                f"RPC {function} returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise BackendError(f"RPC {function} failed: {e}") from e
        if not resp.content:
            return None
        return resp.json()

    async def increment_message_counts(
        self,
        character_ids: list[str],
        scene_id: str | None,
        mod_ids: list[str],
    ) -> None:
        """Bump message counters. Each RPC failure is logged and skipped."""
        calls: list[tuple[str, dict[str, Any]]] = []
        if character_ids:
            calls.append(("increment_message_count", {"character_ids": _numeric(character_ids)}))
        if scene_id:
            calls.append(("increment_scene_message_count", {"scene_ids": _numeric([scene_id])}))
        if mod_ids:
            calls.append(("increment_mod_message_count", {"mod_ids": _numeric(mod_ids)}))

        for function, params in calls:
            try:
                await self.rpc(function, params)
            except BackendError as e:
                logger.error("Error updating message counts (%s): %s", function, e)

    async def fetch_brews(self, user_id: str) -> list[Brew]:
        """Return the user's brews. Rows without a scene are skipped."""
        url = f"{self._base_url}/rest/v1/brews"
        params = {"select": BREW_SELECT, "user_id": f"eq.{user_id}"}
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.get(url, params=params, headers=self._headers())
                resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise BackendError(
                f"Fetching brews returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise BackendError(f"Fetching brews failed: {e}") from e

        brews: list[Brew] = []
        for row in resp.json():
            brew = _flatten_brew(row)
            if brew is not None:
                brews.append(brew)
        logger.debug("fetched %d brews for user %s", len(brews), user_id)
        return brews


def _stringify_ids(record: dict[str, Any]) -> dict[str, Any]:
    """String ids; null columns dropped so model defaults apply."""
    out = {k: v for k, v in record.items() if v is not None}
    if "id" in out:
        out["id"] = str(out["id"])
    return out


def _flatten_brew(row: dict[str, Any]) -> Brew | None:
    """Turn a joined brews row into a Brew. The first linked scene wins."""
    scenes = [s["scene"] for s in row.get("brew_scenes") or [] if s.get("scene")]
    if not scenes:
        logger.warning("Brew %s has no scene; skipped", row.get("id"))
        return None
    try:
        return Brew(
            id=str(row["id"]),
            name=row.get("name", ""),
            scene=_stringify_ids(scenes[0]),
            characters=[
                _stringify_ids(c["character"])
                for c in row.get("brew_characters") or [] if c.get("character")
            ],
            mods=[
                _stringify_ids(m["mod"])
                for m in row.get("brew_mods") or [] if m.get("mod")
            ],
        )
    except (KeyError, ValidationError) as e:
        logger.warning("Brew %s is malformed; skipped: %s", row.get("id"), e)
        return None
