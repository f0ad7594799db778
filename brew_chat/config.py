"""App configuration (generation connection, hosted backend).

Stored as {data}/config.json through the key-value store. get_config()
returns defaults merged with stored values; update_config() applies partial
updates group by group. Environment variables (loaded from .env by the app)
fill any value left blank:

    GEMINI_API_KEY     → llm.api_key
    SUPABASE_URL       → backend.url
    SUPABASE_ANON_KEY  → backend.anon_key
    SUPABASE_USER_ID   → backend.user_id
"""

from __future__ import annotations

import copy
import json
import logging
import os
from typing import Any

from brew_chat.llm import DEFAULT_MODEL, GEMINI_URL, HttpLLM
from brew_chat.remote import SupabaseClient
from brew_chat.storage import KeyValueStore

logger = logging.getLogger(__name__)

CONFIG_KEY = "config"

_CONFIG_DEFAULTS: dict[str, Any] = {
    "llm": {
        "provider_format": "gemini",
        "provider_url": GEMINI_URL,
        "model": DEFAULT_MODEL,
        "api_key": "",
        "timeout": 120.0,
    },
    "backend": {
        "url": "",
        "anon_key": "",
        "user_id": "",
    },
}

_ENV_FALLBACKS: dict[tuple[str, str], str] = {
    ("llm", "api_key"): "GEMINI_API_KEY",
    ("backend", "url"): "SUPABASE_URL",
    ("backend", "anon_key"): "SUPABASE_ANON_KEY",
    ("backend", "user_id"): "SUPABASE_USER_ID",
}


def _merge(config: dict[str, Any], fields: dict[str, Any]) -> None:
    for group, vals in fields.items():
        if group in config and isinstance(vals, dict):
            for key, value in vals.items():
                if key in config[group]:
                    config[group][key] = value


def get_config(kv: KeyValueStore) -> dict[str, Any]:
    """Read config, returning defaults merged with stored values."""
    config = copy.deepcopy(_CONFIG_DEFAULTS)
    try:
        raw = kv.get_item(CONFIG_KEY)
    except UnicodeDecodeError:
        logger.error("Stored config is not valid UTF-8; using defaults")
        raw = None
    if raw:
        try:
            stored = json.loads(raw)
        except json.JSONDecodeError:
            logger.error("Stored config is not valid JSON; using defaults")
        else:
            if isinstance(stored, dict):
                _merge(config, stored)
    return config


def update_config(kv: KeyValueStore, fields: dict[str, Any]) -> dict[str, Any]:
    """Merge fields into config and persist. Returns full config."""
    config = get_config(kv)
    _merge(config, fields)
    kv.set_item(CONFIG_KEY, json.dumps(config, indent=2))
    return config


def with_env(config: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of config with blank values filled from the environment."""
    resolved = copy.deepcopy(config)
    for (group, key), env_name in _ENV_FALLBACKS.items():
        if not resolved[group].get(key):
            resolved[group][key] = os.getenv(env_name, "")
    return resolved


def make_llm(config: dict[str, Any]) -> HttpLLM:
    conn = config["llm"]
    return HttpLLM(
        provider_url=conn["provider_url"] or GEMINI_URL,
        api_key=conn["api_key"],
        provider_format=conn["provider_format"],
        model=conn["model"] or DEFAULT_MODEL,
        timeout=float(conn["timeout"]),
    )


def make_backend_client(config: dict[str, Any]) -> SupabaseClient | None:
    """Return a backend client, or None when the backend is not configured."""
    conn = config["backend"]
    if not conn["url"] or not conn["anon_key"]:
        return None
    return SupabaseClient(conn["url"], conn["anon_key"])
