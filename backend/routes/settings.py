"""Health check and settings endpoints."""

from fastapi import APIRouter, Request

from brew_chat.config import get_config, update_config

router = APIRouter()


def _redact(config: dict) -> dict:
    """Hide secrets; report only whether they are set."""
    out = {group: dict(vals) for group, vals in config.items()}
    out["llm"]["api_key"] = bool(config["llm"]["api_key"])
    out["backend"]["anon_key"] = bool(config["backend"]["anon_key"])
    return out


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/settings")
async def get_settings(request: Request):
    """Get app settings (generation connection, hosted backend)."""
    return _redact(get_config(request.app.state.kv))


@router.patch("/settings")
async def update_settings(request: Request, body: dict):
    """Update app settings (partial merge)."""
    return _redact(update_config(request.app.state.kv, body))
