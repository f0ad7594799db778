"""Brew catalog + conversation + chat turn endpoints."""

from fastapi import APIRouter, HTTPException, Request

from brew_chat.config import get_config, make_backend_client, with_env
from brew_chat.conversations import ConversationStore
from brew_chat.models import Brew, Message
from brew_chat.pipeline import TurnDriver, TurnInProgressError, UnknownCharacterError
from brew_chat.remote import BackendError
from brew_chat.storage import BrewCatalog

from .models import ReplyBody, TranscriptBody, UserTextBody

router = APIRouter()


def _catalog(request: Request) -> BrewCatalog:
    return request.app.state.catalog


def _store(request: Request) -> ConversationStore:
    return request.app.state.store


def _driver(request: Request) -> TurnDriver:
    return request.app.state.driver


def _require_brew(request: Request, brew_id: str) -> Brew:
    brew = _catalog(request).get_brew(brew_id)
    if brew is None:
        raise HTTPException(404, "Brew not found")
    return brew


def _conversation_payload(request: Request, brew_id: str) -> dict:
    conversation = _store(request).get_conversation(brew_id)
    return {
        "messages": [m.model_dump() for m in conversation.messages],
        "transcript": conversation.transcript,
        "state": _driver(request).state(brew_id),
    }


def _turn_payload(request: Request, brew_id: str, message: Message | None) -> dict:
    payload = _conversation_payload(request, brew_id)
    payload["message"] = message.model_dump() if message else None
    return payload


# ── Brew catalog ─────────────────────────────────────────────


@router.get("/brews")
async def list_brews(request: Request):
    """List brews in the local catalog."""
    return [b.model_dump() for b in _catalog(request).list_brews()]


@router.post("/brews/sync")
async def sync_brews(request: Request):
    """Replace the local catalog with the user's brews from the hosted backend."""
    config = with_env(get_config(request.app.state.kv))
    client = make_backend_client(config)
    user_id = config["backend"]["user_id"]
    if client is None or not user_id:
        raise HTTPException(400, "Backend is not configured — set it in Settings")
    try:
        brews = await client.fetch_brews(user_id)
    except BackendError as e:
        raise HTTPException(502, str(e))
    _catalog(request).replace_all(brews)
    return [b.model_dump() for b in brews]


@router.get("/brews/{brew_id}")
async def get_brew(request: Request, brew_id: str):
    """Get a single brew by id."""
    return _require_brew(request, brew_id).model_dump()


@router.put("/brews/{brew_id}")
async def save_brew(request: Request, brew_id: str, body: Brew):
    """Create or replace a brew."""
    if body.id != brew_id:
        raise HTTPException(400, "Brew id does not match the URL")
    errors = body.composition_errors()
    if errors:
        raise HTTPException(400, "; ".join(errors))
    _catalog(request).save_brew(body)
    return body.model_dump()


@router.delete("/brews/{brew_id}")
async def delete_brew(request: Request, brew_id: str):
    """Delete a brew and its conversation. Refused while a turn is running."""
    _require_brew(request, brew_id)
    try:
        _driver(request).discard(brew_id)
    except TurnInProgressError as e:
        raise HTTPException(409, str(e))
    _catalog(request).delete_brew(brew_id)
    return {"ok": True}


# ── Conversation ─────────────────────────────────────────────


@router.get("/brews/{brew_id}/conversation")
async def get_conversation(request: Request, brew_id: str):
    """Messages, transcript, and turn state for a brew."""
    _require_brew(request, brew_id)
    return _conversation_payload(request, brew_id)


@router.delete("/brews/{brew_id}/conversation")
async def reset_conversation(request: Request, brew_id: str):
    """Clear the brew's conversation and restart it."""
    _require_brew(request, brew_id)
    try:
        _driver(request).reset(brew_id)
    except TurnInProgressError as e:
        raise HTTPException(409, str(e))
    return _conversation_payload(request, brew_id)


@router.delete("/conversations")
async def clear_conversations(request: Request):
    """Remove every stored conversation. Refused while any turn is running."""
    try:
        _driver(request).clear_all()
    except TurnInProgressError as e:
        raise HTTPException(409, str(e))
    return {"ok": True}


@router.patch("/brews/{brew_id}/messages/{message_id}")
async def update_message(request: Request, brew_id: str, message_id: str, body: Message):
    """Replace one message by id. The transcript is left as is."""
    _require_brew(request, brew_id)
    if not _store(request).update_message_by_id(brew_id, message_id, body):
        raise HTTPException(404, "Message not found")
    return _conversation_payload(request, brew_id)


@router.put("/brews/{brew_id}/transcript")
async def set_transcript(request: Request, brew_id: str, body: TranscriptBody):
    """Overwrite the transcript used as prompt memory."""
    _require_brew(request, brew_id)
    _store(request).set_transcript(brew_id, body.transcript)
    return _conversation_payload(request, brew_id)


@router.post("/brews/{brew_id}/transcript/rebuild")
async def rebuild_transcript(request: Request, brew_id: str):
    """Re-derive the transcript from the stored messages."""
    _require_brew(request, brew_id)
    _store(request).rebuild_transcript(brew_id)
    return _conversation_payload(request, brew_id)


# ── Turns ────────────────────────────────────────────────────


@router.post("/brews/{brew_id}/open")
async def open_chat(request: Request, brew_id: str):
    """Enter the chat; single-character brews get an opening message."""
    brew = _require_brew(request, brew_id)
    try:
        message = await _driver(request).open_chat(brew)
    except TurnInProgressError as e:
        raise HTTPException(409, str(e))
    return _turn_payload(request, brew_id, message)


@router.post("/brews/{brew_id}/messages")
async def send_message(request: Request, brew_id: str, body: UserTextBody):
    """Send user text; single-character brews reply straight away."""
    brew = _require_brew(request, brew_id)
    try:
        message = await _driver(request).submit_user_text(brew, body.text)
    except TurnInProgressError as e:
        raise HTTPException(409, str(e))
    return _turn_payload(request, brew_id, message)


@router.post("/brews/{brew_id}/reply")
async def character_reply(request: Request, brew_id: str, body: ReplyBody):
    """Ask a specific character of the brew to respond."""
    brew = _require_brew(request, brew_id)
    try:
        message = await _driver(request).select_character(brew, body.character)
    except UnknownCharacterError:
        raise HTTPException(404, "Character not found")
    except TurnInProgressError as e:
        raise HTTPException(409, str(e))
    return _turn_payload(request, brew_id, message)
