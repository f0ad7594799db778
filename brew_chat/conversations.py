"""Conversation store — per-brew message history and transcript.

Holds one Conversation per brew id and persists the whole mapping to the
key-value store under "conversations" after every mutation. There is no
batching: each call rewrites the full blob.

The transcript is the textual memory fed back into prompts. It is built by
append_message() from format_for_transcript(); set_transcript() can replace
it wholesale, and rebuild_transcript() re-derives it from the messages.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping

from pydantic import TypeAdapter, ValidationError

from brew_chat.models import Conversation, Message
from brew_chat.storage import CONVERSATIONS_KEY, KeyValueStore

logger = logging.getLogger(__name__)

_conversation_map = TypeAdapter(dict[str, Conversation])


def format_for_transcript(message: Message) -> str:
    """Render one message as transcript lines.

    User messages become "User: <text>"; AI messages contribute one
    "<speaker>: <text>" line per speaker segment. AI messages without
    segments (the fallback line) contribute nothing.
    """
    if message.is_user:
        return f"User: {message.text}\n"
    if message.speaker_segments:
        return "".join(
            f"{seg.speaker}: {seg.text}\n" for seg in message.speaker_segments
        )
    return ""


class ConversationStore:
    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv
        self._conversations: dict[str, Conversation] = {}

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Read persisted conversations; start empty on missing or bad data."""
        self._conversations = {}
        try:
            raw = self._kv.get_item(CONVERSATIONS_KEY)
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Error loading conversations: %s", e)
            return
        if raw is None:
            return
        try:
            self._conversations = _conversation_map.validate_json(raw)
        except ValidationError as e:
            logger.error(
                "Error loading conversations: stored data is invalid (%d errors)",
                e.error_count(),
            )
        logger.debug("loaded %d conversations", len(self._conversations))

    def _save(self) -> None:
        data = {k: c.model_dump() for k, c in self._conversations.items()}
        try:
            self._kv.set_item(CONVERSATIONS_KEY, json.dumps(data, indent=2))
        except OSError as e:
            logger.error("Error saving conversations: %s", e)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def conversations(self) -> Mapping[str, Conversation]:
        return self._conversations

    def get_conversation(self, brew_id: str) -> Conversation:
        """Return the brew's conversation, or an empty one (not stored)."""
        return self._conversations.get(brew_id) or Conversation()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def append_message(self, brew_id: str, message: Message) -> Conversation:
        """Append a message and extend the transcript. Creates the conversation lazily."""
        current = self._conversations.get(brew_id) or Conversation()
        updated = Conversation(
            messages=[*current.messages, message],
            transcript=current.transcript + format_for_transcript(message),
        )
        self._conversations[brew_id] = updated
        self._save()
        return updated

    def set_transcript(self, brew_id: str, text: str) -> None:
        """Overwrite the transcript, leaving messages untouched."""
        current = self._conversations.get(brew_id) or Conversation()
        self._conversations[brew_id] = Conversation(
            messages=current.messages, transcript=text
        )
        self._save()

    def rebuild_transcript(self, brew_id: str) -> str:
        """Re-derive the transcript from the stored messages."""
        current = self._conversations.get(brew_id) or Conversation()
        transcript = "".join(format_for_transcript(m) for m in current.messages)
        self.set_transcript(brew_id, transcript)
        return transcript

    def reset_conversation(self, brew_id: str) -> None:
        self._conversations[brew_id] = Conversation()
        self._save()

    def remove_conversation(self, brew_id: str) -> None:
        """Drop one brew's conversation entirely (used when the brew is deleted)."""
        if self._conversations.pop(brew_id, None) is not None:
            self._save()

    def clear_all(self) -> None:
        """Drop every conversation and remove the persisted blob."""
        try:
            self._kv.remove_item(CONVERSATIONS_KEY)
        except OSError as e:
            logger.error("Error clearing conversations: %s", e)
            return
        self._conversations = {}

    def update_message_by_id(
        self, brew_id: str, message_id: str, new_message: Message
    ) -> bool:
        """Replace the message with `message_id` in place. Transcript is not touched.

        Returns False when the brew or message is unknown.
        """
        current = self._conversations.get(brew_id)
        if current is None:
            logger.debug("update_message_by_id: no conversation for brew %s", brew_id)
            return False
        found = False
        messages: list[Message] = []
        for msg in current.messages:
            if msg.id is not None and msg.id == message_id:
                messages.append(new_message)
                found = True
            else:
                messages.append(msg)
        if not found:
            logger.debug("update_message_by_id: no message %s in brew %s", message_id, brew_id)
            return False
        self._conversations[brew_id] = Conversation(
            messages=messages, transcript=current.transcript
        )
        self._save()
        return True
