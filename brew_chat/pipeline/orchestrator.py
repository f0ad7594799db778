"""Turn driver — decides whose turn it is and runs one generation turn.

Flow per brew:
  open_chat()         no messages + exactly one character → opening turn
  submit_user_text()  append the user line; one character → reply turn,
                      several characters → wait for select_character()
  select_character()  reply turn for the named character
  reset()             clear the conversation, back to "uninitialized"
  discard()           forget a deleted brew's conversation and state
  clear_all()         drop every conversation when no turn is running
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Literal

from brew_chat.conversations import ConversationStore
from brew_chat.llm import LLM
from brew_chat.models import Brew, Character, Message
from brew_chat.prompts import build_opening_prompt, build_reply_prompt
from brew_chat.remote import MessageCounter, NullCounter

from .segments import parse_response, segments_to_text

logger = logging.getLogger(__name__)

TurnState = Literal["uninitialized", "idle", "generating"]

FALLBACK_TEXT = "Sorry, I couldn't generate a response. Please try again."


class TurnInProgressError(RuntimeError):
    """Raised when a brew already has a turn outstanding."""

    def __init__(self, brew_id: str) -> None:
        super().__init__(f"A response is already being generated for brew {brew_id}")
        self.brew_id = brew_id


class UnknownCharacterError(LookupError):
    """Raised when a selected character is not part of the brew."""

    def __init__(self, brew_id: str, name: str) -> None:
        super().__init__(f"Character {name!r} is not in brew {brew_id}")
        self.brew_id = brew_id
        self.name = name


class TurnDriver:
    def __init__(
        self,
        store: ConversationStore,
        llm: LLM,
        counter: MessageCounter | None = None,
    ) -> None:
        self._store = store
        self._llm = llm
        self._counter: MessageCounter = counter or NullCounter()
        self._states: dict[str, TurnState] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def state(self, brew_id: str) -> TurnState:
        return self._states.get(brew_id, "uninitialized")

    def _check_not_generating(self, brew_id: str) -> None:
        lock = self._locks.get(brew_id)
        if lock is not None and lock.locked():
            raise TurnInProgressError(brew_id)

    # ------------------------------------------------------------------
    # User-facing transitions
    # ------------------------------------------------------------------

    async def open_chat(self, brew: Brew) -> Message | None:
        """Enter the chat. Returns the opening message if one was generated."""
        self._check_not_generating(brew.id)
        if self._store.get_conversation(brew.id).messages:
            self._states[brew.id] = "idle"
            return None
        if len(brew.characters) == 1:
            return await self._run_turn(brew, brew.characters[0], opening=True)
        self._states[brew.id] = "idle"
        return None

    async def submit_user_text(self, brew: Brew, text: str) -> Message | None:
        """Append the user's line; reply immediately when the brew has one character."""
        if not text.strip():
            return None
        self._check_not_generating(brew.id)
        self._store.append_message(
            brew.id, Message(id=uuid.uuid4().hex, text=text, is_user=True)
        )
        self._states[brew.id] = "idle"
        if len(brew.characters) == 1:
            return await self._run_turn(brew, brew.characters[0], opening=False)
        return None

    async def select_character(self, brew: Brew, name: str) -> Message:
        """Generate a reply from the named character."""
        character = brew.find_character(name)
        if character is None:
            raise UnknownCharacterError(brew.id, name)
        return await self._run_turn(brew, character, opening=False)

    def reset(self, brew_id: str) -> None:
        self._check_not_generating(brew_id)
        self._store.reset_conversation(brew_id)
        self._forget_state(brew_id)

    def discard(self, brew_id: str) -> None:
        """Remove a deleted brew's conversation and turn bookkeeping."""
        self._check_not_generating(brew_id)
        self._store.remove_conversation(brew_id)
        self._forget_state(brew_id)

    def clear_all(self) -> None:
        """Drop every conversation. Refused while any brew is generating."""
        for brew_id, lock in self._locks.items():
            if lock.locked():
                raise TurnInProgressError(brew_id)
        self._store.clear_all()
        self._states.clear()
        self._locks.clear()

    def _forget_state(self, brew_id: str) -> None:
        # Absent entries read as "uninitialized".
        self._states.pop(brew_id, None)
        self._locks.pop(brew_id, None)

    # ------------------------------------------------------------------
    # Turn execution
    # ------------------------------------------------------------------

    async def _run_turn(self, brew: Brew, character: Character, opening: bool) -> Message:
        lock = self._locks.setdefault(brew.id, asyncio.Lock())
        if lock.locked():
            raise TurnInProgressError(brew.id)
        async with lock:
            self._states[brew.id] = "generating"
            try:
                await self._bump_counters(brew)
                message = await self._generate(brew, character, opening)
                self._store.append_message(brew.id, message)
            finally:
                self._states[brew.id] = "idle"
        return message

    async def _bump_counters(self, brew: Brew) -> None:
        try:
            await self._counter.increment_message_counts(
                character_ids=[c.id for c in brew.characters],
                scene_id=brew.scene.id,
                mod_ids=[m.id for m in brew.mods],
            )
        except Exception:
            logger.exception("Error incrementing message counts for brew %s", brew.id)

    async def _generate(self, brew: Brew, character: Character, opening: bool) -> Message:
        stage = "opening" if opening else "reply"
        try:
            if opening:
                prompt = build_opening_prompt(brew, character)
            else:
                transcript = self._store.get_conversation(brew.id).transcript
                prompt = build_reply_prompt(brew, character, transcript)
            text = await self._llm(stage, prompt)
        except Exception:
            logger.exception(
                "Error generating %s for brew %s (character %s)",
                stage, brew.id, character.name,
            )
            return Message(id=uuid.uuid4().hex, text=FALLBACK_TEXT, is_user=False)

        segments = parse_response(text)
        logger.debug("brew %s %s: %d segments", brew.id, stage, len(segments))
        return Message(
            id=uuid.uuid4().hex,
            text=segments_to_text(segments),
            is_user=False,
            speaker_segments=segments,
        )
