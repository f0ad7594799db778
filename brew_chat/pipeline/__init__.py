"""Turn pipeline for brew chats.

One turn:
  1. Best-effort message counter bump for every character, the scene and
     every mod (failures logged, never raised).
  2. Build the opening or reply prompt for the responding character.
  3. Call the LLM ("opening" or "reply" stage).
  4. Parse the response into speaker segments.
  5. Append one AI message to the conversation store. On any generation
     failure, append the fixed fallback message instead.

Per-brew states: uninitialized → idle ⇄ generating; reset → uninitialized.
Turns on one brew are serialized; a second turn while one is outstanding
raises TurnInProgressError.
"""

from .orchestrator import (  # noqa: F401
    FALLBACK_TEXT,
    TurnDriver,
    TurnInProgressError,
    TurnState,
    UnknownCharacterError,
)
from .segments import (  # noqa: F401
    parse_response,
    segments_to_text,
)
