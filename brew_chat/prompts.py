"""Handlebars prompt templates for opening and reply turns.

Both prompts share the same skeleton: a role preamble, the scene, the
responding character's profile, the active mods, roleplay instructions,
and the line format the response parser expects ("Name: line" and
optional "Narrator: line"). Reply prompts end with the conversation
transcript, which already carries the newest "User:" line.

Values are inserted with triple-stash so prompt text is never HTML-escaped.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pybars

from brew_chat.models import NARRATOR, Brew, Character

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


OPENING_PROMPT = """\
You are roleplaying a character in an interactive scene. This is the start of the conversation.

Scene: {{{scene.name}}}. {{{scene.description}}}

Character Profile - {{{char.name}}}:
Background: {{{char.background}}}
Personality: {{{char.personality_traits}}}
Motivations: {{{char.motivations}}}
Fears: {{{char.fears}}}
Typical Introduction: {{{char.intro_text}}}
Speech Pattern: {{{char.dialogue_style}}}

{{#if mods}}Active Mods:
{{#each mods}}{{{name}}}: {{{description}}}
{{/each}}
{{/if}}Roleplay Instructions:
- Respond as the character and a narrator, showing their unique personality
- Use their established dialogue style and speech patterns
- Show their motivations and fears through their responses
- Use *asterisks* to indicate character actions/emotes
- Actions should be in third-person
- Dialogue should feel natural and in-character
{{#if mods}}- Incorporate the themes and elements from the active mods
{{/if}}
Format response like this:

{{{char.name}}}: Character response and actions if necessary (ONE LINE)

{{{narrator}}}: What happens in the scene that is not a character's response or a character's actions

Generate a response that introduces the character in their signature style:"""

REPLY_PROMPT = """\
You are roleplaying as {{{char.name}}} in an interactive scene.

Scene: {{{scene.name}}}. {{{scene.description}}}

Character Profile - {{{char.name}}}:
Background: {{{char.background}}}
Personality: {{{char.personality_traits}}}
Motivations: {{{char.motivations}}}
Fears: {{{char.fears}}}
Speech Pattern: {{{char.dialogue_style}}}

{{#if mods}}Active Mods:
{{#each mods}}{{{name}}}: {{{description}}}
{{/each}}
{{/if}}You must respond as {{{char.name}}} with dialogue and actions that reflect their:
- Unique personality traits and background
- Established speech patterns and mannerisms
- Personal motivations and fears
- Character development based on the conversation history

Roleplay Instructions:
- Respond only as {{{char.name}}} and optionally a narrator
- Use *asterisks* to indicate character actions/emotes
- Actions should be in third-person
- Dialogue should feel natural and match their established style
- Consider the context of the previous messages
{{#if mods}}- Incorporate the themes and elements from the active mods
{{/if}}
Format response like this:

{{{char.name}}}: Character response and actions (ONE LINE)

{{{narrator}}} (OPTIONAL | DO NOT SHOW NARRATOR NAME IF NARRATOR IS NOT RESPONDING): \
What happens in the scene that is not a character's response or a character's actions (USE IF NEEDED)

Conversation history:
{{{transcript}}}

Generate a response that stays true to the character's established personality:"""


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


def build_context(
    brew: Brew, character: Character, transcript: str | None = None
) -> dict[str, Any]:
    """Assemble template variables for one character's turn."""
    ctx: dict[str, Any] = {
        "scene": brew.scene.model_dump(),
        "char": character.model_dump(),
        "mods": [m.model_dump() for m in brew.mods],
        "narrator": NARRATOR,
    }
    if transcript is not None:
        ctx["transcript"] = transcript
    return ctx


def build_opening_prompt(brew: Brew, character: Character) -> str:
    return render_prompt(OPENING_PROMPT, build_context(brew, character))


def build_reply_prompt(brew: Brew, character: Character, transcript: str) -> str:
    return render_prompt(REPLY_PROMPT, build_context(brew, character, transcript))
