"""Core domain models.

Conversation state, brew metadata, and everything the turn driver reads or
writes are expressed as these types. Pydantic is used for validation and
serialisation at every data boundary.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

NARRATOR = "Narrator"


class SpeakerSegment(BaseModel):
    """One attributed line of dialogue or narration."""

    speaker: str  # character name, "Narrator", or "" for an unattributed line
    text: str


class Message(BaseModel):
    """A single entry in a brew's conversation.

    Accepts the camel-case keys written by older clients (`isUser`,
    `speakerSegments`) as well as the snake-case field names.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    text: str
    is_user: bool = Field(alias="isUser")
    speaker_segments: list[SpeakerSegment] | None = Field(
        default=None, alias="speakerSegments"
    )


class Conversation(BaseModel):
    """Ordered messages plus the flat transcript fed back into prompts."""

    messages: list[Message] = Field(default_factory=list)
    transcript: str = ""


class Scene(BaseModel):
    id: str
    name: str
    description: str = ""
    image_url: str = ""
    max_characters: int = 1


class Character(BaseModel):
    id: str
    name: str
    description: str = ""
    avatar_url: str = ""
    intro_text: str = ""
    dialogue_style: str = ""
    motivations: str = ""
    background: str = ""
    personality_traits: str = ""
    fears: str = ""


class Mod(BaseModel):
    """A thematic modifier injected into prompts."""

    id: str
    name: str
    description: str = ""
    ticker: str = ""


class Brew(BaseModel):
    """A chat session: one scene, one or more characters, optional mods."""

    id: str
    name: str
    scene: Scene
    characters: list[Character] = Field(default_factory=list)
    mods: list[Mod] = Field(default_factory=list)

    def composition_errors(self) -> list[str]:
        """Problems that stop the brew from being saved; empty when it is valid.

        A brew needs a name and at least one character, and may not hold
        more characters than its scene allows.
        """
        errors: list[str] = []
        if not self.name.strip():
            errors.append("Brew name is required")
        if not self.characters:
            errors.append("A brew needs at least one character")
        elif len(self.characters) > self.scene.max_characters:
            errors.append(
                f"Scene {self.scene.name!r} allows at most "
                f"{self.scene.max_characters} characters"
            )
        return errors

    def find_character(self, name: str) -> Character | None:
        for character in self.characters:
            if character.name == name:
                return character
        return None
