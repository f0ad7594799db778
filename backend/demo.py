"""Create demo brews for development/testing."""

from pathlib import Path

from brew_chat.conversations import ConversationStore
from brew_chat.models import Brew, Character, Mod, Scene
from brew_chat.storage import BrewCatalog, KeyValueStore

HARBOR = Scene(
    id="1",
    name="Rainy Harbor",
    description="A fog-bound harbor at midnight. Lanterns sway over wet cobblestones "
    "and a ship with black sails has just dropped anchor.",
    max_characters=3,
)

MIRA = Character(
    id="1",
    name="Mira",
    description="A dockside fortune teller with a sharp tongue.",
    intro_text="Cross my palm with silver and I'll tell you how you die.",
    dialogue_style="Wry, theatrical, speaks in half-riddles.",
    motivations="Wants passage off the island before the tide turns.",
    background="Raised by smugglers, reads cards for sailors to pay her debts.",
    personality_traits="Clever, guarded, secretly kind.",
    fears="Deep water and the captain of the black ship.",
)

BRANT = Character(
    id="2",
    name="Brant",
    description="The harbor master, tired and suspicious.",
    intro_text="Papers. Now.",
    dialogue_style="Short sentences, gruff, never wastes a word.",
    motivations="Keep the harbor quiet until his replacement arrives.",
    background="Former navy bosun who lost his ship to pirates.",
    personality_traits="Stubborn, honest, quick to anger.",
    fears="Being blamed for whatever the black ship brings.",
)

NOIR = Mod(
    id="1",
    name="Noir",
    description="Everything is shadowed, cynical, and morally grey.",
    ticker="NOIR",
)

DEMO_BREWS = [
    Brew(id="demo-solo", name="Fortune at Midnight", scene=HARBOR, characters=[MIRA]),
    Brew(
        id="demo-duo",
        name="Black Sails",
        scene=HARBOR,
        characters=[MIRA, BRANT],
        mods=[NOIR],
    ),
]


def create_demo_data(data_dir: Path) -> None:
    """Replace the brew catalog with demo brews and clear their conversations."""
    kv = KeyValueStore(data_dir)
    BrewCatalog(kv).replace_all(DEMO_BREWS)
    store = ConversationStore(kv)
    store.load()
    for brew in DEMO_BREWS:
        store.reset_conversation(brew.id)
