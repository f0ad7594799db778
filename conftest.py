from collections.abc import Callable
from pathlib import Path

import pytest

from brew_chat.conversations import ConversationStore
from brew_chat.models import Brew, Character, Mod, Scene
from brew_chat.storage import KeyValueStore

ENV_VARS = ("GEMINI_API_KEY", "SUPABASE_URL", "SUPABASE_ANON_KEY", "SUPABASE_USER_ID", "DATA_DIR")


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Keep developer .env credentials out of every test."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def kv(data_dir: Path) -> KeyValueStore:
    return KeyValueStore(data_dir)


@pytest.fixture
def store(kv: KeyValueStore) -> ConversationStore:
    s = ConversationStore(kv)
    s.load()
    return s


# ---------------------------------------------------------------------------
# Brew factories
# ---------------------------------------------------------------------------

def make_character(name: str, id: str | None = None) -> Character:
    return Character(
        id=id or name.lower(),
        name=name,
        description=f"{name} the test character.",
        intro_text=f"I am {name}.",
        dialogue_style="Short and blunt.",
        motivations="Finish the test.",
        background="Born in a fixture.",
        personality_traits="Deterministic.",
        fears="Flaky tests.",
    )


@pytest.fixture
def make_brew() -> Callable[..., Brew]:
    def _make(*names: str, mods: list[Mod] | None = None, brew_id: str = "brew-1") -> Brew:
        return Brew(
            id=brew_id,
            name="Test Brew",
            scene=Scene(
                id="7",
                name="Lighthouse",
                description="A lighthouse in a storm.",
                max_characters=3,
            ),
            characters=[make_character(n, id=str(i + 1)) for i, n in enumerate(names)],
            mods=mods or [],
        )
    return _make


# ---------------------------------------------------------------------------
# StubLLM — dispatches by stage name, independent queue per stage
# ---------------------------------------------------------------------------

class StubLLM:
    """Deterministic LLM stand-in for tests.

    Provide a dict mapping stage name → list of responses (in call order).
    A queued Exception instance is raised instead of returned.
    """

    def __init__(self, responses: dict[str, list[str | Exception]]) -> None:
        self._queues = {k: list(v) for k, v in responses.items()}
        self.calls: list[tuple[str, str]] = []

    async def __call__(self, stage: str, prompt: str) -> str:
        self.calls.append((stage, prompt))
        queue = self._queues.get(stage)
        if not queue:
            raise AssertionError(
                f"StubLLM: unexpected call to stage={stage!r} "
                f"(no responses queued). calls so far: {self.calls}"
            )
        response = queue.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def assert_exhausted(self) -> None:
        leftover = {k: v for k, v in self._queues.items() if v}
        if leftover:
            raise AssertionError(f"StubLLM: unused responses remain: {leftover}")


class RecordingCounter:
    """MessageCounter that records calls and optionally fails."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple[list[str], str | None, list[str]]] = []

    async def increment_message_counts(self, character_ids, scene_id, mod_ids) -> None:
        self.calls.append((list(character_ids), scene_id, list(mod_ids)))
        if self.fail:
            raise RuntimeError("counter backend down")


@pytest.fixture
def stub_llm() -> Callable[..., StubLLM]:
    return StubLLM


@pytest.fixture
def counter() -> RecordingCounter:
    return RecordingCounter()


@pytest.fixture
def failing_counter() -> RecordingCounter:
    return RecordingCounter(fail=True)
