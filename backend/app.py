import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from backend.routes import router
from brew_chat.config import get_config, make_backend_client, make_llm, with_env
from brew_chat.conversations import ConversationStore
from brew_chat.llm import LLM
from brew_chat.pipeline import TurnDriver
from brew_chat.remote import MessageCounter, NullCounter
from brew_chat.storage import BrewCatalog, KeyValueStore

load_dotenv(Path(__file__).parent.parent / ".env")

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


class ConfiguredLLM:
    """LLM built from the current settings on every call, so edits apply immediately."""

    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv

    async def __call__(self, stage: str, prompt: str) -> str:
        llm = make_llm(with_env(get_config(self._kv)))
        return await llm(stage, prompt)


class ConfiguredCounter:
    """Message counter backed by the configured hosted backend, if any."""

    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv

    async def increment_message_counts(
        self,
        character_ids: list[str],
        scene_id: str | None,
        mod_ids: list[str],
    ) -> None:
        client = make_backend_client(with_env(get_config(self._kv))) or NullCounter()
        await client.increment_message_counts(character_ids, scene_id, mod_ids)


def create_app(
    data_dir: Path | None = None,
    llm: LLM | None = None,
    counter: MessageCounter | None = None,
) -> FastAPI:
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    kv = KeyValueStore(resolved)
    store = ConversationStore(kv)
    store.load()

    app = FastAPI(title="Brew Chat")
    app.state.kv = kv
    app.state.store = store
    app.state.catalog = BrewCatalog(kv)
    app.state.driver = TurnDriver(
        store,
        llm or ConfiguredLLM(kv),
        counter or ConfiguredCounter(kv),
    )
    app.include_router(router, prefix="/api")
    logger.info("Brew Chat data directory: %s", resolved)
    return app
