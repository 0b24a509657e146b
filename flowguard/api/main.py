# flowguard/api/main.py

from pathlib import Path
from typing import Optional, Union

from fastapi import FastAPI

from flowguard.agents.coordinator_agent import CoordinatorAgent
from flowguard.core.cache import ConversationCache
from flowguard.core.config import Settings
from flowguard.core.store import SQLiteStore
from flowguard.utils.logger import init_logger
from flowguard.api.routes.chat import router as chat_router
from flowguard.api.routes.conversations import router as conversations_router
from flowguard.api.routes.workflows import router as workflows_router
from flowguard.api.routes.execute import router as execute_router


init_logger(Settings.LOG_LEVEL)


def create_app(db_path: Optional[Union[str, Path]] = None) -> FastAPI:
    """
    Composition root: owns the store, the conversation cache and the coordinator.
    """
    app = FastAPI(
        title="Flowguard Workflow Service",
        version="1.0.0",
        openapi_url="/api/v1/openapi.json",
        docs_url="/api/v1/docs",
    )

    store = SQLiteStore(db_path or Settings.DB_PATH)
    cache = ConversationCache(max_age=Settings.CONVERSATION_CACHE_SECONDS)
    app.state.coordinator = CoordinatorAgent(store, cache)

    app.include_router(chat_router)           # /api/v1/chat
    app.include_router(conversations_router)  # /api/v1/conversations/...
    app.include_router(workflows_router)      # /api/v1/workflows/{id}
    app.include_router(execute_router)        # /api/v1/workflows/{id}/execute
    return app


app = create_app()
