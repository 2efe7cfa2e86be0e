from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from harmony_relay.api import agents, chat, health
from harmony_relay.core.config import AGENTS_DIR, CORS_ORIGINS, LOG_LEVEL, OLLAMA_BASE_URL
from harmony_relay.core.errors import RelayError
from harmony_relay.middleware.request_logger import RequestLoggerMiddleware
from harmony_relay.services.agent_store import AgentStore
from harmony_relay.services.conversation_store import ConversationStore
from harmony_relay.services.ollama_client import OllamaClient
from harmony_relay.services.relay import ChatRelay

# ---- Logging config ---------------------------------------------------------
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s:%(lineno)d - %(message)s",
)
logger = logging.getLogger("harmony.main")


def create_app(
    store: Optional[ConversationStore] = None,
    client: Optional[OllamaClient] = None,
    agent_store: Optional[AgentStore] = None,
) -> FastAPI:
    """Build the app. The store/client/agent store are injectable for tests."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await app.state.ollama_client.aclose()
        logger.info("Ollama client closed.")

    app = FastAPI(title="Harmony Relay", lifespan=lifespan)
    app.add_middleware(RequestLoggerMiddleware)

    # ---- CORS ---------------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---- Shared state (one per process) -------------------------------------
    app.state.conversation_store = store or ConversationStore()
    app.state.ollama_client = client or OllamaClient(OLLAMA_BASE_URL)
    app.state.agent_store = agent_store or AgentStore(AGENTS_DIR)
    app.state.chat_relay = ChatRelay(app.state.conversation_store, app.state.ollama_client)

    # ---- Error mapping ------------------------------------------------------
    @app.exception_handler(RelayError)
    async def _relay_error(request: Request, exc: RelayError):
        logger.warning("%s %s -> %d %s: %s", request.method, request.url.path, exc.http_status, exc.code, exc.message)
        return JSONResponse({"error": exc.message}, status_code=exc.http_status)

    @app.exception_handler(RequestValidationError)
    async def _invalid_payload(request: Request, exc: RequestValidationError):
        logger.warning("%s %s -> 400 invalid payload: %s", request.method, request.url.path, exc.errors()[:3])
        return JSONResponse({"error": "Invalid JSON payload"}, status_code=400)

    # ---- Routers ------------------------------------------------------------
    app.include_router(chat.router,   prefix="/api/chat",   tags=["Chat"])
    app.include_router(agents.router, prefix="/api/agents", tags=["Agents"])
    app.include_router(health.router, prefix="/health",     tags=["Health"])
    logger.info("Routers registered. ollama=%s agents_dir=%s", app.state.ollama_client.base_url, app.state.agent_store.root)
    return app


app = create_app()
