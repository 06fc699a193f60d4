"""Nurse call FastAPI application with lifespan-managed clients, store and rooms."""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from nurse_call.agent.bridge import StreamingBridge
from nurse_call.agent.interpreter import ToolCallInterpreter
from nurse_call.agent.pipeline import ChatPipeline
from nurse_call.agent.retry import NoopRecovery, OllamaLauncher, RetryPolicy
from nurse_call.agent.session import SessionRegistry
from nurse_call.clients.ollama import OllamaClient
from nurse_call.config import settings
from nurse_call.middleware.audit_logger import AuditLogMiddleware
from nurse_call.persistence.store import DomainStore
from nurse_call.realtime.presence import PresenceRouter
from nurse_call.routes.chat import router as chat_router
from nurse_call.routes.health import router as health_router
from nurse_call.routes.messages import router as messages_router
from nurse_call.routes.requests import router as requests_router
from nurse_call.routes.ws import router as ws_router
from nurse_call.tools import requests as requests_tool

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the store and model client, inject them into tools, wire the pipeline."""
    ollama = OllamaClient(settings.ollama_host, timeout=settings.model_timeout_seconds)

    os.makedirs(os.path.dirname(settings.db_path) or ".", exist_ok=True)
    store = DomainStore(settings.db_path)
    await store.init_db()
    logger.info("SQLite store initialized at %s", settings.db_path)

    # Inject the store into tool modules
    requests_tool.set_store(store)

    recovery = (
        OllamaLauncher(settings.ollama_executable)
        if settings.ollama_autostart
        else NoopRecovery()
    )
    retry = RetryPolicy(
        max_attempts=settings.retry_max_attempts,
        base_delay=settings.retry_base_delay_seconds,
        recovery=recovery,
    )
    presence = PresenceRouter(send_timeout=settings.broadcast_send_timeout_seconds)
    bridge = StreamingBridge(ollama, settings, retry=retry)

    app.state.store = store
    app.state.presence = presence
    app.state.sessions = SessionRegistry(max_history=settings.max_history_messages)
    app.state.chat_pipeline = ChatPipeline(bridge, ToolCallInterpreter(), presence)

    logger.info("Nurse call service started, Ollama at %s", settings.ollama_host)
    yield

    # Cleanup
    await store.close()
    await ollama.close()
    logger.info("Nurse call service shutdown, clients closed")


app = FastAPI(title="Nurse Call Assistant", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(AuditLogMiddleware)

app.include_router(health_router)
app.include_router(chat_router)
app.include_router(requests_router)
app.include_router(messages_router)
app.include_router(ws_router)
