"""
AgentDesk — FastAPI Server
REST API for users, OpenAI Assistant-backed agents, in-app and public chats,
GoHighLevel import, and the inbound lead webhook with its live log.
"""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from agentdesk import __version__
from agentdesk.api.routes_agents import register_agent_routes
from agentdesk.api.routes_chat import register_chat_routes
from agentdesk.api.routes_integrations import register_integration_routes
from agentdesk.api.routes_webhooks import register_webhook_routes
from agentdesk.channels.webhook_log import WebhookLogBuffer
from agentdesk.config.settings import settings
from agentdesk.db.base import Base
from agentdesk.db.engine import dispose_engine, get_engine, get_session_factory
from agentdesk.errors import AppError

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup and dispose the engine on shutdown."""
    logger.info("[AGENTDESK] Initializing platform...")
    from agentdesk.db import models  # noqa: F401

    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("[AGENTDESK]   Database: tables initialized")
    logger.info(f"[AGENTDESK]   Webhook log capacity: {settings.webhook_log_capacity}")
    logger.info("[AGENTDESK] Platform ready.")
    yield
    logger.info("[AGENTDESK] Shutting down...")
    await dispose_engine()


_openapi_tags = [
    {"name": "System", "description": "Health checks"},
    {"name": "Users", "description": "User registration and OpenAI API key settings"},
    {"name": "Agents", "description": "Agent CRUD backed by OpenAI Assistants, webhook details"},
    {"name": "Chat", "description": "In-app chats, message history, feedback"},
    {"name": "Public Chat", "description": "Shareable /{username}/{agent-slug} chats"},
    {"name": "Integrations", "description": "GoHighLevel custom value sync"},
    {"name": "Webhooks", "description": "Inbound lead webhook, secret webhooks, live webhook log"},
]

app = FastAPI(
    title="AgentDesk",
    description=(
        "## AgentDesk\n\n"
        "Build OpenAI Assistant-backed AI agents and connect them to GoHighLevel "
        "lead conversations through webhooks.\n\n"
        "---\n"
    ),
    version=__version__,
    lifespan=lifespan,
    openapi_tags=_openapi_tags,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.state.webhook_log = WebhookLogBuffer(capacity=settings.webhook_log_capacity)

# ── CORS: configurable allowed origins ──────────────────────────────
_cors_origins_raw = settings.cors_allowed_origins
_cors_origins = ["*"] if _cors_origins_raw.strip() == "*" else [o.strip() for o in _cors_origins_raw.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Error Handlers ──────────────────────────────────────────────────

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message} {exc.details or ''}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(httpx.HTTPError)
async def upstream_transport_handler(request: Request, exc: httpx.HTTPError):
    logger.error(f"{request.method} {request.url.path} upstream transport error: {exc}")
    return JSONResponse(
        status_code=502,
        content={"error": "Upstream service unavailable", "details": str(exc) or exc.__class__.__name__},
    )


# ══════════════════════════════════════════════════════════════════
# HEALTH
# ══════════════════════════════════════════════════════════════════

@app.get("/health", tags=["System"])
async def health():
    """Health check: pings the database."""
    checks = {}
    overall = "ok"
    try:
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = {"status": "ok"}
    except Exception as e:
        logger.warning(f"Health check database ping failed: {e}")
        checks["database"] = {"status": "error", "detail": str(e)[:200]}
        overall = "degraded"
    checks["webhook_log"] = {"status": "ok", "entries": len(app.state.webhook_log)}
    return {"status": overall, "version": __version__, "environment": settings.environment, "checks": checks}


# ══════════════════════════════════════════════════════════════════
# ROUTE GROUPS
# ══════════════════════════════════════════════════════════════════

register_agent_routes(app)
register_chat_routes(app)
register_integration_routes(app)
register_webhook_routes(app)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8080)
