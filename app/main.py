"""
Main FastAPI application for the Workspace Hub backend.
Handles CORS, request logging middleware, lifespan events, and router registration.
"""
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.database import close_db, init_db
from app.dependencies.services import get_ai_client, get_document_store
from app.routers import ai, health, tasks, users, workspaces

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Startup / shutdown helpers
# ---------------------------------------------------------------------------

async def _check_database() -> bool:
    """Initialise DB tables and verify the connection.  Returns True on success."""
    try:
        await init_db()
        logger.info("✓ Database connection OK")
        return True
    except Exception as exc:
        logger.error("✗ Database connection failed: %s", exc)
        raise


async def _check_document_store() -> bool:
    """Initialise the document store client.  Never raises, logs instead."""
    try:
        store = get_document_store()
        if await store.check_health():
            logger.info("✓ Document store reachable (%s)", type(store).__name__)
            return True
        logger.warning("⚠ Document store did not answer; task endpoints will fail")
    except Exception as exc:
        logger.error("✗ Document store unavailable (%s); task endpoints will fail", exc)
    return False


async def _check_ai_service() -> bool:
    """Probe the AI service.  Never raises, logs instead."""
    if await get_ai_client().check_health():
        logger.info("✓ AI service reachable at %s", settings.AI_API_BASE_URL)
        return True
    logger.warning("⚠ AI service not reachable at %s; AI endpoints will fail", settings.AI_API_BASE_URL)
    return False


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown event handler."""
    logger.info("=" * 60)
    logger.info("  Starting Workspace Hub backend …")
    logger.info("=" * 60)

    # 1 — Database (required; raises on failure)
    await _check_database()

    # 2 — Document store / Firebase (optional; logs warnings but continues)
    await _check_document_store()

    # 3 — AI service (optional)
    await _check_ai_service()

    logger.info("=" * 60)
    logger.info("  Workspace Hub ready on http://%s:%d", settings.HOST, settings.PORT)
    logger.info("  Swagger UI : http://%s:%d/docs", settings.HOST, settings.PORT)
    logger.info("  Health     : http://%s:%d/api/health", settings.HOST, settings.PORT)
    logger.info("=" * 60)

    yield  # ← server is running

    logger.info("Shutting down Workspace Hub backend …")
    await close_db()
    logger.info("✓ Shutdown complete.")


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Workspace Hub API",
    description=(
        "**Workspace Hub**: collaborative workspaces with tasks and AI helpers.\n\n"
        "Ownership and membership live in PostgreSQL; task details and AI "
        "history live in Firestore. Authenticate with a Firebase ID token "
        "(`Authorization: Bearer <token>`).\n\n"
        "Key endpoints:\n"
        "- `POST /api/auth/register`: create an account\n"
        "- `POST /api/workspaces`: create a workspace\n"
        "- `POST /api/workspaces/{id}/tasks`: create a task\n"
        "- `POST /api/ai/task-assistant`: task suggestions for a workspace\n"
    ),
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Request / response logging middleware
# ---------------------------------------------------------------------------

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log every request with method, path, status code, and elapsed time.
    Attaches an ``X-Process-Time`` header (milliseconds) to every response.
    """
    t0 = time.monotonic()
    response = await call_next(request)
    elapsed_ms = round((time.monotonic() - t0) * 1000, 2)

    # Skip noisy health-check polling
    if request.url.path not in ("/api/health/", "/api/health", "/"):
        logger.info(
            "%s %s → %d  (%.2f ms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )

    response.headers["X-Process-Time"] = f"{elapsed_ms}ms"
    return response


# ---------------------------------------------------------------------------
# Global exception handler
# ---------------------------------------------------------------------------

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return a structured JSON error for any unhandled exception."""
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "error": str(exc),
            "path": str(request.url.path),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(health.router,      prefix="/api/health",     tags=["Health"])
app.include_router(users.auth_router,  prefix="/api/auth",       tags=["Auth"])
app.include_router(users.router,       prefix="/api/users",      tags=["Users"])
app.include_router(workspaces.router,  prefix="/api/workspaces", tags=["Workspaces"])
app.include_router(
    tasks.router,
    prefix="/api/workspaces/{workspace_id}/tasks",
    tags=["Tasks"],
)
app.include_router(ai.router,          prefix="/api/ai",         tags=["AI"])


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------

@app.get("/", tags=["Root"], include_in_schema=False)
async def root():
    """API root — returns basic service info."""
    return {
        "name": "Workspace Hub API",
        "version": "1.0.0",
        "description": "Collaborative Workspace Backend",
        "docs": "/docs",
        "health": "/api/health",
        "endpoints": {
            "auth": "/api/auth",
            "users": "/api/users",
            "workspaces": "/api/workspaces",
            "tasks": "/api/workspaces/{workspace_id}/tasks",
            "ai": "/api/ai",
        },
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        log_level=settings.LOG_LEVEL.lower(),
    )
