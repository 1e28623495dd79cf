# app/main.py
# TutorLink FastAPI application entry point
#
# Startup:  optional migrations, DB connection check, Redis ping
# Shutdown: Clean connection pool disposal
# Routes:   /health, /api/v1/* (all endpoints via master router)

import logging
from contextlib import asynccontextmanager

import redis as redis_lib
from alembic import command
from alembic.config import Config
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.router import api_router
from app.core.config import settings
from app.db.session import check_db_connection, engine

logger = logging.getLogger("tutorlink.app")


def run_startup_migrations() -> bool:
    """Run `alembic upgrade head` using the project alembic.ini."""
    try:
        alembic_cfg = Config("alembic.ini")
        command.upgrade(alembic_cfg, "head")
        print("Database migrations: OK")
        return True
    except Exception as exc:
        print(f"WARNING: Database migrations failed -- {exc}")
        return False


def check_redis_connection(timeout: float = 2) -> bool:
    try:
        r = redis_lib.from_url(settings.redis_url, socket_connect_timeout=timeout)
        r.ping()
        r.close()
        return True
    except Exception:
        return False


# ── Lifespan ──────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    print(f"Starting {settings.app_name} v{settings.app_version} [{settings.app_env}]")

    if settings.auto_migrate_on_startup:
        run_startup_migrations()

    if check_db_connection():
        print("Database connection: OK")
    else:
        print("WARNING: Database connection failed -- check DATABASE_URL")

    # Redis only backs the chat typing indicator; the API runs without it
    if check_redis_connection():
        print("Redis connection: OK")
    else:
        print("WARNING: Redis connection failed -- check REDIS_URL")

    yield  # App runs here

    # Shutdown
    print("Shutting down -- disposing DB connection pool")
    engine.dispose()


# ── App Instance ──────────────────────────────────────────────────────────────

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="TutorLink -- campus peer-tutoring marketplace.",
    docs_url="/api/docs",       # Swagger UI
    redoc_url="/api/redoc",     # ReDoc
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
    debug=settings.debug,
)


# ── CORS ──────────────────────────────────────────────────────────────────────

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Errors ────────────────────────────────────────────────────────────────────

@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Anything that is not an HTTPException: log the traceback, hide the details."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# ── Routes ────────────────────────────────────────────────────────────────────

# All API routes under /api/v1
app.include_router(api_router, prefix="/api/v1")


# ── Health Check ──────────────────────────────────────────────────────────────

@app.get("/health", tags=["Health"], include_in_schema=False)
def health_check():
    """
    Health check endpoint for load balancers.
    Returns 200 OK if the app is running.
    DB and Redis status included for observability.
    """
    db_ok = check_db_connection()
    redis_ok = check_redis_connection(timeout=1)

    return JSONResponse(
        status_code=200,
        content={
            "status": "ok",
            "app": settings.app_name,
            "version": settings.app_version,
            "environment": settings.app_env,
            "services": {
                "database": "ok" if db_ok else "unavailable",
                "redis": "ok" if redis_ok else "unavailable",
            },
        },
    )


@app.get("/", include_in_schema=False)
def root():
    return JSONResponse(
        content={
            "message": "TutorLink API",
            "docs": "/api/docs",
            "health": "/health",
        }
    )
