import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from apps.api.config import settings
from apps.api.exceptions import ForgeException, forge_exception_handler
from apps.api.routes import (
    auth,
    deploy,
    generation,
    github,
    health,
    messages,
    projects,
    sandbox,
    stream,
    versions,
)
from apps.api.middleware import RequestIDMiddleware
from apps.api.database import engine
from events.bus import create_event_bus
from apps.api.services.event_service import event_service
from apps.api.services.generation_service import generation_runner
from apps.api.services.indexing_service import indexing_service
from apps.api.services.streaming_service import streaming_service

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manages application startup and shutdown lifecycle."""

    BANNER = """
      \033[38;5;208m  ███████╗\033[36m ██████╗ ██████╗  ██████╗ ███████╗
      \033[38;5;208m  ██╔════╝\033[36m██╔═══██╗██╔══██╗██╔════╝ ██╔════╝
      \033[38;5;208m  █████╗  \033[36m██║   ██║██████╔╝██║  ███╗█████╗
      \033[38;5;208m  ██╔══╝  \033[36m██║   ██║██╔══██╗██║   ██║██╔══╝
      \033[38;5;208m  ██║     \033[36m╚██████╔╝██║  ██║╚██████╔╝███████╗
      \033[38;5;208m  ╚═╝     \033[36m ╚═════╝ ╚═╝  ╚═╝ ╚═════╝ ╚══════╝
      \033[0m\033[90m  Describe · Generate · Preview · Ship
       ─────────────────────────────────────────\033[0m
    """

    # --- Startup ---
    print(BANNER)
    logger.info("%s v%s starting up...", settings.app_name, settings.app_version)

    # Initialize event bus
    event_bus = create_event_bus("redis", redis_url=settings.redis_url)
    event_service.set_event_bus(event_bus)
    logger.info("Event bus initialized (Redis)")

    # Re-index project files for semantic search after each generation
    indexing_service.set_event_bus(event_bus)
    await indexing_service.start_subscriber()
    logger.info("Indexing service initialized")

    # Periodic sweep of stale SSE connections
    streaming_service.start_cleanup()

    yield  # App runs and handles requests here

    # --- Shutdown ---
    logger.info("%s shutting down...", settings.app_name)

    # In-flight generations are cancelled; they can be retried later
    await generation_runner.shutdown()
    await streaming_service.stop_cleanup()

    # Close event bus
    await event_bus.close()
    await event_service.close()

    # Close database connections
    await engine.dispose()

def create_app() -> FastAPI:
    """Application factory: tests build a fresh app with their own lifespan."""

    application = FastAPI(
        title=settings.app_name,
        description="Turn natural-language prompts into working, previewable API projects.",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs",   # Swagger UI endpoint
        redoc_url="/redoc", # Swagger UI alternative
    )

    # --- Middleware ---
    # Last added runs first: CORS is outermost, RequestID innermost
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_middleware(RequestIDMiddleware)
    # --- Exception Handlers ---
    application.add_exception_handler(ForgeException, forge_exception_handler)

    # --- Routes ---
    application.include_router(health.router, tags=["health"])
    application.include_router(auth.router)         # /auth/register, /auth/login, /auth/me, /auth/integrations
    application.include_router(projects.router)     # /projects, /projects/{id}
    application.include_router(messages.router)     # /projects/{id}/messages, /messages/{id}/fragments
    application.include_router(versions.router)     # /projects/{id}/versions/*
    application.include_router(generation.router)   # /api/generate, /projects/{id}/generate, /jobs/*
    application.include_router(stream.router)       # /stream/{project_id}
    application.include_router(sandbox.router)      # /projects/{id}/sandbox/*
    application.include_router(github.router)       # /github/{project_id}/*
    application.include_router(deploy.router)       # /deploy/vercel/*

    return application

# uvicorn apps.api.main:app
app = create_app()
