import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import chat
from .api import health
from .config import Settings
from .errors import AssistantError, DispatchFailed
from .logging_setup import configure_logging
from .services.history import ConversationHistory
from .services.llm_client import LLMClient
from .services.mcp_client import McpExecutor
from .services.pipeline import INVALID_REQUEST_MESSAGE, ChatPipeline
from .services.registry import RegistryClient, TTLCache

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Erreur lors du traitement de la requête."


def build_pipeline(settings: Settings) -> ChatPipeline:
    """Wire the pipeline collaborators described by ``settings``."""
    registry = None
    if settings.registry_lookup:
        registry = RegistryClient(
            settings.smithery_api_key,
            cache=TTLCache(settings.registry_ttl_seconds),
        )

    async def mcp_url() -> str:
        base_url = await registry.resolve(settings.server_name) if registry else None
        return settings.mcp_url(base_url)

    history = None
    if settings.history_enabled:
        history = ConversationHistory(settings.history_max_messages)

    return ChatPipeline(
        llm=LLMClient(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            timeout=settings.llm_timeout_seconds,
            base_url=settings.openai_base_url,
        ),
        executor=McpExecutor(mcp_url, timeout=settings.mcp_timeout_seconds),
        settings=settings,
        history=history,
        registry=registry,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    pipeline: ChatPipeline = app.state.pipeline
    try:
        await pipeline.executor.connect()
    except DispatchFailed:
        logger.warning("MCP connection failed. The application will continue with OpenAI integration only.")
    yield
    await pipeline.close()


def create_app(
    settings: Optional[Settings] = None,
    pipeline: Optional[ChatPipeline] = None,
) -> FastAPI:
    """Build the application.

    Raises:
        ConfigurationError: required settings are missing.
    """
    if pipeline is None:
        settings = (settings or Settings.from_env()).validate()
        configure_logging(settings.debug)
        pipeline = build_pipeline(settings)

    app = FastAPI(title="HubSpot Assistant", lifespan=lifespan)
    app.state.pipeline = pipeline

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AssistantError)
    async def assistant_error_handler(request: Request, exc: AssistantError):
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Invalid request body on {request.url.path}: {[err.get('loc') for err in exc.errors()]}")
        return JSONResponse(status_code=400, content={"error": INVALID_REQUEST_MESSAGE})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.url.path}")
        return JSONResponse(status_code=500, content={"error": GENERIC_ERROR_MESSAGE})

    # Mount routers
    app.include_router(chat.router, prefix="/api/chat", tags=["chat"])

    # Health check endpoints for Kubernetes probes
    app.include_router(health.router, tags=["health"])

    @app.get("/")
    async def read_root():
        return {"message": "Bienvenue sur l'assistant HubSpot !"}

    return app
