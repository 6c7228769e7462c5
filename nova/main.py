"""FastAPI application entry point."""

import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx
from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from nova import __version__
from nova.config import get_settings
from nova.connectors.registry import ConnectorRegistry
from nova.core.exceptions import AuthError, ConfigurationError, NotFoundError, NovaException
from nova.core.logging import LogEvents, bind_request_context, get_logger, setup_logging
from nova.db.engine import create_db_engine, init_db
from nova.handlers.chat_handler import ChatHandler
from nova.handlers.connector_handler import ConnectorHandler
from nova.handlers.feedback_handler import FeedbackHandler, LearningHandler
from nova.handlers.oauth_handler import OAuthHandler
from nova.handlers.rag_handler import RagHandler
from nova.models.api import (
    ChatRequest,
    ConnectorApiRequest,
    FeedbackRequest,
    LearningRequest,
    OAuthConnectorRequest,
    RagRequest,
)
from nova.models.connectors import ConnectorType, UserContext
from nova.providers.registry import get_provider
from nova.services.auth import UserAuthenticator, bearer_token
from nova.services.conversation import ConversationController
from nova.services.credential_resolver import CredentialResolver, GoogleTokenRefresher, TokenCache
from nova.services.credential_store import CredentialStore
from nova.services.document_index import DocumentIndex
from nova.services.feedback_service import FeedbackStore, LearningStore
from nova.services.history_service import HistoryService
from nova.services.prompt_builder import PromptBuilder
from nova.services.request_supervisor import RequestSupervisor
from nova.services.tool_router import ToolRouter
from nova.tools.catalog import ToolCatalog

# Initialize logging early
setup_logging()
logger = get_logger("main")


# Service instances (initialized in lifespan)
class AppState:
    """Application state container."""

    http_client: httpx.AsyncClient
    authenticator: UserAuthenticator
    registry: ConnectorRegistry
    router: ToolRouter
    history_service: HistoryService
    connector_handler: ConnectorHandler
    oauth_handler: OAuthHandler
    chat_handler: ChatHandler | None = None
    rag_handler: RagHandler
    feedback_handler: FeedbackHandler
    learning_handler: LearningHandler


app_state = AppState()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager."""
    settings = get_settings()

    logger.info(
        LogEvents.APP_STARTING,
        version=__version__,
        environment=settings.app_env.value,
        debug=settings.debug,
    )

    engine = create_db_engine(settings.database_url)
    init_db(engine)

    client = httpx.AsyncClient(timeout=settings.connector_metadata_timeout)
    app_state.http_client = client
    app_state.authenticator = UserAuthenticator(client, settings)

    store = CredentialStore(engine)
    index = DocumentIndex(engine, max_chars=settings.document_max_chars)
    resolver = CredentialResolver(
        GoogleTokenRefresher(client, settings),
        TokenCache(buffer_seconds=settings.token_cache_buffer_seconds),
        store=store,
        settings=settings,
    )
    app_state.registry = ConnectorRegistry.create(client, index, settings)
    app_state.router = ToolRouter(ToolCatalog(), app_state.registry, resolver, settings)

    feedback_store = FeedbackStore(capacity=settings.feedback_capacity)
    learning_store = LearningStore(capacity=settings.learning_capacity)
    app_state.history_service = HistoryService(max_messages=settings.history_max_messages)

    app_state.connector_handler = ConnectorHandler(app_state.registry, resolver)
    app_state.oauth_handler = OAuthHandler(store, resolver)
    app_state.rag_handler = RagHandler(index, settings)
    app_state.feedback_handler = FeedbackHandler(feedback_store)
    app_state.learning_handler = LearningHandler(learning_store)

    try:
        provider = get_provider(settings=settings)
    except ConfigurationError as e:
        logger.warning("llm_provider_unavailable", error=e.message)
    else:
        controller = ConversationController(
            provider,
            app_state.router,
            PromptBuilder(),
            feedback_store=feedback_store,
            learning_store=learning_store,
            settings=settings,
        )
        app_state.chat_handler = ChatHandler(
            controller, app_state.history_service, RequestSupervisor()
        )

    logger.info(
        LogEvents.APP_STARTED,
        available_providers=[p.value for p in settings.get_available_providers()],
        fallback_connectors=[c.value for c in ConnectorType if settings.has_fallback(c)],
    )

    yield

    # Cleanup
    logger.info(LogEvents.APP_SHUTDOWN)
    app_state.registry.close()
    await client.aclose()
    engine.dispose()


# Create FastAPI app
app = FastAPI(
    title="NOVA Connect",
    description="Tool-calling chat assistant over connected SaaS systems",
    version=__version__,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(request: Request, call_next: Any) -> Response:
    """Bind a request id to every log line emitted while handling the request."""
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
    bind_request_context(request_id=request_id, endpoint=request.url.path)
    logger.debug(LogEvents.REQUEST_RECEIVED, method=request.method)
    response = await call_next(request)
    response.headers["x-request-id"] = request_id
    return response


# Authentication dependencies
async def optional_user(authorization: str | None = Header(default=None)) -> UserContext | None:
    """The caller, when a valid bearer token is supplied."""
    return await app_state.authenticator.authenticate(bearer_token(authorization))


async def require_user(user: UserContext | None = Depends(optional_user)) -> UserContext:
    if user is None:
        raise AuthError("Unauthorized")
    return user


# Routes
@app.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint - basic info."""
    return {
        "name": "NOVA Connect",
        "version": __version__,
        "status": "running",
    }


@app.get("/health")
async def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy",
        "version": __version__,
        "environment": settings.app_env.value,
        "providers": {
            "available": [p.value for p in settings.get_available_providers()],
            "default": settings.default_llm_provider.value,
            "chat_enabled": app_state.chat_handler is not None,
        },
        "connectors": {
            "registered": [c.value for c in app_state.registry.connectors()],
            "fallback": [c.value for c in ConnectorType if settings.has_fallback(c)],
        },
        "conversations": app_state.history_service.get_stats(),
    }


@app.post("/connector-api")
async def connector_api(
    body: ConnectorApiRequest,
    user: UserContext | None = Depends(optional_user),
) -> JSONResponse:
    """Run one connector action directly."""
    return await app_state.connector_handler.handle(body, user)


@app.post("/oauth-connector")
async def oauth_connector(
    body: OAuthConnectorRequest,
    user: UserContext = Depends(require_user),
) -> JSONResponse:
    """Manage the caller's stored OAuth tokens."""
    return await app_state.oauth_handler.handle(body, user)


@app.post("/universal-chat", response_model=None)
async def universal_chat(
    body: ChatRequest,
    user: UserContext | None = Depends(optional_user),
) -> Response:
    """Run a chat turn and stream the answer as Server-Sent Events."""
    if app_state.chat_handler is None:
        raise ConfigurationError("No model gateway is configured")
    return await app_state.chat_handler.handle(body, user)


@app.post("/rag-service")
async def rag_service(
    body: RagRequest,
    user: UserContext | None = Depends(optional_user),
) -> JSONResponse:
    """Index, search, get or delete documents."""
    return await app_state.rag_handler.handle(body, user)


@app.post("/feedback")
async def feedback(body: FeedbackRequest) -> JSONResponse:
    return await app_state.feedback_handler.handle(body)


@app.post("/learning")
async def learning(body: LearningRequest) -> JSONResponse:
    return await app_state.learning_handler.handle(body)


@app.get("/conversations/{conversation_id}")
async def conversation_history(conversation_id: str) -> dict[str, Any]:
    """Transcript of one conversation."""
    context = app_state.history_service.get_context(conversation_id)
    if context is None:
        raise NotFoundError(f"Conversation not found: {conversation_id}")
    return context.model_dump(mode="json")


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed request bodies are a 400 with a readable message."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "Invalid request"
    logger.info(LogEvents.REQUEST_REJECTED, path=request.url.path, error=message)
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(NovaException)
async def nova_exception_handler(request: Request, exc: NovaException) -> JSONResponse:
    """Application errors carry their own status."""
    status_code = exc.kind.http_status
    if status_code >= 500:
        logger.error("application_error", path=request.url.path, error=str(exc))
    content: dict[str, Any] = {"error": exc.message}
    if exc.hint:
        content["hint"] = exc.hint
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"},
    )


# Development entry point
if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "nova.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )
