"""
Social Profile API — entry point.

Startup sequence:
  1. Configure OTel tracing (→ Jaeger via OTLP)
  2. Open the store handle (TiDB) and create tables if not present
  3. Initialise MinIO client & bucket
  4. Expose Prometheus /metrics endpoint

A handle already placed on app.state before startup is kept as is, which
is how tests run the app against an isolated database and media store.
"""
import asyncio
import logging

from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from profile_api.clients.media_client import MediaStore
from profile_api.config import settings
from profile_api.database import Database
from profile_api.errors import ProfileServiceError, StoreError
from profile_api.routers import auth, feed, profiles, upload
from profile_api.telemetry import instrument_app, instrument_engine, setup_tracing

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown of all external connections."""
    logger.info("Starting Social Profile API (env=%s)", settings.environment)

    owns_database = getattr(app.state, "database", None) is None
    if owns_database:
        app.state.database = Database()
        await app.state.database.connect()
        if settings.tracing_enabled:
            instrument_engine(app.state.database.engine)

    if getattr(app.state, "media", None) is None:
        app.state.media = MediaStore()
        app.state.media.init()      # sync — boto3 is not async

    logger.info("All services connected. API ready.")
    yield

    logger.info("Shutting down...")
    if owns_database:
        await app.state.database.dispose()


# ── Error rendering ────────────────────────────────────────────────────────

def _error(
    status_code: int,
    title: str,
    message: str,
    headers: Optional[dict[str, str]] = None,
    **extra,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": title, "message": message, **extra},
        headers=headers,
    )


async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # 401s from the auth dependencies, unknown routes, wrong methods
    return _error(
        exc.status_code,
        HTTPStatus(exc.status_code).phrase,
        str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def handle_service_error(request: Request, exc: ProfileServiceError) -> JSONResponse:
    if isinstance(exc, StoreError):
        logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
    return _error(exc.status_code, exc.title, exc.message)


async def handle_store_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database error on %s %s", request.method, request.url.path)
    exc = StoreError()
    return _error(exc.status_code, exc.title, exc.message)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query"))
    message = f"{location}: {first.get('msg')}" if location else str(first.get("msg", "Invalid request"))
    return _error(
        status.HTTP_400_BAD_REQUEST,
        "Validation Error",
        message,
        details=[{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors],
    )


class RequestTimeoutMiddleware:
    """
    Bound each HTTP request to settings.request_timeout_seconds.

    Runs the downstream app inside the timeout itself, so an expired request
    cancels the route coroutine; its session is closed and the open
    transaction rolled back before the 504 goes out.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await asyncio.wait_for(
                self.app(scope, receive, send_wrapper),
                timeout=settings.request_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("Request timed out: %s %s", scope.get("method"), scope.get("path"))
            if response_started:
                # Headers are already on the wire; all we can do is stop
                return
            response = _error(
                status.HTTP_504_GATEWAY_TIMEOUT,
                "Gateway Timeout",
                "The request took too long to complete",
            )
            await response(scope, receive, send)


def create_app() -> FastAPI:
    if settings.tracing_enabled:
        # Set up tracing before the app is created so all requests are instrumented
        setup_tracing()

    app = FastAPI(
        title="Social Profile API",
        description=(
            "Profiles, likes and follows with a paginated, "
            "viewer-annotated discovery feed."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(RequestTimeoutMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(ProfileServiceError, handle_service_error)
    app.add_exception_handler(SQLAlchemyError, handle_store_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)

    # ── Routers ────────────────────────────────────────────────────────────
    app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
    app.include_router(profiles.router, prefix="/api/profiles", tags=["Profiles"])
    app.include_router(feed.router, prefix="/api/feed", tags=["Feed"])
    app.include_router(upload.router, prefix="/api/upload", tags=["Upload"])

    # ── Prometheus metrics endpoint ────────────────────────────────────────
    # Mounted at /metrics — scraped by Prometheus
    app.mount("/metrics", make_asgi_app())

    # ── OTel FastAPI instrumentation ──────────────────────────────────────
    if settings.tracing_enabled:
        instrument_app(app)

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok", "service": settings.service_name}

    return app


app = create_app()
