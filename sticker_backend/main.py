"""FastAPI application entry point.

Sticker Backend - custom-priced sticker variants and checkout for a Shopify
storefront.
"""

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from sticker_backend.routes import api_router
from sticker_backend.services.errors import ConfigurationError, ValidationError
from sticker_backend.services.shopify_client import RemoteError, ShopifyAdminClient
from sticker_backend.settings import get_settings

logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Builds the Shopify client once from settings and closes it on shutdown.
    """
    # Startup
    settings = get_settings()
    missing = settings.missing_shopify_config()
    if missing:
        # Keep serving /health; Shopify-backed routes answer 500 until fixed.
        logger.error(f"Missing env: {', '.join(missing)}")
    app.state.catalog_client = ShopifyAdminClient(settings)

    yield

    # Shutdown
    client = getattr(app.state, "catalog_client", None)
    if client is not None:
        await client.close()


def _error_response(status_code: int, error: str, details: object = None) -> JSONResponse:
    content: dict[str, object] = {"error": error}
    if details is not None:
        content["details"] = jsonable_encoder(details)
    return JSONResponse(status_code=status_code, content=content)


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Custom sticker variants and draft-order checkout for Shopify",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # CORS middleware (storefront theme runs on the shop's own domain)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return _error_response(400, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Malformed request bodies are caller errors: 400, same shape as ours."""
        return _error_response(400, "Invalid request", exc.errors())

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
        logger.error(str(exc))
        return _error_response(500, str(exc))

    @app.exception_handler(RemoteError)
    async def remote_error_handler(request: Request, exc: RemoteError) -> JSONResponse:
        logger.error(f"Shopify error on {request.url.path}: kind={exc.kind.value} {exc.message}")
        return _error_response(500, exc.message, exc.details)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error_response(exc.status_code, str(exc.detail))

    # Exception handler for structured error format
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler returning structured error format."""
        logger.exception(f"Unhandled error on {request.url.path}")
        return _error_response(500, str(exc) if settings.debug else "Internal server error")

    @app.get("/", response_class=PlainTextResponse, include_in_schema=False)
    async def index() -> str:
        return "Sticker Calculator Backend is Running."

    # Health check endpoint
    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, bool]:
        """Health check endpoint."""
        return {"ok": True}

    # Include API routes
    app.include_router(api_router)

    return app


# Application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "sticker_backend.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
