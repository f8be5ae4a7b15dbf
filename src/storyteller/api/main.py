import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storyteller.exceptions import StorytellerError

from .middleware import LoggingMiddleware, RateLimitMiddleware
from .settings import Settings, get_settings
from .summarize import router as summarize_router
from .tts import router as tts_router

logger = logging.getLogger(__name__)


async def storyteller_error_handler(request: Request, exc: StorytellerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    logger.info(f"{request.method} {request.url.path} rejected: {message}")
    return JSONResponse(status_code=400, content={"success": False, "error": message})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Server error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the API application for *settings* (environment settings by default)."""
    settings = settings or get_settings()

    app = FastAPI(title="Storyteller API", version="0.1.0")
    app.dependency_overrides[get_settings] = lambda: settings

    app.add_middleware(LoggingMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.rate_limit_max,
        window_seconds=settings.rate_limit_window_seconds,
    )
    # CORS must be outermost so rate-limited responses still carry the headers
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )

    app.add_exception_handler(StorytellerError, storyteller_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(summarize_router)
    app.include_router(tts_router)

    @app.get("/api/health", tags=["Utility"])
    async def health() -> dict:
        """Return service status and the active configuration snapshot."""
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "config": {
                "maxFileSize": f"{settings.max_file_size_mb:g}MB",
                "model": settings.openai_model,
                "ttsModel": settings.tts_model,
                "ttsVoice": settings.tts_voice,
                "rateLimit": {
                    "max": settings.rate_limit_max,
                    "windowSeconds": settings.rate_limit_window_seconds,
                },
            },
        }

    return app


settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
)

app = create_app(settings)
