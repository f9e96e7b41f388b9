from __future__ import annotations

import asyncio
import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from .analysis_service import FoodAnalysisService
from .provider_registry import ProviderKind, ProviderNotConfiguredError, ProviderNotFoundError
from .provider_transport import VisionProviderError
from .settings import Settings

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
}


class AnalyzeBody(BaseModel):
    imageData: str | None = None
    provider: str | None = None


def _error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message})


def create_app(
    settings: Settings | None = None,
    analysis_service: FoodAnalysisService | None = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    service = analysis_service or FoodAnalysisService.from_settings(settings)

    app = FastAPI(title="FoodVision AI", version="1.0.0")
    app.state.settings = settings
    app.state.analysis_service = service

    @app.middleware("http")
    async def log_and_harden(request: Request, call_next):
        logger.info("%s %s", request.method, request.url.path)
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', 'invalid')}"
            for error in exc.errors()
        )
        return _error_response(400, "Invalid request", problems or "Request body is invalid")

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return _error_response(404, "Not found", f"Route {request.url.path} not found")
        detail = str(exc.detail)
        return _error_response(exc.status_code, detail, detail)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error_response(500, "Internal server error", str(exc))

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/api/config")
    async def get_api_config():
        return {
            "geminiApiKey": settings.gemini_api_key,
            "perplexityApiKey": settings.perplexity_api_key,
            "defaultProvider": settings.default_provider,
        }

    @app.get("/api/providers")
    async def list_providers():
        return service.list_providers()

    @app.get("/api/test-perplexity")
    async def check_perplexity_connectivity():
        return await _probe_provider(ProviderKind.PERPLEXITY)

    @app.get("/api/test-gemini")
    async def check_gemini_connectivity():
        return await _probe_provider(ProviderKind.GEMINI)

    @app.post("/api/analyze")
    async def analyze_food(body: AnalyzeBody):
        image_data = (body.imageData or "").strip()
        if not image_data:
            return _error_response(400, "Missing image data", "Image data is required for analysis")

        try:
            descriptor = service.registry.lookup(body.provider or settings.default_provider)
        except ProviderNotFoundError as exc:
            return _error_response(400, "Unsupported provider", str(exc))

        if not settings.demo_fallback and not service.registry.is_configured(descriptor.id):
            return _error_response(
                400,
                f"{descriptor.label} API key not configured",
                f"Please set a valid {descriptor.label} API key in environment variables",
            )

        try:
            result = await asyncio.to_thread(service.analyze, descriptor.id, image_data)
        except Exception as exc:
            logger.exception("Analysis failed")
            return _error_response(500, "Analysis failed", str(exc))
        return result.to_dict()

    async def _probe_provider(kind: ProviderKind):
        try:
            return await asyncio.to_thread(service.check_connectivity, kind.value)
        except ProviderNotConfiguredError as exc:
            return _error_response(400, "API key not configured", str(exc))
        except VisionProviderError as exc:
            logger.error("%s API test failed: %s", kind.value, exc)
            return _error_response(500, "API test failed", str(exc))

    if settings.static_dir.is_dir():
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")

    return app


app = create_app()


async def _serve(settings: Settings) -> None:
    application = create_app(settings)
    configs = [
        uvicorn.Config(application, host="0.0.0.0", port=settings.http_port, log_level=settings.log_level),
    ]
    if settings.ssl_keyfile.is_file() and settings.ssl_certfile.is_file():
        configs.append(
            uvicorn.Config(
                application,
                host="0.0.0.0",
                port=settings.https_port,
                ssl_keyfile=str(settings.ssl_keyfile),
                ssl_certfile=str(settings.ssl_certfile),
                log_level=settings.log_level,
            )
        )
        logger.info("HTTPS server enabled on https://localhost:%s", settings.https_port)
    else:
        logger.warning(
            "SSL certificates not found at %s / %s; HTTPS server not started. "
            "Mobile camera access requires HTTPS.",
            settings.ssl_keyfile,
            settings.ssl_certfile,
        )

    logger.info("FoodVision AI server running on http://localhost:%s", settings.http_port)
    await asyncio.gather(*(uvicorn.Server(config).serve() for config in configs))


def run() -> None:
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(_serve(settings))


if __name__ == "__main__":
    run()
