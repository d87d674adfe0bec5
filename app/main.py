# path: road-marking-api/app/main.py

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional
import logging

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes.routes import health, router as routes_router
from app.config import Settings
from app.models.route_models import AnalyzeResponse
from app.services.analyzer import AnalyzerService
from app.services.errors import UpstreamError
from app.services.inference_client import InferenceClient
from app.services.route_repository import RouteRepository
from app.services.route_service import RouteService
from app.services.video_storage import VideoStorage

log = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


async def upstream_error_handler(request: Request, exc: UpstreamError) -> JSONResponse:
    log.error("Analysis failed: %s", exc)
    body = AnalyzeResponse(status="error", message=f"Road marking analysis failed: {exc}")
    return JSONResponse(status_code=502, content=body.model_dump(mode="json"))


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        repository = RouteRepository(settings.database_path)
        await repository.init_db()
        storage = VideoStorage(settings.static_dir)
        inference = InferenceClient(
            settings.inference_base_url,
            timeout_seconds=settings.inference_timeout_seconds,
            mode=settings.inference_mode,
            transport=transport,
        )
        route_service = RouteService(repository, storage)

        app.state.settings = settings
        app.state.inference_client = inference
        app.state.route_service = route_service
        app.state.analyzer = AnalyzerService(inference, route_service)
        log.info("Road marking API ready (inference %s, mode %s)",
                 settings.inference_base_url, settings.inference_mode)

        yield

        await inference.aclose()
        log.info("Shutting down")

    app = FastAPI(title="road-marking-api", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(UpstreamError, upstream_error_handler)
    app.include_router(routes_router)
    app.add_api_route("/health", health, methods=["GET"], tags=["health"])
    return app


def main() -> None:
    settings = Settings.from_env()
    uvicorn.run(create_app(settings), host=settings.server_host, port=settings.server_port)


if __name__ == "__main__":
    main()
