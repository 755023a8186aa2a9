"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from reelforge.core.config import settings
from reelforge.core.logging import log_error, setup_logging
from reelforge.core.metrics import get_content_type, get_metrics, set_app_info
from reelforge.core.middleware import (
    CorrelationIdMiddleware,
    MetricsMiddleware,
    RequestLoggingMiddleware,
)
from reelforge.dependencies import get_profiles, get_project_store
from reelforge.modules.project.router import router as project_router
from reelforge.modules.transcoding.router import router as transcoding_router

logger = logging.getLogger(__name__)

API_PREFIX = "/api"


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Fail fast on a broken profile file and make sure the store root exists
    profiles = get_profiles()
    store = get_project_store()
    store.ensure_root()
    logger.info(
        f"{settings.PROJECT_NAME} listening on http://{settings.HOST}:{settings.PORT}",
        extra={"storage_root": str(store.root), "profiles": list(profiles)},
    )
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="""
## Reelforge Video Converter

Upload source videos, keep each upload as a project on disk and render
resized, re-encoded copies of it with ffmpeg.

* **Projects** - upload, list and inspect sources with their render history
* **Conversion** - named profiles or explicit width/height/crf/format/fps
* **Media** - sources and renders served read-only under `/media/input`
    """,
    openapi_tags=[
        {
            "name": "health",
            "description": "Health check endpoints",
        },
        {
            "name": "projects",
            "description": "Upload sources, list projects and render history",
        },
        {
            "name": "conversion",
            "description": "Conversion profiles and ffmpeg renders",
        },
    ],
    lifespan=lifespan,
)

setup_logging(
    level=settings.LOG_LEVEL if not settings.DEBUG else "DEBUG",
    json_format=settings.LOG_JSON,
    include_stack_trace=True,
)

set_app_info(
    version=settings.VERSION,
    environment="development" if settings.DEBUG else "production",
)

if settings.CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(MetricsMiddleware)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log_error(logger, "Unexpected server error", exc, path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Unexpected server error"},
    )


@app.get(f"{API_PREFIX}/health", tags=["health"])
async def health_check() -> dict[str, bool]:
    """Health check endpoint."""
    return {"ok": True}


@app.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Prometheus metrics."""
    return Response(content=get_metrics(), media_type=get_content_type())


# Include routers
app.include_router(project_router, prefix=API_PREFIX)
app.include_router(transcoding_router, prefix=API_PREFIX)

# Sources and renders, read-only
app.mount(
    settings.MEDIA_URL_PREFIX,
    StaticFiles(directory=settings.STORAGE_ROOT, check_dir=False),
    name="media",
)


def run() -> None:
    import uvicorn

    uvicorn.run("reelforge.main:app", host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
