"""FastAPI app exposing batch generation and the paginated mind map listing."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from mindmapgen.api.auth import require_api_key
from mindmapgen.api.rate_limit import SlidingWindowRateLimiter, install_rate_limit
from mindmapgen.config import Settings, load_settings
from mindmapgen.errors import AppError, normalize_error
from mindmapgen.logging import configure_logging, get_logger, log_exception
from mindmapgen.orchestrator.runner import MindMapService, create_service

logger = get_logger(__name__)


class GenerationRequest(BaseModel):
    """Generation request. Paths default to the configured ones."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    input_csv_path: str | None = Field(default=None, alias="inputCsvPath")
    output_csv_path: str | None = Field(default=None, alias="outputCsvPath")
    max_concurrent: int | None = Field(default=None, ge=1, le=100, alias="maxConcurrent")
    batch_size: int | None = Field(default=None, ge=1, alias="batchSize")


def _service(request: Request) -> MindMapService:
    return request.app.state.service


def create_app(settings: Settings | None = None, service: MindMapService | None = None) -> FastAPI:
    """Create FastAPI app."""

    settings = settings or load_settings()
    configure_logging(settings.log_level)

    if not settings.api_auth_enabled:
        logger.warning("API_KEY not configured or too short; API security is disabled")

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            await app.state.service.init()
        except AppError as e:
            log_exception(logger, "Failed to initialize mind map service", error=e.message)
        yield

    app = FastAPI(title="Mind Map Generator", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.service = service or create_service(settings)
    if settings.rate_limit_max > 0:
        install_rate_limit(app, SlidingWindowRateLimiter(settings.rate_limit_max, settings.rate_limit_window_s))

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        level = logger.error if exc.status_code >= 500 else logger.warning
        level("[%s] %s", exc.name, exc.message, extra={"path": request.url.path, "status_code": exc.status_code})
        client_error = exc
        if exc.status_code >= 500 and settings.app_env == "prod":
            client_error = AppError("Internal Server Error", 500, True)
        return JSONResponse(
            status_code=exc.status_code,
            content=client_error.to_dict(include_details=settings.app_env == "dev"),
        )

    @app.get("/")
    def root() -> dict[str, str]:
        return {"status": "ok", "message": "Mind Map Generator API is running"}

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    router = APIRouter(prefix="/api/v1", dependencies=[Depends(require_api_key)])

    @router.get("/mindmaps")
    async def list_mind_maps(
        request: Request,
        limit: int = Query(default=100, ge=1),
        page_token: str | None = Query(default=None, alias="pageToken"),
    ) -> dict[str, Any]:
        page = await _service(request).get_all_mind_maps(page_token, limit)
        return page.model_dump(mode="json", by_alias=True, exclude_none=True)

    @router.post("/mindmaps/generate")
    async def generate_mind_maps(request: Request, body: GenerationRequest | None = None) -> dict[str, Any]:
        body = body or GenerationRequest()
        input_path = Path(body.input_csv_path) if body.input_csv_path else settings.input_csv_path
        output_path = Path(body.output_csv_path) if body.output_csv_path else settings.output_csv_path

        if not input_path.is_file():
            raise HTTPException(status_code=400, detail=f"Input CSV file not found: {input_path}")

        logger.info("API generation requested", extra={"input_path": str(input_path)})
        try:
            report = await _service(request).process_mind_maps(
                input_path,
                output_path,
                max_concurrent=body.max_concurrent or settings.max_concurrent,
                batch_size=body.batch_size or settings.batch_size,
            )
        except AppError:
            raise
        except Exception as e:
            raise normalize_error(e) from e
        return {"results": [o.model_dump(mode="json", exclude_none=True) for o in report]}

    app.include_router(router)
    return app
