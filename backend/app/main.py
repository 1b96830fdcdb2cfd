import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.config import Settings, get_settings
from app.errors import register_exception_handlers
from app.routers import analysis, health
from app.services.brand_service import BrandAnalysisService
from app.services.llm_provider import LLMProviderService
from app.services.rate_limit import RateLimiter
from app.services.report_store import ReportStore

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(settings: Settings) -> None:
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)
    if settings.log_file:
        root = logging.getLogger()
        if not any(getattr(h, "baseFilename", None) == settings.log_file for h in root.handlers):
            handler = logging.FileHandler(settings.log_file, encoding="utf-8")
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            root.addHandler(handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: make sure the report root exists
    app.state.report_store.ensure_root()
    settings = app.state.settings
    logger.info(
        f"{settings.app_name} {settings.app_version} started ({settings.environment}), "
        f"provider {settings.llm_provider}/{settings.llm_model}, reports in {app.state.report_store.root}"
    )
    if not settings.api_key:
        logger.warning("API_KEY is not set, every analysis request will be rejected")
    yield
    # Shutdown: release the provider client
    await app.state.llm_service.aclose()


def create_app(settings: Optional[Settings] = None, llm_service: Optional[LLMProviderService] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Brand visibility analysis for AI assistants, stored as plain-text reports",
        version=settings.app_version,
        lifespan=lifespan,
    )

    llm_service = llm_service or LLMProviderService(settings)
    store = ReportStore(settings.reports_path, app_name=settings.app_name, app_version=settings.app_version)
    app.state.settings = settings
    app.state.llm_service = llm_service
    app.state.report_store = store
    app.state.brand_service = BrandAnalysisService(llm_service, store, settings.save_error_reports)
    app.state.rate_limiter = RateLimiter(settings.rate_limit_max_requests, settings.rate_limit_window_seconds)
    app.state.started_at = time.monotonic()

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        duration = int((time.perf_counter() - started) * 1000)
        client = request.client.host if request.client else "unknown"
        logger.info(f"{request.method} {request.url.path} {response.status_code} {duration}ms {client}")
        return response

    register_exception_handlers(app, settings)

    # Include routers
    app.include_router(health.router, prefix="/api/health", tags=["Health"])
    app.include_router(analysis.router, prefix="/api/analysis", tags=["Analysis"])

    @app.get("/")
    async def root():
        return {
            "service": settings.app_name,
            "version": settings.app_version,
            "provider": settings.llm_provider,
            "model": settings.llm_model,
            "llm": llm_service.get_active_provider_info(),
            "reportsDirectory": str(store.root),
            "endpoints": {
                "health": "/api/health",
                "detailedHealth": "/api/health/detailed",
                "analysis": "/api/analysis",
                "help": "/api/analysis/help",
            },
        }

    return app


app = create_app()
