"""
Carbon Footprint Engine — Entry Point
=====================================
FastAPI application that computes GHG footprints per scope from activity
data and emission factors, reconciles them with reported totals, and
projects reduction scenarios.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import router as api_router
from config.settings import settings
from db.snowflake_client import init_tables
from utils.errors import CarbonError
from utils.helpers import setup_logger

logger = setup_logger(level=settings.LOG_LEVEL)


def create_app() -> FastAPI:
    """Application factory."""
    app = FastAPI(
        title="Carbon Footprint Engine",
        description="GHG footprint calculation, reconciliation and scenario projection",
        version="0.1.0",
    )

    # ── CORS (allow frontend origin) ──────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # tighten in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Register routers ──────────────────────────────────
    app.include_router(api_router, prefix="/api")

    # ── Domain errors → HTTP ──────────────────────────────
    @app.exception_handler(CarbonError)
    async def carbon_error_handler(request: Request, exc: CarbonError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        content = {"detail": exc.message}
        if exc.details:
            content["details"] = exc.details
        return JSONResponse(status_code=exc.status_code, content=content)

    # ── Startup events ────────────────────────────────────
    @app.on_event("startup")
    async def on_startup():
        """Initialize database tables on first run."""
        if settings.STORE_BACKEND == "snowflake":
            init_tables()

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
