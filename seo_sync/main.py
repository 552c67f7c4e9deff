"""
SEO Integrations Sync
Main FastAPI application
"""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError

from seo_sync.config import get_settings
from seo_sync.utils.logger import log
from seo_sync import __version__

from seo_sync.api import health, integrations

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    log.info(f"Starting {settings.app_name} v{__version__}")
    log.info(f"Environment: {settings.environment}")

    try:
        from seo_sync.models.base import init_db
        init_db()
        log.info("Database initialized")
    except SQLAlchemyError as e:
        log.error(f"Database initialization error: {str(e)}")

    from seo_sync.scheduler import start_scheduler, stop_scheduler
    if settings.scheduler_enabled:
        start_scheduler()

    yield

    stop_scheduler()
    log.info("Shutting down application")


app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="""
    OAuth connections and data sync for SEO dashboard projects

    - Connect Google Search Console and GA4 per project
    - Refresh tokens transparently before every provider call
    - Idempotent daily and on-demand metric sync
    """,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "error": "invalid_request",
            "detail": [
                {"loc": list(err.get("loc", [])), "msg": err.get("msg")}
                for err in exc.errors()
            ],
        },
    )


app.include_router(health.router, tags=["health"])
app.include_router(integrations.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("seo_sync.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
