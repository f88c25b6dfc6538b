"""
Builds the team manager FastAPI app.

`create_app` wires settings, middleware, routers and error handlers;
tests call it directly and override dependencies on the result.

For local development:
    uvicorn teammanager.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import athletes, attendance, calendar, health, results
from .config.settings import get_settings
from .core.seasons import SeasonNotFoundError
from .infrastructure.snowflake.client import SnowflakeConnectionError
from .infrastructure.snowflake.repositories import RepositoryError

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Logs startup configuration and warns about missing settings.
    """
    settings = get_settings()

    logger.info(
        "Swim Team Manager API starting",
        extra={
            "version": settings.api_version,
            "mock_mode": {
                "snowflake": settings.snowflake_mock_mode,
                "r2": settings.r2_mock_mode,
            }
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Configuration incomplete",
            extra={"missing_fields": missing_fields}
        )

    yield

    logger.info("Swim Team Manager API shutting down")


def create_app() -> FastAPI:
    """Build the app from the current settings."""
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Swim team management: attendance, training calendars and race results.

        ## Authentication

        All endpoints except the health checks require an API key provided
        in the `X-API-Key` header.

        ## Areas

        - **Athletes**: team list with portraits
        - **Calendar**: monthly session calendar and individual attendance calendar
        - **Attendance**: per-session sheets, season summaries and monthly trends
        - **Results**: permillili ranking, personal bests, progress and meets
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        athletes.router,
        prefix="/api/v1/athletes",
        tags=["Athletes"],
    )

    app.include_router(
        calendar.router,
        prefix="/api/v1/calendar",
        tags=["Calendar"],
    )

    app.include_router(
        attendance.router,
        prefix="/api/v1/attendance",
        tags=["Attendance"],
    )

    app.include_router(
        results.router,
        prefix="/api/v1/results",
        tags=["Results"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        """Where to find the docs and health checks."""
        return {
            "message": "Swim Team Manager API",
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(SeasonNotFoundError)
    async def season_not_found_handler(request: Request, exc: SeasonNotFoundError):
        logger.warning(
            "Season not resolved",
            extra={"path": request.url.path, "error": str(exc)}
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": str(exc)},
        )

    @app.exception_handler(RepositoryError)
    @app.exception_handler(SnowflakeConnectionError)
    async def data_source_error_handler(request: Request, exc: Exception):
        """
        The database failed or was unreachable.

        Nothing is retried and no partial data is returned.
        """
        logger.error(
            "Data source error",
            extra={"path": request.url.path, "error": str(exc)}
        )
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"detail": str(exc)},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Anything unhandled: logged with its traceback, reported as a bare 500.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "Internal server error"
            }
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "teammanager.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
