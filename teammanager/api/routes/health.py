"""
Health endpoints.

- /health answers as long as the process is up and touches nothing else.
- /health/ready also checks configuration and runs a test query, and
  answers 503 when either fails so a load balancer stops sending traffic.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from ... import __version__
from ..dependencies import ReadinessConnectionDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    """Outcome of one readiness check."""
    name: str
    status: str  # "ok" or "error"
    error: Optional[str] = None


class ReadinessResponse(BaseModel):
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]


def _configuration_check(settings) -> ReadinessCheck:
    missing = settings.validate_required_fields()
    if missing:
        return ReadinessCheck(
            name="configuration",
            status="error",
            error="Unset: " + ", ".join(missing),
        )
    return ReadinessCheck(name="configuration", status="ok")


def _database_check(connection, mock_mode: bool) -> ReadinessCheck:
    if connection is None:
        return ReadinessCheck(name="database", status="error", error="Database connection failed")

    cursor = connection.cursor()
    try:
        cursor.execute("SELECT 1")
    except Exception as e:
        logger.error("Readiness query failed", extra={"error": str(e)})
        return ReadinessCheck(name="database", status="error", error=str(e))
    finally:
        cursor.close()

    return ReadinessCheck(
        name="database",
        status="ok",
        error="mock mode" if mock_mode else None,
    )


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Liveness",
    description="Always 200 while the process runs; no dependency is contacted.",
)
async def health_check(settings: SettingsDep) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=__version__,
        details={
            "mock_mode": {
                "snowflake": settings.snowflake_mock_mode,
                "r2": settings.r2_mock_mode,
            }
        }
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness",
    description="200 when configuration is complete and the database answers, 503 otherwise.",
    responses={
        503: {
            "description": "A readiness check failed",
            "model": ReadinessResponse,
        }
    },
)
async def readiness_check(
    response: Response,
    settings: SettingsDep,
    connection: ReadinessConnectionDep,
) -> ReadinessResponse:
    checks = [
        _configuration_check(settings),
        _database_check(connection, settings.snowflake_mock_mode),
    ]

    ready = all(check.status == "ok" for check in checks)
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning(
            "Not ready",
            extra={"failed_checks": [c.name for c in checks if c.status != "ok"]}
        )

    return ReadinessResponse(
        status="ready" if ready else "not_ready",
        version=__version__,
        checks=checks,
    )
