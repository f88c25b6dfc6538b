"""
FastAPI dependency injection.

Dependencies provide repositories, clients, and configuration to route
handlers. Routes never open connections themselves, so tests can swap
any of these out.

All repositories of one request share a single Snowflake connection:
FastAPI caches `get_snowflake_connection` per request, and the
repository dependencies all depend on it.
"""

import logging
from typing import Annotated, Generator, Optional

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from ..config.settings import Settings, get_settings
from ..infrastructure.snowflake.client import (
    MockSnowflakeConnection,
    SnowflakeConnectionError,
    create_snowflake_connection,
)
from ..infrastructure.snowflake.repositories import (
    AthleteRepository,
    AttendanceRepository,
    ResultRepository,
    SeasonRepository,
    SnowflakeConfig,
    SnowflakeConnection,
    TrainingSessionRepository,
)
from ..infrastructure.storage.client import StorageClient, StorageConfig, create_storage_client

logger = logging.getLogger(__name__)

# API Key security scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# In-memory stand-ins, created on first use and shared by every request
_mock_storage_client = None
_mock_snowflake_connection = None


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def verify_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: str = Security(api_key_header),
) -> str:
    """
    Check the X-API-Key header against the configured keys.

    Missing and unknown keys both get 403.
    """
    if not api_key:
        logger.warning("Rejected request without API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Missing X-API-Key header",
        )

    if api_key not in settings.api_keys_list:
        logger.warning(
            "Invalid API key attempt",
            extra={"key_prefix": api_key[:8]}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    return api_key


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

def get_mock_snowflake_connection() -> MockSnowflakeConnection:
    """The process-wide mock connection, created on first use."""
    global _mock_snowflake_connection

    if _mock_snowflake_connection is None:
        _mock_snowflake_connection = MockSnowflakeConnection()
        logger.info("Created shared mock Snowflake connection")
    return _mock_snowflake_connection


def get_snowflake_connection(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Generator[SnowflakeConnection, None, None]:
    """
    Provide a Snowflake connection for the duration of a request.

    Mock mode hands out one shared in-memory connection, so data written
    by one request is visible to the next.
    """
    if settings.snowflake_mock_mode:
        yield get_mock_snowflake_connection()
        return

    config = SnowflakeConfig(
        account=settings.snowflake_account,
        user=settings.snowflake_user,
        password=settings.snowflake_password or None,
        private_key_path=settings.snowflake_private_key_path,
        private_key_base64=settings.snowflake_private_key_base64,
        database=settings.snowflake_database,
        schema=settings.snowflake_schema,
        warehouse=settings.snowflake_warehouse,
        role=settings.snowflake_role,
    )

    with create_snowflake_connection(config=config) as conn:
        yield conn


def get_readiness_connection(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Generator[Optional[SnowflakeConnection], None, None]:
    """
    Same connection as get_snowflake_connection, or None when it cannot
    be opened, so the readiness check reports the outage itself.
    """
    connections = get_snowflake_connection(settings)
    try:
        conn = next(connections)
    except SnowflakeConnectionError as e:
        logger.error("Readiness check could not connect", extra={"error": str(e)})
        yield None
        return

    try:
        yield conn
    finally:
        connections.close()


ConnectionDep = Annotated[SnowflakeConnection, Depends(get_snowflake_connection)]


def get_athlete_repository(conn: ConnectionDep) -> AthleteRepository:
    return AthleteRepository(conn)


def get_season_repository(conn: ConnectionDep) -> SeasonRepository:
    return SeasonRepository(conn)


def get_session_repository(conn: ConnectionDep) -> TrainingSessionRepository:
    return TrainingSessionRepository(conn)


def get_attendance_repository(conn: ConnectionDep) -> AttendanceRepository:
    return AttendanceRepository(conn)


def get_result_repository(conn: ConnectionDep) -> ResultRepository:
    return ResultRepository(conn)


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

def get_storage_client(
    settings: Annotated[Settings, Depends(get_settings)],
) -> StorageClient:
    """
    Portrait storage: R2, or one shared in-memory client in mock mode.
    """
    global _mock_storage_client

    if settings.r2_mock_mode:
        if _mock_storage_client is None:
            _mock_storage_client = create_storage_client(mock_mode=True)
            logger.info("Created shared mock storage client")
        return _mock_storage_client

    config = StorageConfig(
        access_key_id=settings.r2_access_key_id,
        secret_access_key=settings.r2_secret_access_key,
        bucket_name=settings.r2_bucket_name,
        endpoint_url=settings.r2_endpoint,
    )
    return create_storage_client(config=config)


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

AuthenticatedUser = Annotated[str, Depends(verify_api_key)]
AthleteRepositoryDep = Annotated[AthleteRepository, Depends(get_athlete_repository)]
SeasonRepositoryDep = Annotated[SeasonRepository, Depends(get_season_repository)]
SessionRepositoryDep = Annotated[TrainingSessionRepository, Depends(get_session_repository)]
AttendanceRepositoryDep = Annotated[AttendanceRepository, Depends(get_attendance_repository)]
ResultRepositoryDep = Annotated[ResultRepository, Depends(get_result_repository)]
StorageClientDep = Annotated[StorageClient, Depends(get_storage_client)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
ReadinessConnectionDep = Annotated[Optional[SnowflakeConnection], Depends(get_readiness_connection)]
