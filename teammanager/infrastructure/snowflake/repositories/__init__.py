"""
Repository pattern implementations for Snowflake.

Repositories translate between domain models and database representations.
"""

from .athletes import AthleteRepository, SeasonRepository
from .attendance import AttendanceRepository, AttendanceSaveError
from .base import RepositoryError, SnowflakeConfig, SnowflakeConnection
from .results import ResultRepository
from .sessions import SessionNotFoundError, TrainingSessionRepository

__all__ = [
    "AthleteRepository",
    "AttendanceRepository",
    "AttendanceSaveError",
    "RepositoryError",
    "ResultRepository",
    "SeasonRepository",
    "SessionNotFoundError",
    "SnowflakeConfig",
    "SnowflakeConnection",
    "TrainingSessionRepository",
]
