"""
Team manager configuration.

Settings are read from the environment (or a .env file). Snowflake and
portrait storage each have a mock mode so the API runs without either.
"""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
