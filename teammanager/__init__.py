"""
Swim Team Manager: attendance, training calendars and race results.

Layers, innermost first:
- core: domain models and the pure attendance, calendar and result logic
- infrastructure: Snowflake repositories and portrait storage
- api: FastAPI routes and their dependencies
- config: settings read from the environment
"""

__version__ = "0.1.0"
