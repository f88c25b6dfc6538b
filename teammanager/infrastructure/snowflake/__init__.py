"""
Snowflake integration: connection factory and repositories.
"""
