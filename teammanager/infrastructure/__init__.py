"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- snowflake: Team database (athletes, sessions, attendance, results)
- storage: Athlete portraits in object storage (R2/S3)

These wrappers translate between external formats and our domain models.
"""
