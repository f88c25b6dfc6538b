"""
Core logic for the swim team manager.

This package is framework-agnostic - it doesn't import FastAPI, Snowflake,
or any infrastructure concerns. Attendance, calendars, seasons and result
aggregation are plain functions over domain models, so they can be tested
in isolation.
"""
