"""Core backend infrastructure for the RefZone backend.

This package contains configuration, logging, database, and dependency helpers
used by the FastAPI application entrypoint.
"""
