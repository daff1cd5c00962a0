"""
Dashboard Package.

This package provides external visibility into predictions.

Modules:
- api: create_app (FastAPI application factory)
- routers/: health, games, stream
- schemas: pydantic response models
"""

from .api import create_app

__all__ = ["create_app"]
