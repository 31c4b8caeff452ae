"""Middleware and handler registration."""

from fastapi import FastAPI

from progression.config import Settings
from progression.middleware.cors import setup_cors
from progression.middleware.error_handler import setup_error_handlers
from progression.middleware.logging import setup_logging
from progression.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register middleware; Starlette runs the last added outermost, so CORS goes last."""
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
