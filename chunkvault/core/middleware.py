"""
@file: middleware.py
@description:
This module configures and centralizes middleware for the FastAPI application.

The middleware components include:
- CORS configuration: Controls which domains can access the API
- Request logging: Logs information about each request and its processing time

@dependencies:
- fastapi: For CORSMiddleware
- starlette: For BaseHTTPMiddleware
- chunkvault.core.config: For application settings
- chunkvault.core.logger: For structured logging

@notes:
- CORS is open outside production; production uses settings.CORS_ORIGINS
- Streaming responses are logged when headers are sent, not when the
  body finishes, so the logged time excludes the transfer itself
"""

import time
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from chunkvault.core.config import settings
from chunkvault.core.logger import log_request_details, setup_logger

# Create a component-specific logger
logger = setup_logger("chunkvault.core.middleware")


def setup_cors(app: FastAPI) -> None:
    """
    Configure CORS middleware for the FastAPI application.

    In development mode, this allows all origins, headers, and methods.
    In production, only the origins listed in settings are allowed.

    Args:
        app: The FastAPI application instance
    """
    origins = ["*"]
    if settings.APP_ENV == "production":
        origins = list(settings.CORS_ORIGINS)

    logger.info(f"Setting up CORS middleware with origins: {origins}")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["Content-Range", "Accept-Ranges", "Content-Length"],
        max_age=86400,  # 24 hours cache for preflight requests
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for logging API requests and their processing time.

    This logs the HTTP method, URL, status code and processing time
    of each request.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        log_request_details(logger, request, process_time, response.status_code)
        return response


def setup_request_logging(app: FastAPI) -> None:
    """
    Add request logging middleware to the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    logger.info("Setting up request logging middleware")
    app.add_middleware(RequestLoggingMiddleware)


def setup_all_middleware(app: FastAPI) -> None:
    """
    Configure and add all middleware to the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    setup_cors(app)
    setup_request_logging(app)
