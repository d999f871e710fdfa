"""Common utilities for the FastAPI server."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from fastapi import Request

logger = logging.getLogger(__name__)

# Client libraries that log every HTTP round trip at INFO.
NOISY_LOGGERS = ("httpx", "httpcore", "openai")


def setup_rich_logging(log_level: str = "info", *, console: Console | None = None) -> None:
    """Configure logging to use Rich for consistent, pretty output.

    This configures:
    - All Python loggers to use RichHandler
    - Uvicorn's loggers to use the same format
    - HTTP client loggers at WARNING so model calls don't flood the log

    Args:
        log_level: Logging level (debug, info, warning, error).
        console: Optional Rich console to use (creates new one if not provided).

    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    handler = RichHandler(
        console=console or Console(),
        show_time=True,
        show_level=True,
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for uvicorn_logger_name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        uvicorn_logger = logging.getLogger(uvicorn_logger_name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.addHandler(handler)
        uvicorn_logger.setLevel(level)
        uvicorn_logger.propagate = False

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


async def log_requests_middleware(
    request: Request,
    call_next: Any,
) -> Any:
    """Log each HTTP request and warn on error responses.

    Use with FastAPI's ``@app.middleware("http")`` decorator.
    """
    client_ip = request.client.host if request.client else "unknown"
    logger.info("%s %s from %s", request.method, request.url.path, client_ip)

    response = await call_next(request)

    if response.status_code >= 400:  # noqa: PLR2004
        logger.warning(
            "Request failed: %s %s -> %d",
            request.method,
            request.url.path,
            response.status_code,
        )

    return response
