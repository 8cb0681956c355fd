"""
Logging setup and helpers for Kawaii Bot.

Standard library logging goes either to stdout as one JSON object per line
(``LOG_FORMAT=json``, the default for deployments) or through a rich console
handler (``LOG_FORMAT=text``). structlog is configured to match, so modules
log with ``get_logger(__name__)`` and keyword context.

Helpers cover the bot's outbound HTTP traffic (image APIs and the daily
webhook), timed operations such as a daily delivery, and Discord events.
Webhook tokens never reach the logs: URLs pass through ``mask_webhook_url``.
"""

import json
import logging
import sys
import time
import uuid
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Dict, Iterator, Optional
from urllib.parse import urlparse

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from kawaii_bot.config import LoggingConfig


# Third-party loggers and the level they are capped at
QUIET_LOGGERS = {
    "discord": logging.WARNING,
    "discord.http": logging.WARNING,
    "discord.gateway": logging.INFO,
    "discord.webhook": logging.WARNING,
    "aiohttp": logging.WARNING,
    "asyncio": logging.WARNING,
}

# structlog keys that are rendered elsewhere in text mode
_TEXT_HIDDEN_KEYS = {"timestamp", "level", "filename", "lineno"}


def setup_logging(config: "LoggingConfig") -> None:
    """
    Configure stdlib logging and structlog from ``config``.

    Safe to call more than once; existing root handlers are replaced.

    Args:
        config: Logging configuration settings

    Example:
        ```python
        setup_logging(load_config().logging)
        get_logger(__name__).info("Bot starting", trigger_hour=5)
        ```
    """
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(config.level)

    json_output = config.format == "json"
    handler = _json_handler() if json_output else _rich_handler()
    handler.setLevel(config.level)
    root.addHandler(handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.CallsiteParameterAdder(
                parameters=[structlog.processors.CallsiteParameter.FILENAME,
                            structlog.processors.CallsiteParameter.LINENO]
            ),
            _render_json if json_output else _render_text,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, config.level)
        ),
        logger_factory=structlog.WriteLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def _json_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(
        fmt='{"timestamp": "%(asctime)s", "level": "%(levelname)s", '
            '"logger": "%(name)s", "message": "%(message)s"}',
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    ))
    return handler


def _rich_handler() -> logging.Handler:
    return RichHandler(
        console=Console(force_terminal=True, width=120),
        show_time=True,
        show_level=True,
        show_path=True,
        markup=True,
        rich_tracebacks=True,
    )


def _render_json(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> str:
    return json.dumps(event_dict, default=str)


def _render_text(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> str:
    """Render ``<timestamp> [LEVEL] message (key=value, ...)``."""
    message = event_dict.pop("event", "")
    level = event_dict.get("level", "info").upper()

    context = ", ".join(
        f"{key}={value}"
        for key, value in event_dict.items()
        if key not in _TEXT_HIDDEN_KEYS
    )
    if context:
        message += f" ({context})"

    return f"{event_dict.get('timestamp', '')} [{level}] {message}"


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    """Return a structlog logger, usually ``get_logger(__name__)``."""
    return structlog.get_logger(name)


def get_service_logger(service_name: str) -> structlog.BoundLogger:
    """
    Return a logger bound to one external service.

    Args:
        service_name: ``nekos``, ``waifu``, ``webhook`` or ``discord``
    """
    return get_logger(f"service.{service_name}").bind(service=service_name)


def log_function_call(func_name: str, **kwargs: Any) -> None:
    """Debug-log a command or client call with its arguments."""
    get_logger().debug("Function called", function=func_name, **kwargs)


def log_error(error: Exception, context: Optional[Dict[str, Any]] = None) -> None:
    """
    Log an unexpected exception with its type and extra context.

    Example:
        ```python
        log_error(error, {"command": "waifu", "user_id": ctx.author.id})
        ```
    """
    get_logger().error(
        "Exception occurred",
        error_type=type(error).__name__,
        error_message=str(error),
        **(context or {}),
    )


def generate_correlation_id() -> str:
    """Short random id that ties the log lines of one request together."""
    return uuid.uuid4().hex[:8]


def mask_webhook_url(url: str) -> str:
    """Hide the token part of a Discord webhook URL for display and logs."""
    parsed = urlparse(url)
    parts = parsed.path.rstrip("/").split("/")
    if "webhooks" in parts[:-1]:
        parts[-1] = "***"
    return f"{parsed.scheme}://{parsed.netloc}{'/'.join(parts)}"


def log_http_request(
    method: str,
    url: str,
    params: Optional[Dict[str, Any]] = None,
    service: str = "unknown",
    correlation_id: Optional[str] = None
) -> None:
    """
    Log an outgoing HTTP request.

    Args:
        method: HTTP method
        url: Request URL; a webhook token in the path is masked
        params: Query parameters
        service: ``nekos``, ``waifu`` or ``webhook``
        correlation_id: Id shared with the matching response line
    """
    parsed_url = urlparse(mask_webhook_url(url))

    get_service_logger(service).info(
        "HTTP request initiated",
        method=method,
        host=parsed_url.netloc,
        path=parsed_url.path,
        params=params or {},
        correlation_id=correlation_id or "none",
    )


def log_http_response(
    status_code: int,
    response_time_ms: float,
    response_size: Optional[int] = None,
    error: Optional[str] = None,
    service: str = "unknown",
    correlation_id: Optional[str] = None
) -> None:
    """
    Log the outcome of an HTTP request.

    Status 0 means no response arrived (connection error or timeout) and is
    logged as an error, like 5xx. Other 4xx responses are warnings.
    """
    if status_code == 0 or status_code >= 500:
        level = "error"
    elif status_code >= 400:
        level = "warning"
    else:
        level = "info"

    details: Dict[str, Any] = {
        "status_code": status_code,
        "response_time_ms": round(response_time_ms, 2),
        "correlation_id": correlation_id or "none",
    }
    if response_size is not None:
        details["response_size_bytes"] = response_size
    if error:
        details["error"] = error

    message = "HTTP request failed" if error else "HTTP response received"
    getattr(get_service_logger(service), level)(message, **details)


@contextmanager
def log_operation_timing(
    operation: str,
    logger: Optional[structlog.BoundLogger] = None,
    **context: Any,
) -> Iterator[Dict[str, Any]]:
    """
    Log the start, duration and outcome of an operation.

    The yielded dict is logged with the completion line, so the body can
    add results to it. Exceptions are logged and re-raised.

    Example:
        ```python
        with log_operation_timing("daily_delivery", logger, providers=["nekos"]) as result:
            pictures = await fetch()
            result["picture_count"] = len(pictures)
        ```
    """
    logger = logger or get_logger()
    result: Dict[str, Any] = {}
    start = time.monotonic()

    logger.info(f"Starting {operation}", operation=operation, **context)
    try:
        yield result
    except Exception as e:
        logger.error(
            f"Failed {operation}",
            operation=operation,
            duration_ms=round((time.monotonic() - start) * 1000, 2),
            error_type=type(e).__name__,
            error_message=str(e),
            **context,
        )
        raise

    logger.info(
        f"Completed {operation}",
        operation=operation,
        duration_ms=round((time.monotonic() - start) * 1000, 2),
        **context,
        **result,
    )


def log_discord_event(event_type: str, **context: Any) -> None:
    """Log a Discord gateway or command event on the ``discord`` service logger."""
    get_service_logger("discord").info(
        f"Discord event: {event_type}",
        event_type=event_type,
        **context,
    )
