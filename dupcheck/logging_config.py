"""Logging configuration using Loguru.

Log lines carry the request id and pipeline component bound by
`get_request_logger`, so one evaluation can be followed across the
classifier, the oracle and the orchestrator.
"""

import inspect
import sys
import time
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Optional
from loguru import logger


# Remove default handler
logger.remove()

LINE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line}{extra[context]} | {message}"


def _with_context(record) -> bool:
    """Render bound request id / component as a ` | rid | component` suffix."""
    extra = record["extra"]
    parts = [str(extra[key]) for key in ("request_id", "component") if key in extra]
    extra["context"] = "".join(f" | {part}" for part in parts)
    return True


def setup_logging(
    log_dir: str = "logs",
    level: str = "INFO",
    json_logs: bool = False,
    rotation: str = "100 MB",
    retention: str = "30 days",
    compression: str = "zip"
) -> None:
    """Install the console, application and error sinks.

    Args:
        log_dir: Directory for log files
        level: Minimum log level for console and application log
        json_logs: Write the application log as JSON lines instead of text
        rotation: When to rotate log files
        retention: How long to keep old logs
        compression: Compression format for rotated logs
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    logger.remove()

    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
               "<cyan>{name}</cyan>{extra[context]} | <level>{message}</level>",
        level=level,
        colorize=True,
        filter=_with_context
    )

    if json_logs:
        logger.add(
            log_path / "dupcheck_{time}.jsonl",
            level=level,
            rotation=rotation,
            retention=retention,
            compression=compression,
            serialize=True
        )
    else:
        logger.add(
            log_path / "dupcheck_{time}.log",
            format=LINE_FORMAT,
            level=level,
            rotation=rotation,
            retention=retention,
            compression=compression,
            filter=_with_context
        )

    # Oracle failures and rejected requests end up here regardless of level
    logger.add(
        log_path / "errors_{time}.log",
        format=LINE_FORMAT,
        level="WARNING",
        rotation=rotation,
        retention=retention,
        compression=compression,
        filter=_with_context
    )

    logger.info("Logging system initialized", log_dir=log_dir, level=level, json_logs=json_logs)


def get_request_logger(request_id: str, component: Optional[str] = None):
    """Get a logger bound to a specific evaluation request and optionally a component.

    Args:
        request_id: Unique evaluation request identifier
        component: Optional pipeline component name

    Returns:
        Logger instance with request context
    """
    context = {"request_id": request_id}
    if component:
        context["component"] = component
    return logger.bind(**context)


def log_component_execution(component: str) -> Callable:
    """Decorator to log a pipeline component call with timing.

    Args:
        component: Name of the component being executed

    Returns:
        Decorated function with logging
    """
    def decorator(func: Callable) -> Callable:
        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs) -> Any:
                request_logger = get_request_logger(kwargs.get("request_id") or "unknown", component)
                start_time = time.time()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    request_logger.error(
                        f"{component} failed with error",
                        function=func.__name__,
                        error=str(e),
                        error_type=type(e).__name__
                    )
                    raise
                request_logger.debug(
                    f"{component} completed",
                    function=func.__name__,
                    duration_seconds=round(time.time() - start_time, 3)
                )
                return result

            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            request_logger = get_request_logger(kwargs.get("request_id") or "unknown", component)
            start_time = time.time()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                request_logger.error(
                    f"{component} failed with error",
                    function=func.__name__,
                    error=str(e),
                    error_type=type(e).__name__
                )
                raise
            request_logger.debug(
                f"{component} completed",
                function=func.__name__,
                duration_seconds=round(time.time() - start_time, 3)
            )
            return result

        return wrapper
    return decorator


def log_tool_execution(tool_name: str) -> Callable:
    """Decorator to log tool execution.

    Args:
        tool_name: Name of the tool being executed

    Returns:
        Decorated function with logging
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            logger.debug(f"Executing tool: {tool_name}", function=func.__name__)

            try:
                result = func(*args, **kwargs)
                logger.debug(f"Tool {tool_name} completed", function=func.__name__)
                return result

            except Exception as e:
                logger.error(
                    f"Tool {tool_name} failed",
                    function=func.__name__,
                    error=str(e),
                    error_type=type(e).__name__
                )
                raise

        return wrapper
    return decorator
