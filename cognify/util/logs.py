import sys
import time
from functools import wraps
from typing import Any, Literal

import loguru

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def get_logger(name: str) -> Any:
    """Get a logger instance for the given module name.

    Args:
        name: Name of the module to get the logger for.
    Returns:
        Logger instance.
    """
    return loguru.logger.bind(module=name)


def setup_logging(level: LogLevel = "INFO", log_dir: str = "logs") -> None:
    """Configure application logging.

    Installs a stderr logger and a daily-rotated file logger using loguru.
    The console sink goes to stderr so it does not interleave with the
    tutor's printed replies.

    Args:
        level: Logging level to set for handlers.
        log_dir: Directory for the rotated log files.
    """
    loguru.logger.remove()
    loguru.logger.add(sink=sys.stderr, level=level)
    loguru.logger.add(
        sink=f"{log_dir}/{time.strftime('%Y-%m-%d')}.log",
        level=level,
        rotation="00:00",
    )


def log_function_duration(name: str | None = None):
    """
    Decorator to log the duration of a function call.

    Args:
        name (str, optional): Name to use in the log message.
            If not provided, the function's name will be used.

    Example usage:
        @log_function_duration(name="complete")
        def complete(prompt):
            ...

    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            func_logger = get_logger(func.__module__)
            func_name = func.__name__ if name is None else name

            start_time = time.time()
            try:
                return func(*args, **kwargs)
            finally:
                duration = time.time() - start_time
                func_logger.debug(
                    f"Function {func_name} completed in: {duration:.2f} seconds"
                )

        return wrapper

    return decorator
