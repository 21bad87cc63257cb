"""Timing utilities for measuring conversion stages."""

import asyncio
import logging
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from dataclasses import dataclass
from functools import wraps
from typing import ParamSpec, TypeVar, cast

from confmd.logger import logger

__all__ = ["StageTiming", "timeit", "timer"]

P = ParamSpec("P")
R = TypeVar("R")


@dataclass
class StageTiming:
    """Elapsed wall time of one timed block, filled in when the block exits."""

    name: str
    seconds: float = 0.0


@contextmanager
def timer(name: str = "Operation", log_level: int = logging.INFO) -> Generator[StageTiming]:
    """Context manager for timing one conversion stage.

    Args:
        name: Name of the stage being timed
        log_level: Logging level to use (default: INFO)

    Yields:
        StageTiming whose ``seconds`` is set once the block finishes.

    Example:
        >>> with timer("Normalization", logging.DEBUG) as timing:
        ...     normalized = normalizer.normalize(storage)
        >>> timing.seconds > 0
        True

    """
    timing = StageTiming(name)
    start_time = time.perf_counter()
    try:
        yield timing
    finally:
        timing.seconds = time.perf_counter() - start_time
        logger.log(log_level, "%s took %.4f seconds", name, timing.seconds)


def timeit(
    name: str | None = None, log_level: int = logging.INFO
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Time function execution (supports both sync and async).

    Args:
        name: Custom name for the operation (default: uses function name)
        log_level: Logging level to use (default: INFO)

    Example:
        >>> @timeit("Storage conversion", logging.DEBUG)
        ... def convert(self, storage: str) -> str:
        ...     ...

        >>> @mcp.tool()
        ... @timeit("storage_to_markdown tool")
        ... async def storage_to_markdown(storage: str) -> str:
        ...     ...

    """
    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        operation_name = name or f"{func.__module__}.{func.__name__}"

        if asyncio.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
                with timer(operation_name, log_level):
                    result = await func(*args, **kwargs)
                return cast("R", result)
            return async_wrapper  # type: ignore[return-value]

        @wraps(func)
        def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            with timer(operation_name, log_level):
                return func(*args, **kwargs)
        return sync_wrapper
    return decorator
