#!/usr/bin/env python3


import logging
import time
from typing import Any, Callable, TypeVar


_T = TypeVar("_T")


def describe_call(method: str, *args: Any) -> str:
    """Render ``method(arg, ...)`` with mappings and lists elided.

    Args:
        method: Operation name.
        *args: Operation arguments.

    Returns:
        str: Label such as ``attach_disk(srv-1, vol-1)`` or ``create_vm(agent, ...)``.
    """
    shown = []
    for arg in args:
        if isinstance(arg, (dict, list, tuple)):
            shown.append("...")
            break
        shown.append(str(arg))
    return f"{method}({', '.join(shown)})"


def run_step(log: logging.Logger, name: str, fn: Callable[..., _T], *args: Any, **kwargs: Any) -> _T:
    """Execute one CPI operation and log its outcome.

    Args:
        log: Logger that provides ``info`` and ``exception``.
        name: Operation label used in log messages.
        fn: Callable to run.
        *args: Positional arguments passed to ``fn``.
        **kwargs: Keyword arguments passed to ``fn``.

    Returns:
        _T: Return value from ``fn``.

    Raises:
        Exception: Re-raises any exception raised by ``fn``.
    """
    start = time.perf_counter()
    log.info("[%s] -> started", name)

    try:
        result = fn(*args, **kwargs)
    except Exception as exc:
        cost = time.perf_counter() - start
        log.exception("[%s] !! failed cost=%.3fs error=%s", name, cost, exc.__class__.__name__)
        raise

    cost = time.perf_counter() - start
    log.info("[%s] <- ok cost=%.3fs", name, cost)
    return result
