"""Rackspace CPI error types and Libcloud error mapping."""

from __future__ import annotations

import json
from typing import Any, Iterable

from libcloud.common.exceptions import BaseHTTPError, RateLimitReachedError
from libcloud.common.types import LibcloudError

RATE_LIMIT_CODES = frozenset({413, 429})
OVER_LIMIT_KEYS = ("overLimit", "overLimitFault")


class CpiError(Exception):
    """Base error for rackspace_cpi."""


class CloudError(CpiError):
    """General cloud failure reported back to the orchestrator."""


class ConfigurationError(CloudError):
    """Missing or invalid options."""


class NotFoundError(CloudError):
    """Resource is absent when it is required to exist."""


class WaitError(CloudError):
    """Failure raised by the resource wait loop.

    Attributes:
        description: Human readable resource description.
        target_states: States the wait was expecting.
        elapsed_s: Seconds spent waiting.
    """

    def __init__(
        self,
        message: str,
        *,
        description: str,
        target_states: Iterable[str] = (),
        elapsed_s: float | None = None,
    ) -> None:
        super().__init__(message)
        self.description = description
        self.target_states = tuple(target_states)
        self.elapsed_s = elapsed_s


class StateError(WaitError):
    """Resource observed in a terminal error state."""


class TimeoutError(WaitError):
    """Poll budget exhausted before reaching a target state."""


class ResourceNotFoundError(WaitError, NotFoundError):
    """Resource disappeared while waiting for it."""


class RateLimitError(CloudError):
    """Retry budget exhausted under provider rate limiting."""


class RegistryError(CloudError):
    """Registry request failed or returned an unexpected payload."""


class VMCreationFailed(CpiError):
    """Server creation failed; the whole create can be retried from scratch."""

    def __init__(self, ok_to_retry: bool = True, message: str = "VM creation failed") -> None:
        super().__init__(message)
        self.ok_to_retry = ok_to_retry


class NotSupported(CpiError):
    """Operation is not implemented by this CPI."""


def is_rate_limited(e: Exception) -> bool:
    """Check whether an exception is a provider rate-limit response.

    Args:
        e: Exception raised by a provider call.

    Returns:
        bool: True for HTTP 413/429 errors.
    """
    return isinstance(e, BaseHTTPError) and getattr(e, "code", None) in RATE_LIMIT_CODES


def is_not_found(e: Exception) -> bool:
    """Check whether an exception is a provider 404."""
    return isinstance(e, BaseHTTPError) and getattr(e, "code", None) == 404


def parse_over_limit(e: Exception) -> dict[str, Any]:
    """Collect the over-limit details of a rate-limit error.

    Libcloud folds the response body into the error message, so the delay is
    read from the ``Retry-After`` response header or from
    ``RateLimitReachedError.retry_after``. An ``overLimit`` or
    ``overLimitFault`` JSON body is used as well when the error carries one.
    Without any of these the structure holds no delay and callers fall back to
    their default wait.

    Args:
        e: Rate-limit exception.

    Returns:
        dict[str, Any]: Over-limit structure (``message``, ``details``,
            ``retryAfter`` / ``Retry-After`` when known).
    """
    overlimit: dict[str, Any] = {"message": str(getattr(e, "message", None) or e)}

    body = getattr(e, "body", None) or getattr(e, "message", None)
    if isinstance(body, (str, bytes)) and body:
        try:
            body_json = json.loads(body)
        except ValueError:
            body_json = None
        if isinstance(body_json, dict):
            for key in OVER_LIMIT_KEYS:
                value = body_json.get(key)
                if isinstance(value, dict):
                    overlimit.update(value)
                    break

    headers = getattr(e, "headers", None) or {}
    for key, value in headers.items():
        if str(key).lower() == "retry-after" and value:
            overlimit.setdefault("Retry-After", value)

    retry_after = getattr(e, "retry_after", 0)
    if isinstance(e, RateLimitReachedError) and isinstance(retry_after, int) and retry_after > 0:
        overlimit.setdefault("retryAfter", retry_after)
    return overlimit


def map_libcloud_exception(action: str, e: Exception) -> CloudError:
    """Map Libcloud driver construction errors to cloud errors.

    Args:
        action: Action name for contextual message.
        e: Original raised exception.

    Returns:
        CloudError: Mapped cloud error.
    """
    if isinstance(e, (LibcloudError, BaseHTTPError)):
        return CloudError(f"Unable to connect to the Rackspace {action}. Check task debug log for details.")
    return CloudError(f"{action} failed: {e.__class__.__name__}")
