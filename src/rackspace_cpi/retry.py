"""Rate-limit aware provider call wrapper."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import time
from typing import Any, Callable
import uuid

from rackspace_cpi.errors import RateLimitError, is_rate_limited, parse_over_limit

DEFAULT_MAX_RETRIES = 9
DEFAULT_RETRY_WAIT_S = 5


@dataclass(frozen=True)
class RetryPolicy:
    """Rate-limit retry policy.

    Attributes:
        max_retries: Retries allowed after the first attempt.
        default_wait_s: Sleep used when the provider does not suggest a delay.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    default_wait_s: int = DEFAULT_RETRY_WAIT_S


class RetryingCaller:
    """Execute provider calls, retrying only on rate-limit responses."""

    def __init__(self, policy: RetryPolicy | None = None, logger: logging.Logger | None = None) -> None:
        """Initialize caller.

        Args:
            policy: Retry policy. Defaults to 9 retries and 5 seconds wait.
            logger: Logger for key-step logs.
        """
        self.policy = policy or RetryPolicy()
        self._logger = logger or logging.getLogger(__name__)

    def _log_step(self, *, task_id: str, target: str, result: str, duration_ms: int) -> None:
        """Write reliability logs for key steps.

        Args:
            task_id: Generated task id.
            target: Target action.
            result: Result summary.
            duration_ms: Call duration in milliseconds.
        """
        self._logger.info(
            "[rackspace] task_id=%s target=%s result=%s duration_ms=%s",
            task_id,
            target,
            result,
            duration_ms,
        )

    def wait_time(self, overlimit: dict[str, Any]) -> int:
        """Return the delay suggested by an over-limit structure.

        Args:
            overlimit: Parsed over-limit structure.

        Returns:
            int: Seconds to sleep before retrying.
        """
        wait = overlimit.get("retryAfter") or overlimit.get("Retry-After") or self.policy.default_wait_s
        try:
            return int(wait)
        except (TypeError, ValueError):
            return self.policy.default_wait_s

    def call(self, action: str, fn: Callable[[], Any]) -> Any:
        """Call the provider, retrying on rate limiting.

        Args:
            action: Action label for logging.
            fn: Deferred provider call.

        Returns:
            Any: Provider response, unchanged.

        Raises:
            RateLimitError: When the retry budget is exhausted.
        """
        task_id = uuid.uuid4().hex[:8]
        target = f"rackspace:{action}"
        retries = 0

        while True:
            started_at = time.monotonic()
            try:
                response = fn()
            except Exception as exc:
                duration_ms = int((time.monotonic() - started_at) * 1000)
                if not is_rate_limited(exc):
                    self._log_step(task_id=task_id, target=target, result=f"{action}_fail", duration_ms=duration_ms)
                    raise

                if retries >= self.policy.max_retries:
                    self._log_step(
                        task_id=task_id, target=target, result=f"{action}_overlimit_fail", duration_ms=duration_ms
                    )
                    self._logger.error("Rackspace API Over Limit: %s", exc)
                    raise RateLimitError("Rackspace API Over Limit. Check task debug log for details.") from exc

                overlimit = parse_over_limit(exc)
                wait_s = self.wait_time(overlimit)
                self._log_step(
                    task_id=task_id, target=target, result=f"{action}_overlimit_retry", duration_ms=duration_ms
                )
                self._logger.debug(
                    "Rackspace API Rate Limit (%s - %s), waiting %s seconds before retrying",
                    overlimit.get("message"),
                    overlimit.get("details"),
                    wait_s,
                )
                time.sleep(wait_s)
                retries += 1
                continue

            duration_ms = int((time.monotonic() - started_at) * 1000)
            self._log_step(task_id=task_id, target=target, result=f"{action}_ok", duration_ms=duration_ms)
            return response
