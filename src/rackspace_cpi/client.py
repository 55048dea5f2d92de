"""Rackspace SDK client wrapper."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Callable

from libcloud.compute.providers import get_driver
from libcloud.compute.types import Provider

from rackspace_cpi.errors import map_libcloud_exception
from rackspace_cpi.retry import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_WAIT_S, RetryingCaller, RetryPolicy


@dataclass(frozen=True)
class RackspaceCreds:
    """Rackspace credentials.

    Attributes:
        username: Rackspace account user name.
        api_key: Rackspace API key.
    """

    username: str
    api_key: str

    def __repr__(self) -> str:
        return f"RackspaceCreds(username={self.username!r}, api_key='***')"


@dataclass(frozen=True)
class RackspaceConfig:
    """Rackspace client config.

    Attributes:
        region: Region id, e.g. ``dfw``.
        auth_url: Optional identity endpoint override.
        timeout_s: Socket timeout for each API request.
        max_retries: Rate-limit retries after the first attempt.
        retry_wait_s: Default rate-limit wait when the API suggests none.
    """

    region: str | None = None
    auth_url: str | None = None
    timeout_s: float | None = None
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_wait_s: int = DEFAULT_RETRY_WAIT_S


class RackspaceClient:
    """Rackspace typed SDK client entry."""

    def __init__(
        self,
        *,
        creds: RackspaceCreds,
        cfg: RackspaceConfig,
        compute: Any | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the compute driver.

        Args:
            creds: Credentials.
            cfg: Client configuration.
            compute: Prebuilt compute driver; built from ``creds`` when omitted.
            logger: Logger shared with the retrying caller.
        """
        self.creds = creds
        self.cfg = cfg
        self._logger = logger or logging.getLogger(__name__)
        self._caller = RetryingCaller(
            RetryPolicy(max_retries=cfg.max_retries, default_wait_s=cfg.retry_wait_s),
            logger=self._logger,
        )
        self._compute = compute if compute is not None else self._create_compute_driver()

    def _create_compute_driver(self) -> Any:
        """Create the Libcloud Rackspace compute driver.

        Returns:
            Any: Libcloud ``RackspaceNodeDriver``.

        Raises:
            CloudError: When the driver cannot be built.
        """
        kwargs: dict[str, Any] = {}
        if self.cfg.region:
            kwargs["region"] = self.cfg.region
        if self.cfg.auth_url:
            kwargs["ex_force_auth_url"] = self.cfg.auth_url
        if self.cfg.timeout_s:
            kwargs["timeout"] = self.cfg.timeout_s
        try:
            driver_cls = get_driver(Provider.RACKSPACE)
            return driver_cls(self.creds.username, self.creds.api_key, **kwargs)
        except Exception as exc:
            self._logger.error("Unable to build Rackspace compute driver: %s", exc.__class__.__name__)
            raise map_libcloud_exception("Compute API", exc) from exc

    @property
    def compute(self) -> Any:
        """Get compute driver.

        Returns:
            Any: Libcloud compute driver.
        """
        return self._compute

    @property
    def caller(self) -> RetryingCaller:
        return self._caller

    def call(self, action: str, fn: Callable[[], Any]) -> Any:
        """Call the provider with rate-limit retries.

        Args:
            action: Action label for logging.
            fn: Deferred provider call.

        Returns:
            Any: Provider response.
        """
        return self._caller.call(action, fn)
