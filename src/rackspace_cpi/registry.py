"""Agent settings registry client."""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import time
from typing import Any
from urllib.parse import quote
import uuid

import requests

from rackspace_cpi.errors import RegistryError


@dataclass(frozen=True)
class RegistryConfig:
    """Registry connection config.

    Attributes:
        endpoint: Registry base URI.
        user: Basic auth user.
        password: Basic auth password.
        timeout_s: HTTP timeout in seconds.
    """

    endpoint: str
    user: str
    password: str
    timeout_s: float = 10.0

    def __repr__(self) -> str:
        return f"RegistryConfig(endpoint={self.endpoint!r}, user={self.user!r}, password='***')"


class RegistryClient:
    """Read and write per-server agent settings.

    Settings are addressed by server name. There is no locking: callers
    doing read-modify-write assume they are the only writer for that name.
    """

    def __init__(self, cfg: RegistryConfig, session: requests.Session | None = None) -> None:
        self.cfg = cfg
        self.endpoint = cfg.endpoint.rstrip("/")
        self.session = session or requests.Session()
        self.session.auth = (cfg.user, cfg.password)
        self._logger = logging.getLogger(__name__)

    def _settings_url(self, instance_id: str) -> str:
        return f"{self.endpoint}/instances/{quote(str(instance_id), safe='')}/settings"

    def _request(self, verb: str, method: str, instance_id: str, **kwargs: Any) -> requests.Response:
        task_id = uuid.uuid4().hex[:8]
        started_at = time.monotonic()
        try:
            response = self.session.request(
                method,
                self._settings_url(instance_id),
                timeout=self.cfg.timeout_s,
                **kwargs,
            )
        except requests.RequestException as exc:
            self._log_step(task_id, f"{verb}_settings", "exception", started_at)
            raise RegistryError(f"Cannot {verb} settings for '{instance_id}': {exc.__class__.__name__}") from exc

        self._log_step(task_id, f"{verb}_settings", f"http_{response.status_code}", started_at)
        if response.status_code != 200:
            raise RegistryError(f"Cannot {verb} settings for '{instance_id}', got HTTP {response.status_code}")
        return response

    def _log_step(self, task_id: str, target: str, result: str, started_at: float) -> None:
        self._logger.info(
            "[registry] task_id=%s target=%s result=%s duration_ms=%s",
            task_id,
            target,
            result,
            int((time.monotonic() - started_at) * 1000),
        )

    def update_settings(self, instance_id: str, settings: dict[str, Any]) -> None:
        """Replace the settings of an instance.

        Args:
            instance_id: Server name.
            settings: Full agent settings record.
        """
        if not isinstance(settings, dict):
            raise RegistryError(f"Invalid settings format, Hash expected, {type(settings).__name__} given")
        self._request(
            "update",
            "PUT",
            instance_id,
            data=json.dumps(settings),
            headers={"Content-Type": "application/json"},
        )

    def read_settings(self, instance_id: str) -> dict[str, Any]:
        """Read the settings of an instance.

        Args:
            instance_id: Server name.

        Returns:
            dict[str, Any]: Agent settings record.

        Raises:
            RegistryError: On HTTP errors or malformed payloads.
        """
        response = self._request("read", "GET", instance_id)
        try:
            body = response.json()
            settings = json.loads(body["settings"])
        except (ValueError, KeyError, TypeError) as exc:
            raise RegistryError("Invalid response received from registry") from exc
        if not isinstance(settings, dict):
            raise RegistryError("Invalid response received from registry")
        return settings

    def delete_settings(self, instance_id: str) -> None:
        self._request("delete", "DELETE", instance_id)
