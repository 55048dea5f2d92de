"""CPI options validation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from rackspace_cpi.client import RackspaceConfig, RackspaceCreds
from rackspace_cpi.errors import ConfigurationError
from rackspace_cpi.registry import RegistryConfig
from rackspace_cpi.retry import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_WAIT_S
from rackspace_cpi.volume import MIN_VOLUME_SIZE_GIB
from rackspace_cpi.wait import DEFAULT_MAX_TRIES

REQUIRED_KEYS: dict[str, tuple[str, ...]] = {
    "rackspace": ("username", "api_key"),
    "registry": ("endpoint", "user", "password"),
}


def missing_keys(options: Mapping[str, Any]) -> list[str]:
    """Return every required ``group:key`` absent from ``options``."""
    missing = []
    for group, keys in REQUIRED_KEYS.items():
        section = options.get(group)
        for key in keys:
            if not isinstance(section, Mapping) or key not in section:
                missing.append(f"{group}:{key}")
    return missing


def validate_options(options: Mapping[str, Any]) -> None:
    """Check required options.

    Raises:
        ConfigurationError: Naming every missing key.
    """
    if not isinstance(options, Mapping):
        raise ConfigurationError(f"Invalid options: Hash expected, {type(options).__name__} provided")
    missing = missing_keys(options)
    if missing:
        raise ConfigurationError(f"Missing configuration parameters: {', '.join(missing)}")


@dataclass(frozen=True)
class CloudOptions:
    """Typed view of validated CPI options.

    Attributes:
        creds: Rackspace credentials.
        rackspace: Rackspace client config.
        registry: Registry connection config.
        agent: Settings merged into every initial agent settings record.
        min_volume_size_gib: Smallest volume accepted by ``create_disk``.
        wait_max_tries: Poll budget for resource waits.
    """

    creds: RackspaceCreds
    rackspace: RackspaceConfig
    registry: RegistryConfig
    agent: dict[str, Any]
    min_volume_size_gib: int = MIN_VOLUME_SIZE_GIB
    wait_max_tries: int = DEFAULT_MAX_TRIES

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> "CloudOptions":
        """Validate and convert raw options.

        Args:
            options: Raw options with ``rackspace``, ``registry`` and ``agent`` groups.

        Returns:
            CloudOptions: Typed options.
        """
        validate_options(options)
        rackspace = options["rackspace"]
        registry = options["registry"]
        connection_options = rackspace.get("connection_options") or {}
        return cls(
            creds=RackspaceCreds(username=rackspace["username"], api_key=rackspace["api_key"]),
            rackspace=RackspaceConfig(
                region=rackspace.get("region"),
                auth_url=rackspace.get("auth_url"),
                timeout_s=rackspace.get("timeout_s") or connection_options.get("timeout"),
                max_retries=int(rackspace.get("max_retries", DEFAULT_MAX_RETRIES)),
                retry_wait_s=int(rackspace.get("retry_wait_s", DEFAULT_RETRY_WAIT_S)),
            ),
            registry=RegistryConfig(
                endpoint=registry["endpoint"],
                user=registry["user"],
                password=registry["password"],
                timeout_s=float(registry.get("timeout_s", 10.0)),
            ),
            agent=dict(options.get("agent") or {}),
            min_volume_size_gib=int(rackspace.get("min_volume_size_gib", MIN_VOLUME_SIZE_GIB)),
            wait_max_tries=int(rackspace.get("wait_max_tries", DEFAULT_MAX_TRIES)),
        )
