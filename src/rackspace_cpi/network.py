"""Network spec validation for Rackspace servers."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from rackspace_cpi.client import RackspaceClient
from rackspace_cpi.errors import ConfigurationError, NotFoundError

DYNAMIC = "dynamic"


class NetworkManager:
    """Validate and expose a single dynamic network spec.

    Rackspace servers can be attached to several networks. Without explicit
    ``network_ids`` a server gets the public Internet and ServiceNet
    networks; with them it gets only the listed ones (public Internet is
    ``00000000-0000-0000-0000-000000000000``, ServiceNet is
    ``11111111-1111-1111-1111-111111111111``).
    """

    def __init__(
        self,
        client: RackspaceClient,
        raw_network_spec: Any,
        logger: logging.Logger | None = None,
    ) -> None:
        """Parse the network spec.

        Args:
            client: Rackspace client used for network lookups.
            raw_network_spec: Mapping of network name to network settings.
            logger: Optional logger.

        Raises:
            ConfigurationError: If the spec is not exactly one dynamic network.
        """
        self._c = client
        self.logger = logger or logging.getLogger(__name__)
        self.name, self.network_spec = self._parse(raw_network_spec)
        self.cloud_properties: dict[str, Any] = self.network_spec.get("cloud_properties") or {}

    @staticmethod
    def _parse(raw_network_spec: Any) -> tuple[str, dict[str, Any]]:
        if not isinstance(raw_network_spec, Mapping):
            raise ConfigurationError(
                f"Invalid network spec: Hash expected, {type(raw_network_spec).__name__} provided"
            )
        if len(raw_network_spec) > 1:
            raise ConfigurationError("Must have exactly one network per instance")
        if not raw_network_spec:
            raise ConfigurationError("At least one dynamic network should be defined")

        name, spec = next(iter(raw_network_spec.items()))
        spec = spec or {}
        network_type = spec.get("type")
        if network_type != DYNAMIC:
            raise ConfigurationError(
                f"Invalid network type '{network_type}': Rackspace CPI can only handle 'dynamic' network types"
            )
        return name, dict(spec)

    def configure(self, server: Any) -> None:
        """Apply the network config to a server; networks are fixed at boot, so nothing to do."""

    def dns(self) -> list[str]:
        """Return the DNS servers of the network.

        Raises:
            ConfigurationError: If ``dns`` is not a list.
        """
        dns = self.network_spec.get("dns") or []
        if not isinstance(dns, list):
            raise ConfigurationError(f"Invalid dns: Array expected, {type(dns).__name__} provided")
        return dns

    def networks(self) -> list[Any]:
        """Return the Libcloud networks matching the explicit network ids.

        Returns:
            list[Any]: ``OpenStackNetwork`` objects, empty when none are set.

        Raises:
            ConfigurationError: If ``network_ids`` is not a list.
            NotFoundError: If an id does not exist in Rackspace.
        """
        network_ids = self.cloud_properties.get("network_ids") or []
        if not isinstance(network_ids, list):
            raise ConfigurationError(
                f"Invalid network_ids: Array expected, {type(network_ids).__name__} provided"
            )
        if not network_ids:
            return []

        available = {str(n.id): n for n in self._c.call("network_list", self._c.compute.ex_list_networks)}
        networks = []
        for network_id in network_ids:
            network = available.get(str(network_id))
            if network is None:
                raise NotFoundError(f"Network '{network_id}' not found")
            networks.append(network)
        return networks
