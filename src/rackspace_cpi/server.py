"""Rackspace server operations."""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping
import uuid

from rackspace_cpi.client import RackspaceClient
from rackspace_cpi.errors import CloudError, ConfigurationError, NotFoundError, VMCreationFailed
from rackspace_cpi.network import NetworkManager
from rackspace_cpi.resources import ServerResource, VolumeResource, fetch_or_none
from rackspace_cpi.stemcell import StemcellManager
from rackspace_cpi.tags import TagManager
from rackspace_cpi.wait import ResourceWaitManager

BOSH_APP_DIR = "/var/vcap/bosh"
USER_DATA_PATH = f"{BOSH_APP_DIR}/user_data.json"
GONE_STATES = ("terminated", "deleted")


class ServerManager:
    """Rackspace server lifecycle."""

    def __init__(
        self,
        client: RackspaceClient,
        waiter: ResourceWaitManager,
        stemcells: StemcellManager,
        tags: TagManager,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize server manager.

        Args:
            client: Rackspace client.
            waiter: Resource wait manager.
            stemcells: Image lookups for boot params.
            tags: Metadata writer.
            logger: Optional logger.
        """
        self._c = client
        self._waiter = waiter
        self._stemcells = stemcells
        self._tags = tags
        self.logger = logger or logging.getLogger(__name__)

    def _find(self, server_id: str) -> ServerResource | None:
        raw = self._c.call(
            "server_get",
            lambda: fetch_or_none(lambda: self._c.compute.ex_get_node_details(server_id)),
        )
        return None if raw is None else ServerResource(self._c.compute, raw)

    def get(self, server_id: str) -> ServerResource:
        """Return an existing server.

        Raises:
            NotFoundError: If the server does not exist.
        """
        server = self._find(server_id)
        if server is None:
            self.logger.error("Server '%s' not found", server_id)
            raise NotFoundError(f"Server '{server_id}' not found")
        return server

    def create(
        self,
        stemcell_id: str,
        resource_pool: Mapping[str, Any],
        network_manager: NetworkManager,
        registry_endpoint: str,
    ) -> ServerResource:
        """Boot a server and wait until it is active.

        Args:
            stemcell_id: Image id to boot.
            resource_pool: Cloud properties (``instance_type``, ``public_key``).
            network_manager: Validated network spec.
            registry_endpoint: Registry URI handed to the agent.

        Returns:
            ServerResource: The active server.

        Raises:
            VMCreationFailed: If the server never became active.
        """
        params = self.server_params(
            f"server-{uuid.uuid4()}", stemcell_id, resource_pool, network_manager, registry_endpoint
        )
        self.logger.debug(
            "Using boot params: name=%s image=%s size=%s networks=%s",
            params["name"],
            params["image"].id,
            params["size"].id,
            [n.id for n in params.get("networks", [])],
        )

        raw = self._c.call("server_create", lambda: self._c.compute.create_node(**params))
        server = ServerResource(self._c.compute, raw)
        self.logger.info("Creating new server '%s'...", server.id)
        try:
            self._waiter.wait_for(server, "active")
        except CloudError as exc:
            self.logger.error("Server '%s' creation failed: %s", server.id, exc)
            raise VMCreationFailed(ok_to_retry=True, message=str(exc)) from exc
        return server

    def terminate(self, server_id: str) -> None:
        """Destroy a server and wait until it is gone."""
        server = self.get(server_id)
        self._c.call("server_destroy", lambda: self._c.compute.destroy_node(server.raw))
        self._waiter.wait_for(server, GONE_STATES, allow_notfound=True)

    def reboot(self, server_id: str) -> None:
        """Reboot a server and wait until it is active again."""
        server = self.get(server_id)
        self._c.call("server_reboot", lambda: self._c.compute.reboot_node(server.raw))
        self._waiter.wait_for(server, "active")

    def exists(self, server_id: str) -> bool:
        server = self._find(server_id)
        return server is not None and server.state not in GONE_STATES

    def set_metadata(self, server_id: str, metadata: Mapping[str, Any]) -> None:
        server = self.get(server_id)
        for key, value in (metadata or {}).items():
            self._tags.tag(server, key, value)

    def attach_volume(self, server: ServerResource, volume: VolumeResource) -> dict[str, Any]:
        """Attach a volume and wait until it is in use.

        Returns:
            dict[str, Any]: Attachment with ``volume_id``, ``server_id`` and ``device``.

        Raises:
            CloudError: If the attachment cannot be found after attaching.
        """
        self._c.call("volume_attach", lambda: self._c.compute.attach_volume(server.raw, volume.raw))
        self._waiter.wait_for(volume, "in-use")

        attachment = volume.attachment_for(server.id)
        if attachment is None:
            message = f"Volume '{volume.id}' is not attached to server '{server.id}'"
            self.logger.error(message)
            raise CloudError(message)
        return {"volume_id": volume.id, "server_id": server.id, "device": attachment.get("device")}

    def detach_volume(self, server: ServerResource, volume: VolumeResource) -> None:
        """Detach a volume and wait until it is available.

        Raises:
            CloudError: If the volume is not attached to the server.
        """
        if volume.attachment_for(server.id) is None:
            message = f"Volume '{volume.id}' is not attached to server '{server.id}'"
            self.logger.error(message)
            raise CloudError(message)

        self._c.call("volume_detach", lambda: self._c.compute.detach_volume(volume.raw, ex_node=server.raw))
        self._waiter.wait_for(volume, "available")

    def get_attached_volumes(self, server_id: str) -> list[str]:
        """List the ids of the volumes attached to a server."""
        server = self.get(server_id)
        raw_volumes = self._c.call("volume_list", self._c.compute.list_volumes)
        volumes = [VolumeResource(self._c.compute, raw) for raw in raw_volumes]
        return [v.id for v in volumes if v.attachment_for(server.id) is not None]

    def server_params(
        self,
        server_name: str,
        stemcell_id: str,
        resource_pool: Mapping[str, Any],
        network_manager: NetworkManager,
        registry_endpoint: str,
    ) -> dict[str, Any]:
        """Build ``create_node`` keyword arguments."""
        user_data = self.user_data(server_name, resource_pool, network_manager, registry_endpoint)
        params: dict[str, Any] = {
            "name": server_name,
            "image": self._image(stemcell_id),
            "size": self._flavor(resource_pool.get("instance_type")),
            "ex_files": {USER_DATA_PATH: json.dumps(user_data)},
        }

        networks = network_manager.networks()
        if networks:
            self.logger.debug("Using networks: '%s'", ", ".join(str(n.id) for n in networks))
            params["networks"] = networks
        return params

    def user_data(
        self,
        server_name: str,
        resource_pool: Mapping[str, Any],
        network_manager: NetworkManager,
        registry_endpoint: str,
    ) -> dict[str, Any]:
        """Build the agent bootstrap data written into the server."""
        user_data: dict[str, Any] = {
            "registry": {"endpoint": registry_endpoint},
            "server": {"name": server_name},
        }

        dns_list = network_manager.dns()
        if dns_list:
            user_data["dns"] = {"nameserver": dns_list}

        public_key = resource_pool.get("public_key")
        if public_key is not None:
            if not isinstance(public_key, str):
                raise ConfigurationError(
                    f"Invalid public key: String expected, {type(public_key).__name__} provided"
                )
            user_data["openssh"] = {"public_key": public_key}
        return user_data

    def _image(self, stemcell_id: str) -> Any:
        image = self._stemcells.get(stemcell_id)
        self.logger.debug("Using image: '%s (%s)'", image.name, image.id)
        return image

    def _flavor(self, flavor_name: str | None) -> Any:
        sizes = self._c.call("flavor_list", self._c.compute.list_sizes)
        flavor = next((s for s in sizes if s.name == flavor_name), None)
        if flavor is None:
            self.logger.error("Flavor '%s' not found", flavor_name)
            raise NotFoundError(f"Flavor '{flavor_name}' not found")
        self.logger.debug("Using flavor: '%s (%s)'", flavor.name, flavor.id)
        return flavor
