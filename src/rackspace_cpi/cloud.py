"""Rackspace CPI operation surface."""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from rackspace_cpi.client import RackspaceClient
from rackspace_cpi.errors import NotSupported
from rackspace_cpi.network import NetworkManager
from rackspace_cpi.options import CloudOptions
from rackspace_cpi.registry import RegistryClient
from rackspace_cpi.server import ServerManager
from rackspace_cpi.snapshot import VolumeSnapshotManager
from rackspace_cpi.stemcell import StemcellManager
from rackspace_cpi.tags import TagManager
from rackspace_cpi.utils.steps import describe_call, run_step
from rackspace_cpi.volume import VolumeManager
from rackspace_cpi.wait import ResourceWaitManager, no_checkpoint

SYSTEM_DISK = "/dev/xvda"


class Cloud:
    """Rackspace CPI.

    Every provider mutation is followed by the matching agent settings
    update in the registry. Settings are read-modify-written against the
    current registry record, with a single writer per server name assumed.

    Example:
        cloud = Cloud(options)
        server_id = cloud.create_vm("agent-1", "image-1", {"instance_type": "1GB Standard"},
                                    {"default": {"type": "dynamic"}})
    """

    def __init__(
        self,
        options: Mapping[str, Any],
        *,
        client: RackspaceClient | None = None,
        registry: RegistryClient | None = None,
        checkpoint: Callable[[], None] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """Validate options and build long-lived managers.

        Args:
            options: Raw CPI options (``rackspace``, ``registry``, ``agent``).
            client: Prebuilt Rackspace client.
            registry: Prebuilt registry client.
            checkpoint: Cancellation hook called on every poll.
            logger: Logger for operation steps.
        """
        self.options = CloudOptions.from_mapping(options)
        self.logger = logger or logging.getLogger(__name__)

        self.client = client or RackspaceClient(creds=self.options.creds, cfg=self.options.rackspace)
        self.registry = registry or RegistryClient(self.options.registry)

        self.waiter = ResourceWaitManager(
            caller=self.client.caller,
            checkpoint=checkpoint or no_checkpoint,
            max_tries=self.options.wait_max_tries,
        )
        self.stemcells = StemcellManager(self.client)
        self.servers = ServerManager(self.client, self.waiter, self.stemcells, TagManager(self.client))
        self.volumes = VolumeManager(self.client, self.waiter, min_size_gib=self.options.min_volume_size_gib)
        self.snapshots = VolumeSnapshotManager(self.client, self.waiter, self.volumes)

    def _step(self, label: str, fn: Callable[[], Any]) -> Any:
        return run_step(self.logger, label, fn)

    def create_stemcell(self, image_path: str, stemcell_properties: Mapping[str, Any]) -> str:
        """Register a stemcell; returns the Rackspace image id."""
        def run() -> str:
            self.logger.info("Creating new stemcell...")
            return str(self.stemcells.create(stemcell_properties).id)

        return self._step(describe_call("create_stemcell", image_path, stemcell_properties), run)

    def delete_stemcell(self, stemcell_id: str) -> None:
        self._step(describe_call("delete_stemcell", stemcell_id), lambda: self.stemcells.delete(stemcell_id))

    def create_vm(
        self,
        agent_id: str,
        stemcell_id: str,
        resource_pool: Mapping[str, Any],
        network_spec: Mapping[str, Any],
        disk_locality: Any = None,
        environment: Mapping[str, Any] | None = None,
    ) -> str:
        """Create a server and write its initial agent settings.

        Args:
            agent_id: Agent id the server will assume.
            stemcell_id: Image id.
            resource_pool: Cloud properties (``instance_type``, ``public_key``).
            network_spec: Exactly one dynamic network.
            disk_locality: Not used by this CPI.
            environment: Merged into agent settings as ``env``.

        Returns:
            str: Rackspace server id.
        """
        def run() -> str:
            network_manager = NetworkManager(self.client, network_spec)

            self.logger.info("Creating new server...")
            server = self.servers.create(stemcell_id, resource_pool, network_manager, self.registry.endpoint)

            self.logger.info("Configuring network for server '%s'...", server.id)
            network_manager.configure(server)

            self.logger.info("Updating agent settings for server '%s'...", server.id)
            self.registry.update_settings(
                server.name, self.initial_agent_settings(server.name, agent_id, network_spec, environment)
            )
            return server.id

        return self._step(describe_call("create_vm", agent_id, stemcell_id, resource_pool), run)

    def delete_vm(self, server_id: str) -> None:
        """Terminate a server, then drop its agent settings."""
        def run() -> None:
            server = self.servers.get(server_id)

            self.logger.info("Deleting server '%s'...", server_id)
            self.servers.terminate(server_id)

            self.logger.info("Deleting agent settings for server '%s'...", server.id)
            self.registry.delete_settings(server.name)

        self._step(describe_call("delete_vm", server_id), run)

    def reboot_vm(self, server_id: str) -> None:
        self._step(describe_call("reboot_vm", server_id), lambda: self.servers.reboot(server_id))

    def has_vm(self, server_id: str) -> bool:
        return self._step(describe_call("has_vm", server_id), lambda: self.servers.exists(server_id))

    def set_vm_metadata(self, server_id: str, metadata: Mapping[str, Any]) -> None:
        self._step(
            describe_call("set_vm_metadata", server_id, metadata),
            lambda: self.servers.set_metadata(server_id, metadata),
        )

    def configure_networks(self, server_id: str, network_spec: Mapping[str, Any]) -> None:
        """Re-apply networking and update the ``networks`` settings field."""
        def run() -> None:
            server = self.servers.get(server_id)

            self.logger.info("Configuring network for server '%s'...", server.id)
            network_manager = NetworkManager(self.client, network_spec)
            network_manager.configure(server)

            self.logger.info("Updating agent settings for server '%s'...", server.id)
            self.update_network_settings(server.name, network_spec)

        self._step(describe_call("configure_networks", server_id, network_spec), run)

    def create_disk(self, volume_size: int, server_id: str | None = None) -> str:
        """Create a volume of ``volume_size`` MiB; ``server_id`` is not used."""
        def run() -> str:
            self.logger.info("Creating new volume...")
            return self.volumes.create(volume_size).id

        return self._step(describe_call("create_disk", volume_size, server_id), run)

    def delete_disk(self, volume_id: str) -> None:
        self._step(describe_call("delete_disk", volume_id), lambda: self.volumes.delete(volume_id))

    def attach_disk(self, server_id: str, volume_id: str) -> None:
        """Attach a volume and record its device in the agent settings."""
        def run() -> None:
            server = self.servers.get(server_id)
            volume = self.volumes.get(volume_id)

            self.logger.info("Attaching volume '%s' to server '%s'...", volume.id, server.id)
            attachment = self.servers.attach_volume(server, volume)

            self.logger.info("Updating agent settings for server '%s'...", server.id)
            self.update_disk_settings(server.name, volume_id, str(attachment["device"]))

        self._step(describe_call("attach_disk", server_id, volume_id), run)

    def detach_disk(self, server_id: str, volume_id: str) -> None:
        """Detach a volume and remove it from the agent settings."""
        def run() -> None:
            server = self.servers.get(server_id)
            volume = self.volumes.get(volume_id)

            self.logger.info("Detaching volume '%s' from '%s'...", volume.id, server.id)
            self.servers.detach_volume(server, volume)

            self.logger.info("Updating agent settings for server '%s'...", server.id)
            self.update_disk_settings(server.name, volume_id)

        self._step(describe_call("detach_disk", server_id, volume_id), run)

    def get_disks(self, server_id: str) -> list[str]:
        return self._step(describe_call("get_disks", server_id), lambda: self.servers.get_attached_volumes(server_id))

    def snapshot_disk(self, volume_id: str, metadata: Mapping[str, Any]) -> str:
        def run() -> str:
            self.logger.info("Creating new snapshot for volume '%s'...", volume_id)
            return self.snapshots.create(volume_id, metadata).id

        return self._step(describe_call("snapshot_disk", volume_id, metadata), run)

    def delete_snapshot(self, snapshot_id: str) -> None:
        self._step(describe_call("delete_snapshot", snapshot_id), lambda: self.snapshots.delete(snapshot_id))

    def validate_deployment(self, old_manifest: Any, new_manifest: Any) -> None:
        raise NotSupported("validate_deployment is not implemented by the Rackspace CPI")

    def initial_agent_settings(
        self,
        server_name: str,
        agent_id: str,
        network_spec: Mapping[str, Any],
        environment: Mapping[str, Any] | None,
    ) -> dict[str, Any]:
        """Build the first settings record the agent reads on boot."""
        settings: dict[str, Any] = {
            "vm": {"name": server_name},
            "agent_id": agent_id,
            "networks": dict(network_spec),
            "disks": {"system": SYSTEM_DISK, "persistent": {}},
        }
        if environment:
            settings["env"] = dict(environment)
        settings.update(self.options.agent)
        return settings

    def update_agent_settings(self, server_name: str, mutate: Callable[[dict[str, Any]], None]) -> None:
        """Read the current record, apply ``mutate`` and write it back."""
        settings = self.registry.read_settings(server_name)
        mutate(settings)
        self.registry.update_settings(server_name, settings)

    def update_disk_settings(self, server_name: str, volume_id: str, device_name: str | None = None) -> None:
        def mutate(settings: dict[str, Any]) -> None:
            disks = settings.setdefault("disks", {})
            persistent = disks.get("persistent")
            if not isinstance(persistent, dict):
                persistent = disks["persistent"] = {}
            if device_name:
                persistent[volume_id] = device_name
            else:
                persistent.pop(volume_id, None)

        self.update_agent_settings(server_name, mutate)

    def update_network_settings(self, server_name: str, network_spec: Mapping[str, Any]) -> None:
        def mutate(settings: dict[str, Any]) -> None:
            settings["networks"] = dict(network_spec)

        self.update_agent_settings(server_name, mutate)
