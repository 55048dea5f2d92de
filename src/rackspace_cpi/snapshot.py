"""Rackspace volume snapshot operations."""

from __future__ import annotations

import logging
import posixpath
from typing import Any, Mapping
import uuid

from rackspace_cpi.client import RackspaceClient
from rackspace_cpi.errors import CloudError, NotFoundError
from rackspace_cpi.resources import SnapshotResource, VolumeResource, find_snapshot
from rackspace_cpi.volume import VolumeManager
from rackspace_cpi.wait import ResourceWaitManager

DESCRIPTION_KEYS = ("deployment", "job", "index")


def snapshot_description(metadata: Mapping[str, Any], volume: VolumeResource) -> str:
    """Build ``deployment/job/index[/device]`` from snapshot metadata.

    Args:
        metadata: Snapshot metadata from the orchestrator.
        volume: Source volume; its first attachment contributes the device name.

    Returns:
        str: Snapshot description.
    """
    parts = ["" if metadata.get(key) is None else str(metadata.get(key)) for key in DESCRIPTION_KEYS]
    devices = [a.get("device") for a in volume.attachments if a.get("device")]
    if devices:
        parts.append(posixpath.basename(devices[0]))
    return "/".join(parts)


class VolumeSnapshotManager:
    """Create, look up and delete volume snapshots."""

    def __init__(
        self,
        client: RackspaceClient,
        waiter: ResourceWaitManager,
        volumes: VolumeManager,
        logger: logging.Logger | None = None,
    ) -> None:
        self._c = client
        self._waiter = waiter
        self._volumes = volumes
        self.logger = logger or logging.getLogger(__name__)

    def get(self, snapshot_id: str) -> SnapshotResource:
        """Return an existing snapshot.

        Raises:
            NotFoundError: If the snapshot does not exist.
        """
        raw = self._c.call("snapshot_get", lambda: find_snapshot(self._c.compute, snapshot_id))
        if raw is None:
            self.logger.error("Volume snapshot '%s' not found", snapshot_id)
            raise NotFoundError(f"Volume snapshot '{snapshot_id}' not found")
        return SnapshotResource(self._c.compute, raw)

    def create(self, volume_id: str, metadata: Mapping[str, Any]) -> SnapshotResource:
        """Snapshot a volume and wait until the snapshot is available.

        Args:
            volume_id: Source volume id.
            metadata: Orchestrator metadata (deployment, job, index).

        Returns:
            SnapshotResource: The available snapshot.
        """
        volume = self._volumes.get(volume_id)
        name = f"snapshot-{uuid.uuid4()}"
        description = snapshot_description(metadata or {}, volume)
        self.logger.debug("Using volume snapshot params: name=%s description=%s force=True", name, description)

        raw = self._c.call(
            "snapshot_create",
            lambda: self._c.compute.create_volume_snapshot(
                volume.raw,
                name=name,
                ex_description=description,
                ex_force=True,
            ),
        )
        snapshot = SnapshotResource(self._c.compute, raw)
        self.logger.info("Creating new volume snapshot '%s'...", snapshot.id)
        self._waiter.wait_for(snapshot, "available")
        return snapshot

    def delete(self, snapshot_id: str) -> None:
        """Delete a snapshot and wait until it is gone.

        Raises:
            CloudError: If the snapshot is not in a ready state.
        """
        snapshot = self.get(snapshot_id)
        if not snapshot.is_ready():
            message = f"Cannot delete volume snapshot '{snapshot.id}', state is '{snapshot.state}'"
            self.logger.error(message)
            raise CloudError(message)

        self._c.call("snapshot_destroy", lambda: self._c.compute.destroy_volume_snapshot(snapshot.raw))
        self._waiter.wait_for(snapshot, "deleted", allow_notfound=True)
