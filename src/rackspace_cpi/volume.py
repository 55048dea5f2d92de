"""Rackspace block storage volume operations."""

from __future__ import annotations

import logging
import math
import uuid

from rackspace_cpi.client import RackspaceClient
from rackspace_cpi.errors import CloudError, ConfigurationError, NotFoundError
from rackspace_cpi.resources import VolumeResource, fetch_or_none
from rackspace_cpi.wait import ResourceWaitManager

MIN_VOLUME_SIZE_GIB = 100


def mib_to_gib(size_mib: int) -> int:
    """Convert MiB to GiB, rounding up."""
    return math.ceil(size_mib / 1024)


class VolumeManager:
    """Create, look up and delete Rackspace volumes."""

    def __init__(
        self,
        client: RackspaceClient,
        waiter: ResourceWaitManager,
        *,
        min_size_gib: int = MIN_VOLUME_SIZE_GIB,
        logger: logging.Logger | None = None,
    ) -> None:
        self._c = client
        self._waiter = waiter
        self.min_size_gib = min_size_gib
        self.logger = logger or logging.getLogger(__name__)

    def get(self, volume_id: str) -> VolumeResource:
        """Return an existing volume.

        Args:
            volume_id: Rackspace volume id.

        Returns:
            VolumeResource: Volume handle.

        Raises:
            NotFoundError: If the volume does not exist.
        """
        raw = self._c.call("volume_get", lambda: fetch_or_none(lambda: self._c.compute.ex_get_volume(volume_id)))
        if raw is None:
            self.logger.error("Volume '%s' not found", volume_id)
            raise NotFoundError(f"Volume '{volume_id}' not found")
        return VolumeResource(self._c.compute, raw)

    def validate_size(self, volume_size: int) -> int:
        """Validate a size in MiB and return it in GiB.

        Raises:
            ConfigurationError: If the size is not an integer or below the minimum.
        """
        if isinstance(volume_size, bool) or not isinstance(volume_size, int):
            raise ConfigurationError("Volume size needs to be an Integer")
        if volume_size < self.min_size_gib * 1024:
            raise ConfigurationError(
                f"Minimum volume size is {self.min_size_gib} GiB, set only {mib_to_gib(volume_size)} GiB"
            )
        return mib_to_gib(volume_size)

    def create(self, volume_size: int) -> VolumeResource:
        """Create a volume and wait until it is available.

        Args:
            volume_size: Volume size in MiB.

        Returns:
            VolumeResource: The available volume.
        """
        size_gib = self.validate_size(volume_size)
        name = f"volume-{uuid.uuid4()}"
        self.logger.debug("Using volume params: name=%s size=%s", name, size_gib)

        raw = self._c.call("volume_create", lambda: self._c.compute.create_volume(size_gib, name))
        volume = VolumeResource(self._c.compute, raw)
        self.logger.info("Creating new volume '%s'...", volume.id)
        self._waiter.wait_for(volume, "available")
        return volume

    def delete(self, volume_id: str) -> None:
        """Delete a volume and wait until it is gone.

        Raises:
            CloudError: If the volume is not in a ready state.
        """
        volume = self.get(volume_id)
        if not volume.is_ready():
            message = f"Cannot delete volume '{volume.id}', state is '{volume.state}'"
            self.logger.error(message)
            raise CloudError(message)

        self._c.call("volume_destroy", lambda: self._c.compute.destroy_volume(volume.raw))
        self._waiter.wait_for(volume, "deleted", allow_notfound=True)
