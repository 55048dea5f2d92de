"""Rackspace stemcell (image) operations."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from rackspace_cpi.client import RackspaceClient
from rackspace_cpi.errors import ConfigurationError, NotFoundError
from rackspace_cpi.resources import fetch_or_none

INFRASTRUCTURE = "rackspace"


class StemcellManager:
    """Stemcells are existing Rackspace images; their lifecycle is owned by Rackspace."""

    def __init__(self, client: RackspaceClient, logger: logging.Logger | None = None) -> None:
        self._c = client
        self.logger = logger or logging.getLogger(__name__)

    def get(self, stemcell_id: str) -> Any:
        """Return an existing image.

        Args:
            stemcell_id: Rackspace image id.

        Returns:
            Any: Libcloud ``NodeImage``.

        Raises:
            NotFoundError: If the image does not exist.
        """
        image = self._c.call("image_get", lambda: fetch_or_none(lambda: self._c.compute.get_image(stemcell_id)))
        if image is None:
            self.logger.error("Stemcell '%s' not found in Rackspace", stemcell_id)
            raise NotFoundError(f"Stemcell '{stemcell_id}' not found in Rackspace")
        return image

    def create(self, stemcell_properties: Mapping[str, Any]) -> Any:
        """Look up the image referenced by the stemcell properties.

        Args:
            stemcell_properties: Must hold ``infrastructure`` and ``image_id``.

        Returns:
            Any: Libcloud ``NodeImage``.

        Raises:
            ConfigurationError: If properties are not for a Rackspace stemcell.
        """
        infrastructure = stemcell_properties.get("infrastructure")
        if infrastructure != INFRASTRUCTURE:
            raise ConfigurationError(f"This is not a Rackspace stemcell, infrastructure is '{infrastructure}'")

        image_id = stemcell_properties.get("image_id")
        if not image_id:
            raise ConfigurationError("Stemcell properties does not contain image id")

        image = self.get(image_id)
        self.logger.debug("Using existing Rackspace image '%s (%s)'", image.name, image.id)
        return image

    def delete(self, stemcell_id: str) -> None:
        self.logger.debug("Stemcell '%s' is managed by Rackspace, skipping", stemcell_id)
