"""Rackspace resource metadata tags."""

from __future__ import annotations

from typing import Any

from rackspace_cpi.client import RackspaceClient
from rackspace_cpi.resources import ServerResource

MAX_TAG_KEY_LENGTH = 255
MAX_TAG_VALUE_LENGTH = 255


class TagManager:
    """Write metadata tags onto servers."""

    def __init__(self, client: RackspaceClient) -> None:
        self._c = client

    @staticmethod
    def trim(key: Any, value: Any) -> tuple[str, str]:
        """Stringify and truncate a tag pair to the provider limits."""
        return str(key)[:MAX_TAG_KEY_LENGTH], str(value)[:MAX_TAG_VALUE_LENGTH]

    def tag(self, server: ServerResource, key: Any, value: Any) -> None:
        """Tag a server.

        Args:
            server: Server to tag.
            key: Tag key, truncated to 255 characters.
            value: Tag value, truncated to 255 characters.
        """
        if key is None or value is None:
            return
        trimmed_key, trimmed_value = self.trim(key, value)
        metadata = server.metadata
        metadata[trimmed_key] = trimmed_value
        self._c.call("server_set_metadata", lambda: self._c.compute.ex_set_metadata(server.raw, metadata))
        server.extra["metadata"] = metadata
