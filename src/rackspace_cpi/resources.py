"""Provider resource handles over Libcloud objects."""

from __future__ import annotations

from typing import Any

from rackspace_cpi.errors import is_not_found

# Fallback when the node does not carry the OS-EXT-STS vm_state extension.
_NODE_STATES = {
    "running": "active",
    "pending": "build",
    "rebooting": "reboot",
    "terminated": "deleted",
    "error": "error",
    "stopped": "stopped",
}

READY_STATE = "available"


def fetch_or_none(fn: Any) -> Any | None:
    """Run a provider lookup, returning ``None`` on HTTP 404."""
    try:
        return fn()
    except Exception as exc:
        if is_not_found(exc):
            return None
        raise


class ProviderResource:
    """Handle over one provider object.

    Subclasses implement ``_fetch`` returning a fresh provider object or
    ``None`` when the resource no longer exists.
    """

    kind = "resource"

    def __init__(self, driver: Any, raw: Any) -> None:
        self._driver = driver
        self.raw = raw

    @property
    def identity(self) -> str:
        return str(self.raw.id)

    @property
    def id(self) -> str:
        return self.identity

    @property
    def name(self) -> str:
        return str(getattr(self.raw, "name", "") or "")

    @property
    def extra(self) -> dict[str, Any]:
        return getattr(self.raw, "extra", None) or {}

    @property
    def state(self) -> str:
        return str(getattr(self.raw, "state", "") or "").lower()

    def _fetch(self) -> Any | None:
        raise NotImplementedError

    def refresh(self, state_attr: str = "state") -> tuple[str | None, bool]:
        """Re-fetch the resource.

        Args:
            state_attr: Attribute to read the state from.

        Returns:
            tuple[str | None, bool]: Lower-cased state and whether it was found.
        """
        raw = self._fetch()
        if raw is None:
            return None, False
        self.raw = raw
        return str(getattr(self, state_attr) or "").lower(), True

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} id={self.identity!r} state={self.state!r}>"


class ServerResource(ProviderResource):
    kind = "server"

    @property
    def state(self) -> str:
        vm_state = self.extra.get("vm_state")
        if vm_state:
            return str(vm_state).lower()
        raw_state = str(getattr(self.raw, "state", "") or "").lower()
        return _NODE_STATES.get(raw_state, raw_state)

    @property
    def metadata(self) -> dict[str, str]:
        return dict(self.extra.get("metadata") or {})

    def _fetch(self) -> Any | None:
        return fetch_or_none(lambda: self._driver.ex_get_node_details(self.identity))


class VolumeResource(ProviderResource):
    kind = "volume"

    @property
    def state(self) -> str:
        raw_state = self.extra.get("state") or getattr(self.raw, "state", "")
        return str(raw_state or "").lower()

    @property
    def attachments(self) -> list[dict[str, Any]]:
        return [a for a in self.extra.get("attachments") or [] if a]

    def is_ready(self) -> bool:
        return self.state == READY_STATE

    def attachment_for(self, server_id: str) -> dict[str, Any] | None:
        for attachment in self.attachments:
            if str(attachment.get("serverId") or attachment.get("server_id")) == str(server_id):
                return attachment
        return None

    def _fetch(self) -> Any | None:
        return fetch_or_none(lambda: self._driver.ex_get_volume(self.identity))


class SnapshotResource(ProviderResource):
    kind = "snapshot"

    @property
    def state(self) -> str:
        raw_state = self.extra.get("status") or self.extra.get("state") or getattr(self.raw, "state", "")
        return str(raw_state or "").lower()

    def is_ready(self) -> bool:
        return self.state == READY_STATE

    def _fetch(self) -> Any | None:
        return find_snapshot(self._driver, self.identity)


def find_snapshot(driver: Any, snapshot_id: str) -> Any | None:
    """Look a snapshot up by id in the provider snapshot list."""
    for snapshot in driver.ex_list_snapshots():
        if str(snapshot.id) == str(snapshot_id):
            return snapshot
    return None
