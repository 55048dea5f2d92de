#!/usr/bin/env python3
"""
pytest fixtures: an in-memory Rackspace compute driver and agent registry.
"""

from __future__ import annotations

import copy
import itertools
from typing import Any, Dict, List

import pytest
from libcloud.common.exceptions import BaseHTTPError

from rackspace_cpi.client import RackspaceClient, RackspaceConfig, RackspaceCreds
from rackspace_cpi.cloud import Cloud
from rackspace_cpi.errors import RegistryError


GONE = object()

OPTIONS: Dict[str, Any] = {
    "rackspace": {
        "username": "bosh",
        "api_key": "secret-key",
        "region": "dfw",
        "min_volume_size_gib": 1,
    },
    "registry": {
        "endpoint": "http://registry.local:25777",
        "user": "admin",
        "password": "admin-pass",
    },
    "agent": {"ntp": ["0.pool.ntp.org"], "blobstore": {"provider": "local"}},
}


class FakeObject:
    """Stand-in for Libcloud Node / StorageVolume / VolumeSnapshot / NodeImage."""

    def __init__(self, id: str, name: str = "", state: str = "", extra: Dict[str, Any] | None = None) -> None:
        self.id = id
        self.name = name
        self.state = state
        self.extra = extra if extra is not None else {}


class FakeDriver:
    """In-memory Rackspace compute driver.

    ``transitions[id]`` holds the states an object moves through, one per
    fetch. ``GONE`` removes the object. ``errors[method]`` holds exceptions
    raised by the next calls to ``method``.
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.calls: List[tuple[str, Any]] = []
        self.nodes: Dict[str, FakeObject] = {}
        self.volumes: Dict[str, FakeObject] = {}
        self.snapshots: Dict[str, FakeObject] = {}
        self.images = {"img-1": FakeObject("img-1", "bosh-stemcell-ubuntu")}
        self.sizes = [FakeObject("2", "512MB Standard Instance"), FakeObject("3", "1GB Standard Instance")]
        self.networks = [FakeObject("net-1", "private"), FakeObject("net-2", "backend")]
        self.transitions: Dict[str, List[Any]] = {}
        self.errors: Dict[str, List[Exception]] = {}
        self.device = "/dev/xvdb"

    def _record(self, method: str, *args: Any, **kwargs: Any) -> None:
        self.calls.append((method, (args, kwargs)))
        pending = self.errors.get(method)
        if pending:
            raise pending.pop(0)

    def called(self, method: str) -> List[Any]:
        return [args for name, args in self.calls if name == method]

    def _advance(self, store: Dict[str, FakeObject], obj_id: str, state_key: str) -> FakeObject | None:
        steps = self.transitions.get(obj_id)
        if steps and obj_id in store:
            step = steps.pop(0)
            if step is GONE:
                store.pop(obj_id)
            else:
                store[obj_id].extra[state_key] = step
        return store.get(obj_id)

    @staticmethod
    def _not_found() -> BaseHTTPError:
        return BaseHTTPError(404, "Not Found")

    # servers

    def create_node(self, **kwargs: Any) -> FakeObject:
        self._record("create_node", **kwargs)
        node_id = f"srv-{next(self._ids)}"
        node = FakeObject(node_id, kwargs["name"], "pending", {"vm_state": "building", "metadata": {}})
        self.nodes[node_id] = node
        self.transitions[node_id] = ["active"]
        return node

    def ex_get_node_details(self, node_id: str) -> FakeObject:
        self._record("ex_get_node_details", node_id)
        node = self._advance(self.nodes, node_id, "vm_state")
        if node is None:
            raise self._not_found()
        return node

    def destroy_node(self, node: FakeObject) -> bool:
        self._record("destroy_node", node.id)
        self.transitions[node.id] = [GONE]
        return True

    def reboot_node(self, node: FakeObject) -> bool:
        self._record("reboot_node", node.id)
        node.extra["vm_state"] = "reboot"
        self.transitions[node.id] = ["active"]
        return True

    def ex_set_metadata(self, node: FakeObject, metadata: Dict[str, str]) -> Dict[str, str]:
        self._record("ex_set_metadata", node.id, dict(metadata))
        node.extra["metadata"] = dict(metadata)
        return metadata

    def list_sizes(self) -> List[FakeObject]:
        self._record("list_sizes")
        return list(self.sizes)

    def get_image(self, image_id: str) -> FakeObject:
        self._record("get_image", image_id)
        if image_id not in self.images:
            raise self._not_found()
        return self.images[image_id]

    def ex_list_networks(self) -> List[FakeObject]:
        self._record("ex_list_networks")
        return list(self.networks)

    # volumes

    def create_volume(self, size: int, name: str) -> FakeObject:
        self._record("create_volume", size, name)
        volume_id = f"vol-{next(self._ids)}"
        volume = FakeObject(volume_id, name, extra={"state": "creating", "attachments": []})
        volume.size = size
        self.volumes[volume_id] = volume
        self.transitions[volume_id] = ["available"]
        return volume

    def ex_get_volume(self, volume_id: str) -> FakeObject:
        self._record("ex_get_volume", volume_id)
        volume = self._advance(self.volumes, volume_id, "state")
        if volume is None:
            raise self._not_found()
        return volume

    def list_volumes(self) -> List[FakeObject]:
        self._record("list_volumes")
        return list(self.volumes.values())

    def destroy_volume(self, volume: FakeObject) -> bool:
        self._record("destroy_volume", volume.id)
        self.transitions[volume.id] = [GONE]
        return True

    def attach_volume(self, node: FakeObject, volume: FakeObject, device: str | None = None) -> bool:
        self._record("attach_volume", node.id, volume.id)
        volume.extra["state"] = "attaching"
        volume.extra["attachments"] = [{"serverId": node.id, "volumeId": volume.id, "device": self.device}]
        self.transitions[volume.id] = ["in-use"]
        return True

    def detach_volume(self, volume: FakeObject, ex_node: FakeObject | None = None) -> bool:
        self._record("detach_volume", volume.id, ex_node.id if ex_node else None)
        volume.extra["state"] = "detaching"
        volume.extra["attachments"] = []
        self.transitions[volume.id] = ["available"]
        return True

    # snapshots

    def ex_list_snapshots(self) -> List[FakeObject]:
        self._record("ex_list_snapshots")
        for snapshot_id in list(self.snapshots):
            self._advance(self.snapshots, snapshot_id, "status")
        return list(self.snapshots.values())

    def create_volume_snapshot(self, volume: FakeObject, name: str, **kwargs: Any) -> FakeObject:
        self._record("create_volume_snapshot", volume.id, name=name, **kwargs)
        snapshot_id = f"snap-{next(self._ids)}"
        snapshot = FakeObject(snapshot_id, name, extra={"status": "creating", "volume_id": volume.id})
        self.snapshots[snapshot_id] = snapshot
        self.transitions[snapshot_id] = ["available"]
        return snapshot

    def destroy_volume_snapshot(self, snapshot: FakeObject) -> bool:
        self._record("destroy_volume_snapshot", snapshot.id)
        self.transitions[snapshot.id] = [GONE]
        return True


class FakeRegistry:
    """In-memory agent settings registry.

    Records are copied in and out, the way they cross the HTTP registry.
    """

    def __init__(self, endpoint: str = "http://registry.local:25777") -> None:
        self.endpoint = endpoint
        self.settings: Dict[str, Dict[str, Any]] = {}

    def update_settings(self, instance_id: str, settings: Dict[str, Any]) -> None:
        self.settings[instance_id] = copy.deepcopy(settings)

    def read_settings(self, instance_id: str) -> Dict[str, Any]:
        if instance_id not in self.settings:
            raise RegistryError(f"Cannot read settings for '{instance_id}', got HTTP 404")
        return copy.deepcopy(self.settings[instance_id])

    def delete_settings(self, instance_id: str) -> None:
        if instance_id not in self.settings:
            raise RegistryError(f"Cannot delete settings for '{instance_id}', got HTTP 404")
        del self.settings[instance_id]


@pytest.fixture
def sleeps(monkeypatch: pytest.MonkeyPatch) -> List[float]:
    """Record every sleep instead of sleeping."""
    recorded: List[float] = []
    monkeypatch.setattr("rackspace_cpi.wait.time.sleep", recorded.append)
    return recorded


@pytest.fixture
def driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def client(driver: FakeDriver) -> RackspaceClient:
    return RackspaceClient(
        creds=RackspaceCreds(username="bosh", api_key="secret-key"),
        cfg=RackspaceConfig(region="dfw"),
        compute=driver,
    )


@pytest.fixture
def options() -> Dict[str, Any]:
    return {
        "rackspace": dict(OPTIONS["rackspace"]),
        "registry": dict(OPTIONS["registry"]),
        "agent": dict(OPTIONS["agent"]),
    }


@pytest.fixture
def cloud(options: Dict[str, Any], client: RackspaceClient, registry: FakeRegistry, sleeps: List[float]) -> Cloud:
    return Cloud(options, client=client, registry=registry)


@pytest.fixture
def network_spec() -> Dict[str, Any]:
    return {"default": {"type": "dynamic", "dns": ["8.8.8.8"], "cloud_properties": {}}}


@pytest.fixture
def resource_pool() -> Dict[str, Any]:
    return {"instance_type": "1GB Standard Instance", "public_key": "ssh-rsa AAAA bosh@local"}
