#!/usr/bin/env python3

"""Tests for stemcells, tags, volume sizing, snapshot descriptions and resource handles."""

from __future__ import annotations

import pytest

from rackspace_cpi.errors import ConfigurationError, NotFoundError
from rackspace_cpi.resources import ServerResource, VolumeResource
from rackspace_cpi.snapshot import snapshot_description
from rackspace_cpi.stemcell import StemcellManager
from rackspace_cpi.tags import TagManager
from rackspace_cpi.volume import VolumeManager, mib_to_gib
from rackspace_cpi.wait import ResourceWaitManager


class FakeObject:
    """Libcloud object stand-in."""

    def __init__(self, id: str, name: str = "", state: str = "", extra: dict | None = None) -> None:
        self.id = id
        self.name = name
        self.state = state
        self.extra = extra if extra is not None else {}


@pytest.mark.parametrize("size_mib, size_gib", [(1, 1), (1024, 1), (1025, 2), (102400, 100), (102401, 101)])
def test_mib_to_gib_rounds_up(size_mib: int, size_gib: int) -> None:
    assert mib_to_gib(size_mib) == size_gib


def test_volume_floor_is_enforced(client) -> None:
    volumes = VolumeManager(client, ResourceWaitManager(caller=client.caller))

    with pytest.raises(ConfigurationError, match="Minimum volume size is 100 GiB, set only 99 GiB"):
        volumes.validate_size(99 * 1024)
    assert volumes.validate_size(100 * 1024) == 100


def test_stemcell_create_checks_properties(client, driver) -> None:
    stemcells = StemcellManager(client)

    with pytest.raises(ConfigurationError, match="This is not a Rackspace stemcell, infrastructure is 'aws'"):
        stemcells.create({"infrastructure": "aws", "image_id": "img-1"})
    with pytest.raises(ConfigurationError, match="Stemcell properties does not contain image id"):
        stemcells.create({"infrastructure": "rackspace"})
    assert driver.calls == []


def test_stemcell_missing_image(client) -> None:
    with pytest.raises(NotFoundError, match="Stemcell 'img-404' not found in Rackspace"):
        StemcellManager(client).create({"infrastructure": "rackspace", "image_id": "img-404"})


def test_tag_truncates_key_and_value(client, driver) -> None:
    node = FakeObject("srv-1", "server-1", extra={"metadata": {"existing": "1"}})
    driver.nodes["srv-1"] = node

    TagManager(client).tag(ServerResource(driver, node), "k" * 300, "v" * 300)

    (args, _), = driver.called("ex_set_metadata")
    assert args[1] == {"existing": "1", "k" * 255: "v" * 255}


@pytest.mark.parametrize("key, value", [(None, "v"), ("k", None)])
def test_tag_skips_null_key_or_value(client, driver, key, value) -> None:
    node = FakeObject("srv-1", "server-1")

    TagManager(client).tag(ServerResource(driver, node), key, value)

    assert driver.calls == []


def test_snapshot_description_uses_first_attachment_device() -> None:
    volume = VolumeResource(
        None,
        FakeObject(
            "vol-1",
            extra={"attachments": [{"serverId": "srv-1", "device": "/dev/xvdc"}, {"device": "/dev/xvdd"}]},
        ),
    )

    assert snapshot_description({"deployment": "cf", "job": "nats", "index": 1}, volume) == "cf/nats/1/xvdc"


def test_snapshot_description_without_attachment() -> None:
    volume = VolumeResource(None, FakeObject("vol-1", extra={"attachments": []}))

    assert snapshot_description({"deployment": "cf", "job": "nats"}, volume) == "cf/nats/"


@pytest.mark.parametrize(
    "extra, state, expected",
    [
        ({"vm_state": "ACTIVE"}, "running", "active"),
        ({}, "running", "active"),
        ({}, "terminated", "deleted"),
        ({}, "unknown", "unknown"),
    ],
)
def test_server_state(extra, state: str, expected: str) -> None:
    assert ServerResource(None, FakeObject("srv-1", state=state, extra=extra)).state == expected


def test_refresh_reports_not_found(client, driver) -> None:
    volume = VolumeResource(driver, FakeObject("vol-404"))

    assert volume.refresh() == (None, False)
