#!/usr/bin/env python3

"""Tests for network spec validation."""

from __future__ import annotations

import pytest

from rackspace_cpi.errors import ConfigurationError, NotFoundError
from rackspace_cpi.network import NetworkManager


def test_single_dynamic_network(client) -> None:
    manager = NetworkManager(client, {"default": {"type": "dynamic", "dns": ["8.8.8.8", "8.8.4.4"]}})

    assert manager.name == "default"
    assert manager.dns() == ["8.8.8.8", "8.8.4.4"]
    assert manager.networks() == []


@pytest.mark.parametrize(
    "spec, message",
    [
        ({"a": {"type": "dynamic"}, "b": {"type": "dynamic"}}, "Must have exactly one network per instance"),
        ({}, "At least one dynamic network should be defined"),
        ({"default": {"type": "manual"}}, "Invalid network type 'manual'"),
        (["default"], "Invalid network spec: Hash expected, list provided"),
    ],
)
def test_invalid_specs(client, driver, spec, message: str) -> None:
    with pytest.raises(ConfigurationError, match=message):
        NetworkManager(client, spec)

    assert driver.calls == []


def test_dns_must_be_a_list(client) -> None:
    manager = NetworkManager(client, {"default": {"type": "dynamic", "dns": "8.8.8.8"}})

    with pytest.raises(ConfigurationError, match="Invalid dns: Array expected, str provided"):
        manager.dns()


def test_network_ids_are_resolved(client) -> None:
    spec = {"default": {"type": "dynamic", "cloud_properties": {"network_ids": ["net-2"]}}}

    assert [network.id for network in NetworkManager(client, spec).networks()] == ["net-2"]


def test_unknown_network_id(client) -> None:
    spec = {"default": {"type": "dynamic", "cloud_properties": {"network_ids": ["net-9"]}}}

    with pytest.raises(NotFoundError, match="Network 'net-9' not found"):
        NetworkManager(client, spec).networks()


def test_explicit_networks_are_passed_to_create_node(cloud, driver, resource_pool) -> None:
    spec = {"default": {"type": "dynamic", "cloud_properties": {"network_ids": ["net-1", "net-2"]}}}

    cloud.create_vm("agent-1", "img-1", resource_pool, spec)

    (_, kwargs), = driver.called("create_node")
    assert [n.id for n in kwargs["networks"]] == ["net-1", "net-2"]
