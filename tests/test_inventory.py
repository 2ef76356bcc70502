"""Tests for the Inventory lookup arena."""

import logging

from zonehealth.model.inventory import Inventory, first_by_discovery_order

from conftest import make_computer, make_computer_role, make_zone, zone_dn


def build_inventory():
    zones = [
        make_zone("Global"),
        make_zone("Europe", parent="Global"),
        make_zone("Paris", parent="Europe"),
        make_zone("Legacy", hierarchical=False),
    ]
    computers = [
        make_computer("web01", "Paris"),
        make_computer("web02", "Paris"),
        make_computer("db01", "Europe"),
    ]
    roles = [make_computer_role("web", "Paris")]
    return Inventory(zones, computers, roles)


def test_lookup_by_dn_is_case_insensitive():
    inventory = build_inventory()
    assert inventory.zone(zone_dn("Paris").upper()).name == "Paris"
    assert inventory.zone("CN=Nowhere") is None


def test_resolve_by_name_within_zone():
    inventory = build_inventory()
    assert inventory.resolve_computer(zone_dn("Paris"), "WEB01").name == "web01"
    assert inventory.resolve_computer(zone_dn("Europe"), "web01") is None
    assert inventory.resolve_computer_role(zone_dn("Paris"), "web").name == "web"


def test_depth_and_roots():
    inventory = build_inventory()
    assert inventory.zone_depth(zone_dn("Global")) == 0
    assert inventory.zone_depth(zone_dn("Paris")) == 2
    assert [z.name for z in inventory.root_zones()] == ["Global", "Legacy"]
    assert [z.name for z in inventory.child_zones(zone_dn("Global"))] == ["Europe"]


def test_computers_in_zone():
    inventory = build_inventory()
    assert [c.name for c in inventory.computers_in_zone(zone_dn("Paris"))] == ["web01", "web02"]
    assert inventory.computers_in_zone(zone_dn("Legacy")) == []


def test_zone_stats():
    stats = build_inventory().zone_stats()

    assert stats["zones"] == 4
    assert stats["root_zones"] == 2
    assert stats["max_depth"] == 2
    assert stats["largest_zones"][0] == {"zone": "Paris", "computers": 2}


def test_zone_stats_empty():
    assert Inventory().zone_stats()["zones"] == 0


def test_missing_parent_makes_a_root():
    inventory = Inventory([make_zone("Stray", parent="Gone")])
    assert [z.name for z in inventory.root_zones()] == ["Stray"]


def test_first_by_discovery_order(caplog):
    with caplog.at_level(logging.ERROR):
        assert first_by_discovery_order(["a", "b"], "thing") == "a"
    assert "2 objects match thing" in caplog.text

    assert first_by_discovery_order(["only"], "thing") == "only"
    assert first_by_discovery_order([], "thing") is None


def test_computer_and_role_by_dn():
    inventory = build_inventory()
    computer = make_computer("web01", "Paris")
    role = make_computer_role("web", "Paris")

    assert inventory.computer(computer.distinguished_name) == computer
    assert inventory.computer_role(role.distinguished_name) == role
    assert inventory.nx_graph.has_edge(zone_dn("Europe").lower(), zone_dn("Paris").lower())
