"""Shared fixtures: an in-memory directory and small record factories."""

from collections import Counter, defaultdict
from datetime import datetime, timedelta

import pytest

from zonehealth.exceptions import ObjectNotFoundError
from zonehealth.ingestion.cache_store import CacheStore
from zonehealth.ingestion.directory_api import DirectoryQueryAPI
from zonehealth.model.schemas import (
    ADComputer, Computer, ComputerRole, CommandRight, GroupProfile, Role,
    RoleAssignment, UserProfile, Zone, datetime_to_filetime
)

DOMAIN = "corp.local"
NOW = datetime(2026, 10, 19, 12, 0, 0)


def zone_dn(name):
    return f"CN={name},CN=Zones,DC=corp,DC=local"


def make_zone(name, parent=None, hierarchical=True, **kwargs):
    return Zone(
        name=name,
        distinguished_name=zone_dn(name),
        is_hierarchical=hierarchical,
        parent=zone_dn(parent) if parent else None,
        **kwargs
    )


def make_computer(name, zone, version="5.9.1-601", **kwargs):
    kwargs.setdefault("ad_computer_dn", f"CN={name},CN=Computers,DC=corp,DC=local")
    kwargs.setdefault("is_joined_to_zone", True)
    return Computer(
        name=name,
        distinguished_name=f"CN={name},CN=Computers,{zone_dn(zone)}",
        zone=zone_dn(zone),
        agent_version=version,
        **kwargs
    )


def make_ad_computer(name, days_since_logon=1, enabled=True):
    timestamp = 0
    if days_since_logon is not None:
        timestamp = datetime_to_filetime(NOW - timedelta(days=days_since_logon))
    return ADComputer(
        name=name,
        distinguished_name=f"CN={name},CN=Computers,DC=corp,DC=local",
        enabled=enabled,
        last_logon_timestamp=timestamp,
    )


def make_computer_role(name, zone, dn_suffix=""):
    return ComputerRole(
        name=name,
        distinguished_name=f"CN={name}{dn_suffix},CN=Computer Roles,{zone_dn(zone)}",
        zone=zone_dn(zone),
    )


class FakeDirectory(DirectoryQueryAPI):
    """In-memory directory keyed by scope DN.

    Every call is counted in `calls` (method name -> count) and every scope
    queried is appended to `queried`. Setting `failures[dn]` to an exception
    makes any query for that scope raise it.
    """

    def __init__(self):
        self.zones = []
        self.computers = defaultdict(list)
        self.computer_roles = defaultdict(list)
        self.user_profiles = defaultdict(list)
        self.group_profiles = defaultdict(list)
        self.role_assignments = defaultdict(list)
        self.roles = defaultdict(list)
        self.command_rights = defaultdict(list)
        self.ad_computers = {}
        self.failures = {}
        self.calls = Counter()
        self.queried = []
        self.credentials_seen = []
        self.disconnected = False

    def _hit(self, method, key):
        self.calls[method] += 1
        self.queried.append((method, key))
        if key in self.failures:
            raise self.failures[key]

    def list_zones(self, domain):
        self._hit("list_zones", domain)
        return list(self.zones)

    def list_computers(self, zone):
        self._hit("list_computers", zone.distinguished_name)
        return list(self.computers[zone.distinguished_name])

    def list_computer_roles(self, zone):
        self._hit("list_computer_roles", zone.distinguished_name)
        return list(self.computer_roles[zone.distinguished_name])

    def list_user_profiles(self, scope):
        self._hit("list_user_profiles", scope.distinguished_name)
        return list(self.user_profiles[scope.distinguished_name])

    def list_group_profiles(self, scope):
        self._hit("list_group_profiles", scope.distinguished_name)
        return list(self.group_profiles[scope.distinguished_name])

    def list_role_assignments(self, scope):
        self._hit("list_role_assignments", scope.distinguished_name)
        return list(self.role_assignments[scope.distinguished_name])

    def list_roles(self, zone):
        self._hit("list_roles", zone.distinguished_name)
        return list(self.roles[zone.distinguished_name])

    def list_command_rights(self, zone):
        self._hit("list_command_rights", zone.distinguished_name)
        return list(self.command_rights[zone.distinguished_name])

    def get_computer_identity(self, distinguished_name, credentials=None):
        self._hit("get_computer_identity", distinguished_name)
        self.credentials_seen.append(credentials)
        if distinguished_name not in self.ad_computers:
            raise ObjectNotFoundError(distinguished_name)
        return self.ad_computers[distinguished_name]

    def disconnect(self):
        self.disconnected = True


def build_directory():
    """A small deployment: a parent zone with a child zone, three computers."""
    api = FakeDirectory()

    parent = make_zone("Global")
    child = make_zone("Web", parent="Global")
    api.zones = [parent, child]

    linux = make_computer("linux01", "Global", version="5.9.1-601")
    old = make_computer("aix01", "Web", version="5.3.0-123")
    win = make_computer("win01", "Web", version="bogus", is_windows=True)
    api.computers[parent.distinguished_name] = [linux]
    api.computers[child.distinguished_name] = [old, win]

    for computer, days in ((linux, 2), (old, 120), (win, 10)):
        api.ad_computers[computer.ad_computer_dn] = make_ad_computer(computer.name, days)

    role = make_computer_role("web-servers", "Web")
    api.computer_roles[child.distinguished_name] = [role]

    api.user_profiles[parent.distinguished_name] = [
        UserProfile(name="alice", distinguished_name="CN=alice,Global", zone=parent.distinguished_name, uid=1000),
    ]
    api.user_profiles[linux.distinguished_name] = [
        UserProfile(name="alice", distinguished_name="CN=alice,linux01", computer=linux.distinguished_name,
                    uid=1000, is_orphan=True),
    ]
    api.group_profiles[child.distinguished_name] = [
        GroupProfile(name="web", distinguished_name="CN=web,Web", zone=child.distinguished_name, gid=500),
    ]

    api.roles[parent.distinguished_name] = [
        Role(name="UNIX Login", zone=parent.distinguished_name, description="UNIX Login role"),
        Role(name="dba", zone=parent.distinguished_name, description="Database admins"),
    ]
    api.role_assignments[parent.distinguished_name] = [
        RoleAssignment(name="a1", role="UNIX Login", trustee="CORP\\alice",
                       trustee_type="ADUser", zone=parent.distinguished_name,
                       is_trustee_orphaned=True),
    ]
    api.role_assignments[role.distinguished_name] = [
        RoleAssignment(name="a2", role="dba", trustee="CORP\\dbas",
                       trustee_type="ADGroup", computer_role=role.distinguished_name),
    ]
    api.command_rights[parent.distinguished_name] = [
        CommandRight(name="restart-httpd", zone=parent.distinguished_name, command="systemctl restart httpd"),
    ]
    return api


@pytest.fixture
def api():
    return build_directory()


@pytest.fixture
def cache(tmp_path):
    return CacheStore(str(tmp_path / "cache"), DOMAIN)
