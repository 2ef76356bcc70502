"""Tests for the collection fetcher: caching, failure tolerance, scope rules."""

import logging
from datetime import timedelta

import pytest

from zonehealth.exceptions import DirectoryAuthError, DirectoryQueryError
from zonehealth.ingestion.directory_api import ADCredentials
from zonehealth.ingestion.fetcher import CollectionFetcher, derive_expired_computers
from zonehealth.ingestion.progress import CallbackProgress
from zonehealth.model.schemas import ADComputer, datetime_to_filetime

from conftest import (
    DOMAIN, NOW, FakeDirectory, make_ad_computer, make_computer,
    make_computer_role, make_zone, zone_dn
)


@pytest.fixture
def fetcher(api, cache):
    return CollectionFetcher(api, cache, DOMAIN)


def test_second_fetch_is_served_from_cache(api, cache):
    first = CollectionFetcher(api, cache, DOMAIN)
    zones = first.fetch_zones()
    computers = first.fetch_computers(zones)

    calls_before = sum(api.calls.values())
    second = CollectionFetcher(api, cache, DOMAIN)

    assert second.fetch_zones() == zones
    assert second.fetch_computers(zones) == computers
    assert sum(api.calls.values()) == calls_before


def test_cached_records_compare_equal(fetcher):
    zones = fetcher.fetch_zones()
    assert fetcher.fetch_zones() == zones
    assert fetcher.api.calls["list_zones"] == 1


def test_unit_failure_is_absorbed(api, cache, caplog):
    api.failures[zone_dn("Global")] = DirectoryQueryError("timeout")
    fetcher = CollectionFetcher(api, cache, DOMAIN)

    zones = fetcher.fetch_zones()
    computers = fetcher.fetch_computers(zones)

    assert [c.name for c in computers] == ["aix01", "win01"]
    assert "Failed to collect Computers for zone Global" in caplog.text


def test_all_units_failing_gives_empty_and_no_artifact(api, cache):
    for name in ("Global", "Web"):
        api.failures[zone_dn(name)] = RuntimeError("boom")
    fetcher = CollectionFetcher(api, cache, DOMAIN)

    assert fetcher.fetch_computers(fetcher.fetch_zones()) == []
    assert not cache.exists("Computers")


def test_empty_collection_is_not_sealed(cache):
    api = FakeDirectory()
    fetcher = CollectionFetcher(api, cache, DOMAIN)

    assert fetcher.fetch_zones() == []
    assert not cache.exists("Zones")
    # nothing cached, so the next fetch asks again
    fetcher.fetch_zones()
    assert api.calls["list_zones"] == 2


def test_auth_failure_is_fatal_and_keeps_sealed_collections(api, cache):
    fetcher = CollectionFetcher(api, cache, DOMAIN)
    zones = fetcher.fetch_zones()
    computers = fetcher.fetch_computers(zones)

    api.failures[computers[0].ad_computer_dn] = DirectoryAuthError("invalid credentials")
    with pytest.raises(DirectoryAuthError):
        fetcher.fetch_ad_computers(computers)

    assert cache.exists("Zones")
    assert cache.exists("Computers")
    assert not cache.exists("ADComputers")


def test_auth_failure_goes_to_secure_log(api, cache, caplog):
    secure = logging.getLogger("zonehealth.secure")
    api.failures[zone_dn("Global")] = DirectoryAuthError("bad password")
    fetcher = CollectionFetcher(api, cache, DOMAIN)
    zones = fetcher.fetch_zones()

    records = []
    handler = logging.Handler()
    handler.emit = records.append
    secure.addHandler(handler)
    try:
        with pytest.raises(DirectoryAuthError):
            fetcher.fetch_computers(zones)
    finally:
        secure.removeHandler(handler)

    assert any("Authentication failed" in r.getMessage() for r in records)


def test_auth_failure_message_stays_off_the_general_log(api, cache, caplog):
    message = "Authentication to dc01 failed for auditor@corp.local"
    api.failures[zone_dn("Global")] = DirectoryAuthError(message)
    fetcher = CollectionFetcher(api, cache, DOMAIN)
    zones = fetcher.fetch_zones()

    with caplog.at_level(logging.DEBUG), pytest.raises(DirectoryAuthError):
        fetcher.fetch_computers(zones)

    assert not [r for r in caplog.records if "auditor@corp.local" in r.getMessage()]
    assert "Stopping: authentication failed while collecting Computers" in caplog.text


def test_empty_unit_is_logged_as_warning(fetcher, caplog):
    zones = fetcher.fetch_zones()
    computers = fetcher.fetch_computers(zones)

    with caplog.at_level(logging.WARNING):
        fetcher.fetch_user_profiles(zones, computers)

    empty = [r for r in caplog.records if r.getMessage() == "No UserProfiles found for computer aix01"]
    assert empty and empty[0].levelno == logging.WARNING


def test_ad_computers_skip_orphans(cache):
    api = FakeDirectory()
    good = make_computer("good", "Global")
    orphan = make_computer("orphan", "Global", is_orphan=True)
    api.ad_computers[good.ad_computer_dn] = make_ad_computer("good")
    fetcher = CollectionFetcher(api, cache, DOMAIN)

    result = fetcher.fetch_ad_computers([good, orphan])

    assert [c.name for c in result] == ["good"]
    assert api.calls["get_computer_identity"] == 1


def test_ad_computer_not_found_is_skipped(api, cache):
    fetcher = CollectionFetcher(api, cache, DOMAIN)
    computers = fetcher.fetch_computers(fetcher.fetch_zones())
    del api.ad_computers[computers[0].ad_computer_dn]

    result = fetcher.fetch_ad_computers(computers)

    assert len(result) == len(computers) - 1


def test_ad_computers_use_supplied_credentials(api, cache):
    creds = ADCredentials(username="CORP\\auditor", password="secret", server="dc02")
    fetcher = CollectionFetcher(api, cache, DOMAIN, credentials=creds)

    fetcher.fetch_ad_computers(fetcher.fetch_computers(fetcher.fetch_zones()))

    assert api.credentials_seen and all(c is creds for c in api.credentials_seen)


def test_windows_computers_get_no_profile_query(fetcher, api, caplog):
    zones = fetcher.fetch_zones()
    computers = fetcher.fetch_computers(zones)
    windows = [c for c in computers if c.is_windows]

    fetcher.fetch_user_profiles(zones, computers)

    queried = {key for method, key in api.queried if method == "list_user_profiles"}
    assert windows and all(c.distinguished_name not in queried for c in windows)
    assert "Skipping UserProfiles for Windows computer win01" in caplog.text


def test_profiles_from_zone_and_computer_are_not_deduplicated(fetcher):
    zones = fetcher.fetch_zones()
    computers = fetcher.fetch_computers(zones)

    profiles = fetcher.fetch_user_profiles(zones, computers)

    assert [p.name for p in profiles] == ["alice", "alice"]


def test_profile_units_cover_zones_then_unix_computers(fetcher, api):
    zones = fetcher.fetch_zones()
    computers = fetcher.fetch_computers(zones)

    fetcher.fetch_group_profiles(zones, computers)

    # 2 zones + 2 non-Windows computers
    assert api.calls["list_group_profiles"] == 4


def test_role_assignments_cover_every_scope(fetcher, api):
    zones = fetcher.fetch_zones()
    computers = fetcher.fetch_computers(zones)
    roles = fetcher.fetch_computer_roles(zones)

    assignments = fetcher.fetch_role_assignments(zones, roles, computers)

    assert {a.name for a in assignments} == {"a1", "a2"}
    assert api.calls["list_role_assignments"] == len(zones) + len(roles) + len(computers)


def test_colliding_computer_role_names_use_first_found(cache, caplog):
    api = FakeDirectory()
    zone = make_zone("Global")
    first = make_computer_role("web", "Global", dn_suffix="-1")
    second = make_computer_role("web", "Global", dn_suffix="-2")
    fetcher = CollectionFetcher(api, cache, DOMAIN)

    fetcher.fetch_role_assignments([zone], [first, second], [])

    queried = [key for method, key in api.queried if method == "list_role_assignments"]
    assert queried == [zone.distinguished_name, first.distinguished_name, first.distinguished_name]
    assert "2 objects match computer role 'web'" in caplog.text


def test_progress_lines(api, cache):
    lines = []
    fetcher = CollectionFetcher(api, cache, DOMAIN, progress=CallbackProgress(lines.append))

    fetcher.fetch_zones()
    fetcher.fetch_zones()

    assert lines == [
        "[*] Collecting Zones (1 scope unit)...",
        "[+] 2 Zones loaded",
        "[+] 2 Zones loaded from cache",
    ]


class TestExpiredComputers:

    def test_ninety_days_is_expired_ten_is_not(self):
        old = make_ad_computer("old", days_since_logon=90)
        recent = make_ad_computer("recent", days_since_logon=10)

        expired = derive_expired_computers([old, recent], now=NOW)

        assert expired == [old]

    def test_never_logged_on_is_expired(self):
        never = make_ad_computer("never", days_since_logon=None)
        assert derive_expired_computers([never], now=NOW) == [never]

    def test_threshold_is_configurable(self):
        computer = make_ad_computer("c", days_since_logon=20)
        assert derive_expired_computers([computer], now=NOW, max_age_days=14) == [computer]
        assert derive_expired_computers([computer], now=NOW, max_age_days=30) == []

    def test_exact_timestamp(self):
        stamp = datetime_to_filetime(NOW - timedelta(days=61))
        computer = ADComputer(name="c", last_logon_timestamp=stamp)
        assert derive_expired_computers([computer], now=NOW) == [computer]
