"""
Collection Fetcher
==================

Fetches each record collection from the directory, scope unit by scope unit,
backed by the CacheStore.

Every fetch_* operation follows the same policy:
1. A sealed cache artifact for {domain}-{kind} is returned as is, without any
   directory call and without a freshness check
2. Otherwise one query is issued per scope unit (per zone, per computer...)
3. Records found for a unit go to the cache staging buffer and the result;
   a unit with nothing is logged and skipped
4. The staging buffer is sealed only if something was found
5. The (possibly empty) result is returned

Failure policy:
- Any per-unit failure is logged and treated as "no records for this unit"
- DirectoryAuthError is fatal: it is logged on the secure channel and
  re-raised, halting the run. Whatever was sealed before stays cached
- MissingDependencyError is fatal as well

Collection order is a data dependency, not something this module enforces:
zones -> computers -> AD computers -> computer roles / profiles ->
role assignments, roles and command rights.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

from ..exceptions import DirectoryAuthError, MissingDependencyError
from ..logger import get_logger, get_secure_logger
from ..model.inventory import Inventory
from ..model.schemas import (
    ADComputer, Computer, ComputerRole, CommandRight, DirectoryRecord,
    GroupProfile, Role, RoleAssignment, UserProfile, Zone
)
from .cache_store import CacheStore
from .directory_api import ADCredentials, DirectoryQueryAPI
from .progress import ProgressObserver

logger = get_logger(__name__)
secure_logger = get_secure_logger()

# (unit label, query returning the records of that unit)
ScopeUnit = tuple[str, Callable[[], Optional[Iterable[DirectoryRecord]]]]

EXPIRED_AFTER_DAYS = 60


def derive_expired_computers(
    ad_computers: Iterable[ADComputer],
    now: Optional[datetime] = None,
    max_age_days: int = EXPIRED_AFTER_DAYS
) -> list[ADComputer]:
    """Select AD computers whose last logon is older than max_age_days.

    This is derived in memory from the AD computer collection; nothing is
    fetched. A computer that never logged on (timestamp unset) is expired.

    Args:
        ad_computers: Fetched AD computer records
        now: Reference time, naive UTC (defaults to the current time)
        max_age_days: Age after which a computer is expired

    Returns:
        Expired computers in collection order
    """
    now = now or datetime.now(timezone.utc).replace(tzinfo=None)
    threshold = now - timedelta(days=max_age_days)

    expired = []
    for computer in ad_computers:
        last_logon = computer.last_logon
        if last_logon is None or last_logon < threshold:
            expired.append(computer)
    return expired


class CollectionFetcher:
    """Fetches zone deployment collections with per-unit failure tolerance.

    Usage:
        fetcher = CollectionFetcher(api, CacheStore("cache", domain), domain)
        zones = fetcher.fetch_zones()
        computers = fetcher.fetch_computers(zones)
        ad_computers = fetcher.fetch_ad_computers(computers)

    Args:
        api: Directory query implementation
        cache: Cache store for this domain
        domain: Domain being assessed
        credentials: Alternate identity/server for AD computer lookups
        progress: Observer notified after each unit and stage
    """

    def __init__(
        self,
        api: DirectoryQueryAPI,
        cache: CacheStore,
        domain: str,
        credentials: Optional[ADCredentials] = None,
        progress: Optional[ProgressObserver] = None
    ):
        self.api = api
        self.cache = cache
        self.domain = domain
        self.credentials = credentials
        self.progress = progress or ProgressObserver()

    # ------------------------------------------------------------------
    # Shared policy
    # ------------------------------------------------------------------

    def _load_cached(self, record_type: type) -> Optional[list]:
        kind = record_type.KIND
        data = self.cache.get(kind)
        if not data:
            return None
        try:
            records = [record_type.from_dict(item) for item in data]
        except (TypeError, ValueError, KeyError, AttributeError) as e:
            logger.warning("Cached %s for %s is unreadable, fetching again: %s", kind, self.domain, e)
            self.cache.clear(kind)
            return None
        logger.info("Loaded %d %s for %s from cache", len(records), kind, self.domain)
        return records

    def _collect(self, record_type: type, make_units: Callable[[], list[ScopeUnit]]) -> list:
        """Run the fetch policy for one collection.

        Scope units are only built on a cache miss.
        """
        kind = record_type.KIND

        cached = self._load_cached(record_type)
        if cached:
            self.progress.stage_completed(kind, len(cached), from_cache=True)
            return cached

        units = make_units()
        self.progress.stage_started(kind, len(units))
        records = []

        for label, query in units:
            try:
                found = list(query() or [])
            except DirectoryAuthError as e:
                # the message may name the bound account; secure channel only
                secure_logger.error(
                    "Authentication failed while collecting %s for %s: %s", kind, label, e
                )
                logger.error("Stopping: authentication failed while collecting %s", kind)
                raise
            except MissingDependencyError as e:
                logger.error("Stopping: %s", e)
                raise
            except Exception as e:
                logger.warning("Failed to collect %s for %s: %s", kind, label, e)
                self.progress.unit_skipped(kind, label, str(e))
                continue

            if not found:
                logger.warning("No %s found for %s", kind, label)
                self.progress.unit_completed(kind, label, 0)
                continue

            self.cache.put(kind, found)
            records.extend(found)
            self.progress.unit_completed(kind, label, len(found))

        if records:
            self.cache.seal(kind)
        else:
            logger.info("No %s found in %s; nothing cached", kind, self.domain)

        self.progress.stage_completed(kind, len(records))
        return records

    def _skip_windows(self, kind: str, computers: Iterable[Computer]) -> list[Computer]:
        """Drop Windows computers from a profile scope, with a warning each."""
        eligible = []
        for computer in computers:
            if computer.is_windows:
                logger.warning(
                    "Skipping %s for Windows computer %s: Windows computers have no profiles",
                    kind, computer.name
                )
                self.progress.unit_skipped(kind, f"computer {computer.name}", "Windows computer")
                continue
            eligible.append(computer)
        return eligible

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def fetch_zones(self) -> list[Zone]:
        return self._collect(Zone, lambda: [
            (f"domain {self.domain}", lambda: self.api.list_zones(self.domain))
        ])

    def fetch_computers(self, zones: list[Zone]) -> list[Computer]:
        return self._collect(Computer, lambda: [
            (f"zone {zone.name}", lambda zone=zone: self.api.list_computers(zone))
            for zone in zones
        ])

    def fetch_ad_computers(self, computers: list[Computer]) -> list[ADComputer]:
        """Fetch the AD machine account of every non-orphaned computer."""
        def make_units():
            units = []
            for computer in computers:
                if computer.is_orphan:
                    continue
                if not computer.ad_computer_dn:
                    logger.warning("Computer %s has no AD computer reference", computer.name)
                    continue
                units.append((
                    f"computer {computer.name}",
                    lambda dn=computer.ad_computer_dn: [self.api.get_computer_identity(dn, self.credentials)]
                ))
            return units

        return self._collect(ADComputer, make_units)

    def fetch_computer_roles(self, zones: list[Zone]) -> list[ComputerRole]:
        return self._collect(ComputerRole, lambda: [
            (f"zone {zone.name}", lambda zone=zone: self.api.list_computer_roles(zone))
            for zone in zones
        ])

    def _profile_units(self, kind: str, query, zones, computers) -> list[ScopeUnit]:
        units = [(f"zone {zone.name}", lambda zone=zone: query(zone)) for zone in zones]
        units.extend(
            (f"computer {computer.name}", lambda computer=computer: query(computer))
            for computer in self._skip_windows(kind, computers)
        )
        return units

    def fetch_user_profiles(self, zones: list[Zone], computers: list[Computer]) -> list[UserProfile]:
        """Fetch user profiles per zone and per non-Windows computer.

        Zone and computer results are merged without deduplication.
        """
        return self._collect(UserProfile, lambda: self._profile_units(
            UserProfile.KIND, self.api.list_user_profiles, zones, computers
        ))

    def fetch_group_profiles(self, zones: list[Zone], computers: list[Computer]) -> list[GroupProfile]:
        """Fetch group profiles per zone and per non-Windows computer.

        Zone and computer results are merged without deduplication.
        """
        return self._collect(GroupProfile, lambda: self._profile_units(
            GroupProfile.KIND, self.api.list_group_profiles, zones, computers
        ))

    def fetch_role_assignments(
        self,
        zones: list[Zone],
        computer_roles: list[ComputerRole],
        computers: list[Computer]
    ) -> list[RoleAssignment]:
        """Fetch role assignments per zone, per computer role and per computer.

        Computer roles and computers are looked up again by name inside their
        zone before they are queried; when a name is shared, the first one
        found is used.
        """
        inventory = Inventory(zones, computers, computer_roles)

        def query_computer_role(role: ComputerRole):
            resolved = inventory.resolve_computer_role(role.zone, role.name)
            if resolved is None:
                raise LookupError(f"computer role {role.name} not found in zone {role.zone}")
            return self.api.list_role_assignments(resolved)

        def query_computer(computer: Computer):
            resolved = inventory.resolve_computer(computer.zone, computer.name)
            if resolved is None:
                raise LookupError(f"computer {computer.name} not found in zone {computer.zone}")
            return self.api.list_role_assignments(resolved)

        def make_units():
            units: list[ScopeUnit] = [
                (f"zone {zone.name}", lambda zone=zone: self.api.list_role_assignments(zone))
                for zone in zones
            ]
            units.extend(
                (f"computer role {role.name}", lambda role=role: query_computer_role(role))
                for role in computer_roles
            )
            units.extend(
                (f"computer {computer.name}", lambda computer=computer: query_computer(computer))
                for computer in computers
            )
            return units

        return self._collect(RoleAssignment, make_units)

    def fetch_roles(self, zones: list[Zone]) -> list[Role]:
        return self._collect(Role, lambda: [
            (f"zone {zone.name}", lambda zone=zone: self.api.list_roles(zone))
            for zone in zones
        ])

    def fetch_command_rights(self, zones: list[Zone]) -> list[CommandRight]:
        return self._collect(CommandRight, lambda: [
            (f"zone {zone.name}", lambda zone=zone: self.api.list_command_rights(zone))
            for zone in zones
        ])
