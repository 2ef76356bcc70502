"""
zoneHealth Data Schemas
=======================

Typed dataclasses representing zone deployment records read from the
directory, plus the containers that flow between pipeline stages.

Design Decisions:
-----------------
1. Every record is a plain dataclass; equality is field-for-field so a record
   loaded from the cache compares equal to the one that was fetched
2. References between records are distinguished names (non-owning keys).
   They are resolved through model.inventory.Inventory, never followed as
   object links, so no record graph can become cyclic
3. Each record class names its collection through KIND, which is also the
   cache key component
4. TrusteeType and SupportTier enums give the classifier stable bucket names

Schema Hierarchy:
- DirectoryRecord (base: name, distinguished_name, properties)
  - Zone
  - Computer
  - ADComputer
  - ComputerRole
  - Profile
    - UserProfile
    - GroupProfile
  - Role
  - RoleAssignment
  - CommandRight

- DeploymentSnapshot: every collection of one run, input of the classifier
- HealthCheckResult: counted summary, input of the report builder
"""

from dataclasses import dataclass, field, fields
from datetime import date, datetime, timedelta
from enum import Enum
from typing import ClassVar, Optional


FILETIME_EPOCH = datetime(1601, 1, 1)


def filetime_to_datetime(value: Optional[int]) -> Optional[datetime]:
    """Convert a Windows FILETIME (100ns intervals since 1601) to a naive UTC datetime.

    Zero, None and the "never" sentinel return None.
    """
    if not value or value == 0x7FFFFFFFFFFFFFFF:
        return None
    try:
        return FILETIME_EPOCH + timedelta(microseconds=int(value) // 10)
    except (ValueError, OverflowError):
        return None


def datetime_to_filetime(value: datetime) -> int:
    """Convert a naive UTC datetime to a Windows FILETIME integer."""
    delta = value - FILETIME_EPOCH
    return (delta.days * 86400 + delta.seconds) * 10_000_000 + delta.microseconds * 10


class TrusteeType(Enum):
    """Kinds of trustee a role can be assigned to."""
    AD_USER = "ADUser"
    AD_GROUP = "ADGroup"
    LOCAL_UNIX_USER = "LocalUnixUser"
    LOCAL_UNIX_GROUP = "LocalUnixGroup"
    LOCAL_WINDOWS_USER = "LocalWindowsUser"
    LOCAL_WINDOWS_GROUP = "LocalWindowsGroup"
    ALL_AD_USERS = "AllADUsers"
    ALL_UNIX_USERS = "AllUnixUsers"
    ALL_WINDOWS_USERS = "AllWindowsUsers"
    UNKNOWN = "Unknown"

    @classmethod
    def from_string(cls, s: Optional[str]) -> "TrusteeType":
        """Convert string to TrusteeType, handling various formats."""
        if not s:
            return cls.UNKNOWN
        normalized = s.strip().replace(" ", "").replace("_", "").lower()

        for trustee_type in cls:
            if trustee_type.value.lower() == normalized:
                return trustee_type

        aliases = {
            "user": cls.AD_USER,
            "aduser": cls.AD_USER,
            "group": cls.AD_GROUP,
            "adgroup": cls.AD_GROUP,
            "unixuser": cls.LOCAL_UNIX_USER,
            "localuser": cls.LOCAL_UNIX_USER,
            "unixgroup": cls.LOCAL_UNIX_GROUP,
            "localgroup": cls.LOCAL_UNIX_GROUP,
            "windowsuser": cls.LOCAL_WINDOWS_USER,
            "windowsgroup": cls.LOCAL_WINDOWS_GROUP,
            "alladusers": cls.ALL_AD_USERS,
            "allunixusers": cls.ALL_UNIX_USERS,
            "allwindowsusers": cls.ALL_WINDOWS_USERS,
        }
        return aliases.get(normalized, cls.UNKNOWN)


class SupportTier(Enum):
    """Vendor support lifecycle tier of an agent version."""
    CORE = "Core Support"
    EXTENDED = "Extended Support"
    OUT_OF_SUPPORT = "Out of Support"
    UNKNOWN = "Unknown Version"


@dataclass
class DirectoryRecord:
    """Base class for every record fetched from the directory.

    Attributes:
        name: Object name (CN or vendor name)
        distinguished_name: Full LDAP DN of the vendor object
        properties: Additional raw attributes kept for the report
    """
    KIND: ClassVar[str] = "Records"

    name: str
    distinguished_name: Optional[str] = None
    properties: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict):
        """Rebuild a record from its serialized form, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class Zone(DirectoryRecord):
    """A zone: the container scoping UNIX identity and authorization data.

    Additional Attributes:
        canonical_name: Canonical name (domain/path/zone)
        is_hierarchical: Whether the zone takes part in a zone hierarchy
        parent: DN of the parent zone, None for a top-level zone
        is_orphan_child_zone: Hierarchical child whose parent link is broken
        is_sfu: Whether the zone uses the SFU compatible schema
    """
    KIND: ClassVar[str] = "Zones"

    canonical_name: Optional[str] = None
    is_hierarchical: bool = False
    parent: Optional[str] = None
    is_orphan_child_zone: bool = False
    is_sfu: bool = False

    def __post_init__(self):
        if self.is_orphan_child_zone and not self.is_hierarchical:
            raise ValueError(f"Zone {self.name} is an orphan child zone but not hierarchical")

    @property
    def is_top_level(self) -> bool:
        return self.parent is None and not self.is_orphan_child_zone


@dataclass
class Computer(DirectoryRecord):
    """A computer managed in a zone.

    Additional Attributes:
        zone: DN of the owning zone (None when not zone-scoped)
        ad_computer_dn: DN of the underlying AD machine account
        is_workstation_mode: Joined in workstation mode
        is_express_mode: Joined in express mode
        is_hierarchical: Profile lives in a hierarchical zone
        is_windows: Windows agent (never has UNIX profiles)
        is_joined_to_zone: Agent joined to the zone
        is_computer_zone_only: Only a computer zone exists, no joined agent
        is_orphan: Underlying AD identity missing or unreachable
        agent_version: Vendor formatted agent version string
    """
    KIND: ClassVar[str] = "Computers"

    zone: Optional[str] = None
    ad_computer_dn: Optional[str] = None
    is_workstation_mode: bool = False
    is_express_mode: bool = False
    is_hierarchical: bool = False
    is_windows: bool = False
    is_joined_to_zone: bool = False
    is_computer_zone_only: bool = False
    is_orphan: bool = False
    agent_version: Optional[str] = None


@dataclass
class ADComputer(DirectoryRecord):
    """The AD machine account behind a managed computer.

    Additional Attributes:
        enabled: Whether the account is enabled
        last_logon_timestamp: lastLogonTimestamp as FILETIME (0 = never)
    """
    KIND: ClassVar[str] = "ADComputers"

    enabled: bool = True
    last_logon_timestamp: int = 0

    @property
    def last_logon(self) -> Optional[datetime]:
        return filetime_to_datetime(self.last_logon_timestamp)


@dataclass
class ComputerRole(DirectoryRecord):
    """A named set of computers inside a zone."""
    KIND: ClassVar[str] = "ComputerRoles"

    zone: Optional[str] = None
    description: Optional[str] = None


@dataclass
class Profile(DirectoryRecord):
    """Identity mapping scoped to a zone or to a single computer.

    Additional Attributes:
        zone: DN of the zone the profile was defined in
        computer: DN of the computer the profile was defined for
        is_orphan: The AD identity behind the profile cannot be resolved
    """
    zone: Optional[str] = None
    computer: Optional[str] = None
    is_orphan: bool = False


@dataclass
class UserProfile(Profile):
    """UNIX user profile (uid, gid, home, shell)."""
    KIND: ClassVar[str] = "UserProfiles"

    uid: Optional[int] = None
    gid: Optional[int] = None
    home_directory: Optional[str] = None
    shell: Optional[str] = None


@dataclass
class GroupProfile(Profile):
    """UNIX group profile."""
    KIND: ClassVar[str] = "GroupProfiles"

    gid: Optional[int] = None


@dataclass
class Role(DirectoryRecord):
    """A named bundle of rights defined in a zone."""
    KIND: ClassVar[str] = "Roles"

    zone: Optional[str] = None
    description: Optional[str] = None


@dataclass
class RoleAssignment(DirectoryRecord):
    """A role granted to a trustee at exactly one scope.

    Additional Attributes:
        role: Name of the assigned role
        trustee: Trustee name or DN
        trustee_type: Kind of trustee
        zone / computer_role / computer: The single scope of the assignment
        is_role_orphaned: The assigned role no longer exists
        is_trustee_orphaned: The trustee can no longer be resolved
    """
    KIND: ClassVar[str] = "RoleAssignments"

    role: Optional[str] = None
    trustee: Optional[str] = None
    trustee_type: TrusteeType = TrusteeType.UNKNOWN
    zone: Optional[str] = None
    computer_role: Optional[str] = None
    computer: Optional[str] = None
    is_role_orphaned: bool = False
    is_trustee_orphaned: bool = False

    def __post_init__(self):
        if not isinstance(self.trustee_type, TrusteeType):
            self.trustee_type = TrusteeType.from_string(self.trustee_type)
        scopes = [s for s in (self.zone, self.computer_role, self.computer) if s]
        if len(scopes) != 1:
            raise ValueError(
                f"Role assignment {self.name} must have exactly one scope, got {len(scopes)}"
            )

    @property
    def scope_kind(self) -> str:
        if self.zone:
            return "zone"
        if self.computer_role:
            return "computer_role"
        return "computer"


@dataclass
class CommandRight(DirectoryRecord):
    """A privileged command grant defined in a zone."""
    KIND: ClassVar[str] = "CommandRights"

    zone: Optional[str] = None
    command: Optional[str] = None
    description: Optional[str] = None


@dataclass
class VersionLifecycle:
    """Lifecycle dates of the release an agent version maps to.

    Attributes:
        code: Version code that was looked up
        matched_code: Nearest code at or below it found in the support matrix
        released: Release date of matched_code
        core_end: End of core support (release + core years)
        extended_end: End of extended support (release + extended years)
    """
    code: int
    matched_code: int
    released: date
    core_end: date
    extended_end: date

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "matched_code": self.matched_code,
            "released": self.released.isoformat(),
            "core_end": self.core_end.isoformat(),
            "extended_end": self.extended_end.isoformat(),
        }


@dataclass
class DeploymentSnapshot:
    """Every collection fetched during one run.

    Design Decision:
        The classifier only ever sees this object. Collections that were
        not fetched (agents-only mode) are simply empty.
    """
    zones: list = field(default_factory=list)
    computers: list = field(default_factory=list)
    ad_computers: list = field(default_factory=list)
    expired_computers: list = field(default_factory=list)
    computer_roles: list = field(default_factory=list)
    user_profiles: list = field(default_factory=list)
    group_profiles: list = field(default_factory=list)
    roles: list = field(default_factory=list)
    role_assignments: list = field(default_factory=list)
    command_rights: list = field(default_factory=list)

    def sizes(self) -> dict:
        """Collection name -> record count."""
        return {f.name: len(getattr(self, f.name)) for f in fields(self)}


@dataclass
class HealthCheckResult:
    """Complete health check output.

    Attributes:
        domain: Domain that was assessed
        counts: Ordered bucket key -> count
        labels: Bucket key -> display label
        sections: Ordered section name -> bucket keys in that section
        agent_versions: Agent version string -> number of computers
        version_details: Lifecycle details per distinct version code
        support_cutoffs: Core and extended cutoff version codes
        zone_stats: Zone hierarchy statistics
        agents_only: Whether the run was restricted to agent sections
        report_path: Path of the JSON report, when written
        metadata: Timestamp, collection sizes and other run data
    """
    domain: str
    counts: dict = field(default_factory=dict)
    labels: dict = field(default_factory=dict)
    sections: dict = field(default_factory=dict)
    agent_versions: dict = field(default_factory=dict)
    version_details: list = field(default_factory=list)
    support_cutoffs: dict = field(default_factory=dict)
    zone_stats: dict = field(default_factory=dict)
    agents_only: bool = False
    report_path: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    def count(self, key: str) -> int:
        return self.counts.get(key, 0)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "domain": self.domain,
            "agents_only": self.agents_only,
            "counts": self.counts,
            "labels": self.labels,
            "sections": self.sections,
            "agent_versions": self.agent_versions,
            "version_details": [d.to_dict() for d in self.version_details],
            "support_cutoffs": self.support_cutoffs,
            "zone_stats": self.zone_stats,
            "report_path": self.report_path,
            "metadata": self.metadata,
        }
