"""
Deployment Classifier
=====================

Turns fetched collections into the named diagnostic counts of the report.

Design Decisions:
-----------------
1. Every count is a Bucket: a predicate applied to one collection. The
   count is the number of records the predicate accepts
2. Buckets are not mutually exclusive. A role assignment with an orphaned
   AD user trustee counts under both "AD user" and "orphaned trustee"
3. Only the agent support buckets depend on anything besides their own
   record: the SupportMatrix cutoffs, computed once per run
4. No directory or cache access happens here; inputs are clean collections,
   possibly empty

Sections (report order):
- zones, computers, ad_computers, agents: always reported
- computer_roles, profiles, roles, role_assignments, command_rights:
  skipped in agents-only mode
"""

from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..model.schemas import (
    DeploymentSnapshot, HealthCheckResult, SupportTier, TrusteeType
)
from .support_matrix import SupportMatrix, parse_version_code

AGENT_SECTIONS = ("zones", "computers", "ad_computers", "agents")
ALL_SECTIONS = AGENT_SECTIONS + (
    "computer_roles", "profiles", "roles", "role_assignments", "command_rights"
)

SECTION_TITLES = {
    "zones": "Zones",
    "computers": "Computers",
    "ad_computers": "AD Computers",
    "agents": "Agent Support",
    "computer_roles": "Computer Roles",
    "profiles": "Profiles",
    "roles": "Roles",
    "role_assignments": "Role Assignments",
    "command_rights": "Command Rights",
}

UNKNOWN_VERSION = "Unknown"


@dataclass(frozen=True)
class Bucket:
    """One diagnostic count.

    Attributes:
        key: Stable identifier used in the JSON report
        label: Display label used in the text report
        section: Report section the count belongs to
        collection: DeploymentSnapshot attribute the predicate runs over
        predicate: Record -> whether it is counted
    """
    key: str
    label: str
    section: str
    collection: str
    predicate: Callable[[Any], bool]


def _always(_record) -> bool:
    return True


def _trustee(trustee_type: TrusteeType) -> Callable[[Any], bool]:
    return lambda a: a.trustee_type == trustee_type


STATIC_BUCKETS: list[Bucket] = [
    # Zones
    Bucket("zones", "Zones", "zones", "zones", _always),
    Bucket("hierarchical_zones", "Hierarchical Zones", "zones", "zones", lambda z: z.is_hierarchical),
    Bucket("classic_zones", "Classic Zones", "zones", "zones", lambda z: not z.is_hierarchical),
    Bucket("sfu_zones", "SFU Zones", "zones", "zones", lambda z: z.is_sfu),
    Bucket("top_level_zones", "Top-Level Hierarchical Zones", "zones", "zones",
           lambda z: z.is_hierarchical and z.is_top_level),
    Bucket("orphaned_child_zones", "Orphaned Child Zones", "zones", "zones",
           lambda z: z.is_orphan_child_zone),

    # Computers
    Bucket("computers", "Computers", "computers", "computers", _always),
    Bucket("zone_joined_computers", "Zone-Joined Computers", "computers", "computers",
           lambda c: c.is_joined_to_zone),
    Bucket("zone_only_computers", "Computer-Zone-Only Computers", "computers", "computers",
           lambda c: c.is_computer_zone_only),
    Bucket("workstation_mode_computers", "Workstation Mode Computers", "computers", "computers",
           lambda c: c.is_workstation_mode),
    Bucket("express_mode_computers", "Express Mode Computers", "computers", "computers",
           lambda c: c.is_express_mode),
    Bucket("hierarchical_computers", "Hierarchical Computers", "computers", "computers",
           lambda c: c.is_hierarchical),
    Bucket("windows_computers", "Windows Computers", "computers", "computers", lambda c: c.is_windows),
    Bucket("unix_computers", "UNIX Computers", "computers", "computers", lambda c: not c.is_windows),
    Bucket("orphaned_computers", "Orphaned Computers", "computers", "computers", lambda c: c.is_orphan),

    # AD computers
    Bucket("ad_computers", "AD Computers", "ad_computers", "ad_computers", _always),
    Bucket("disabled_ad_computers", "Disabled AD Computers", "ad_computers", "ad_computers",
           lambda c: not c.enabled),
    Bucket("expired_computers", "Expired Computers", "ad_computers", "expired_computers", _always),

    # Computer roles
    Bucket("computer_roles", "Computer Roles", "computer_roles", "computer_roles", _always),

    # Profiles
    Bucket("user_profiles", "User Profiles", "profiles", "user_profiles", _always),
    Bucket("orphaned_user_profiles", "Orphaned User Profiles", "profiles", "user_profiles",
           lambda p: p.is_orphan),
    Bucket("group_profiles", "Group Profiles", "profiles", "group_profiles", _always),
    Bucket("orphaned_group_profiles", "Orphaned Group Profiles", "profiles", "group_profiles",
           lambda p: p.is_orphan),

    # Roles
    Bucket("roles", "Roles", "roles", "roles", _always),

    # Role assignments
    Bucket("role_assignments", "Role Assignments", "role_assignments", "role_assignments", _always),
    Bucket("zone_scoped_assignments", "Zone-Scoped Assignments", "role_assignments", "role_assignments",
           lambda a: a.scope_kind == "zone"),
    Bucket("computer_role_scoped_assignments", "Computer-Role-Scoped Assignments", "role_assignments",
           "role_assignments", lambda a: a.scope_kind == "computer_role"),
    Bucket("computer_scoped_assignments", "Computer-Scoped Assignments", "role_assignments",
           "role_assignments", lambda a: a.scope_kind == "computer"),
    Bucket("orphaned_role_assignments", "Assignments With Orphaned Role", "role_assignments",
           "role_assignments", lambda a: a.is_role_orphaned),
    Bucket("orphaned_trustee_assignments", "Assignments With Orphaned Trustee", "role_assignments",
           "role_assignments", lambda a: a.is_trustee_orphaned),
    Bucket("ad_user_assignments", "AD User Assignments", "role_assignments", "role_assignments",
           _trustee(TrusteeType.AD_USER)),
    Bucket("ad_group_assignments", "AD Group Assignments", "role_assignments", "role_assignments",
           _trustee(TrusteeType.AD_GROUP)),
    Bucket("local_unix_user_assignments", "Local UNIX User Assignments", "role_assignments",
           "role_assignments", _trustee(TrusteeType.LOCAL_UNIX_USER)),
    Bucket("local_unix_group_assignments", "Local UNIX Group Assignments", "role_assignments",
           "role_assignments", _trustee(TrusteeType.LOCAL_UNIX_GROUP)),
    Bucket("local_windows_user_assignments", "Local Windows User Assignments", "role_assignments",
           "role_assignments", _trustee(TrusteeType.LOCAL_WINDOWS_USER)),
    Bucket("local_windows_group_assignments", "Local Windows Group Assignments", "role_assignments",
           "role_assignments", _trustee(TrusteeType.LOCAL_WINDOWS_GROUP)),
    Bucket("all_ad_users_assignments", "All AD Users Assignments", "role_assignments",
           "role_assignments", _trustee(TrusteeType.ALL_AD_USERS)),
    Bucket("all_unix_users_assignments", "All UNIX Users Assignments", "role_assignments",
           "role_assignments", _trustee(TrusteeType.ALL_UNIX_USERS)),
    Bucket("all_windows_users_assignments", "All Windows Users Assignments", "role_assignments",
           "role_assignments", _trustee(TrusteeType.ALL_WINDOWS_USERS)),

    # Command rights
    Bucket("command_rights", "Command Rights", "command_rights", "command_rights", _always),
]


def role_buckets(predefined_descriptions) -> list[Bucket]:
    """Predefined/custom role buckets for a set of vendor role descriptions."""
    markers = tuple(d.lower() for d in predefined_descriptions or ())

    def is_predefined(role) -> bool:
        description = (role.description or "").strip().lower()
        return bool(description) and any(description.startswith(m) for m in markers)

    return [
        Bucket("predefined_roles", "Predefined Roles", "roles", "roles", is_predefined),
        Bucket("custom_roles", "Custom Roles", "roles", "roles", lambda r: not is_predefined(r)),
    ]


def support_buckets(matrix: SupportMatrix) -> list[Bucket]:
    """Agent support tier buckets for the matrix cutoffs."""
    def tier(expected: SupportTier) -> Callable[[Any], bool]:
        return lambda c: matrix.classify_version(c.agent_version) == expected

    return [
        Bucket("core_support_agents", "Core Support", "agents", "computers", tier(SupportTier.CORE)),
        Bucket("extended_support_agents", "Extended Support", "agents", "computers",
               tier(SupportTier.EXTENDED)),
        Bucket("out_of_support_agents", "Out of Support", "agents", "computers",
               tier(SupportTier.OUT_OF_SUPPORT)),
        Bucket("unknown_version_agents", "Unknown Version", "agents", "computers",
               tier(SupportTier.UNKNOWN)),
    ]


def build_buckets(matrix: SupportMatrix, predefined_descriptions=None) -> list[Bucket]:
    """Full bucket registry in report order."""
    buckets = STATIC_BUCKETS + role_buckets(predefined_descriptions) + support_buckets(matrix)
    return sorted(buckets, key=lambda b: ALL_SECTIONS.index(b.section))


class DeploymentClassifier:
    """Applies the bucket registry to a DeploymentSnapshot.

    Usage:
        classifier = DeploymentClassifier(SupportMatrix())
        counts = classifier.count(snapshot)
        result = classifier.classify(snapshot, domain="corp.local")
    """

    def __init__(
        self,
        matrix: SupportMatrix,
        predefined_role_descriptions: Optional[list] = None
    ):
        self.matrix = matrix
        self.buckets = build_buckets(matrix, predefined_role_descriptions)

    def sections_for(self, agents_only: bool = False) -> tuple:
        return AGENT_SECTIONS if agents_only else ALL_SECTIONS

    def count(self, snapshot: DeploymentSnapshot, agents_only: bool = False) -> dict[str, int]:
        """Ordered bucket key -> number of matching records."""
        sections = self.sections_for(agents_only)
        return {
            bucket.key: sum(1 for record in getattr(snapshot, bucket.collection) if bucket.predicate(record))
            for bucket in self.buckets
            if bucket.section in sections
        }

    def agent_versions(self, snapshot: DeploymentSnapshot) -> dict[str, int]:
        """Agent version string -> number of computers, most common first."""
        counter = Counter(
            c.agent_version if parse_version_code(c.agent_version) is not None else UNKNOWN_VERSION
            for c in snapshot.computers
        )
        return dict(counter.most_common())

    def version_details(self, snapshot: DeploymentSnapshot) -> list:
        """Lifecycle of each distinct version code found, newest first.

        Codes without any release at or below them are left out.
        """
        codes = {parse_version_code(c.agent_version) for c in snapshot.computers}
        details = []
        for code in sorted((c for c in codes if c is not None), reverse=True):
            lifecycle = self.matrix.lifecycle(code)
            if lifecycle is not None:
                details.append(lifecycle)
        return details

    def classify(
        self,
        snapshot: DeploymentSnapshot,
        domain: str,
        agents_only: bool = False
    ) -> HealthCheckResult:
        """Build the counted result for one run."""
        sections = self.sections_for(agents_only)
        counts = self.count(snapshot, agents_only)

        return HealthCheckResult(
            domain=domain,
            counts=counts,
            labels={b.key: b.label for b in self.buckets if b.key in counts},
            sections={
                section: [b.key for b in self.buckets if b.section == section]
                for section in sections
            },
            agent_versions=self.agent_versions(snapshot),
            version_details=self.version_details(snapshot),
            support_cutoffs=self.matrix.cutoffs(),
            agents_only=agents_only,
        )


def aggregate(
    snapshot: DeploymentSnapshot,
    matrix: SupportMatrix,
    agents_only: bool = False,
    predefined_role_descriptions: Optional[list] = None
) -> dict[str, int]:
    """Named counts for a snapshot; shorthand for DeploymentClassifier.count."""
    return DeploymentClassifier(matrix, predefined_role_descriptions).count(snapshot, agents_only)
