"""
zoneHealth Model Module
=======================

Typed records for zone deployment data and the lookup arena over them.

Key Components:
- schemas.py: Dataclasses for zones, computers, profiles, roles, assignments
- inventory.py: NetworkX-backed lookup tables and the first-match policy

Design Philosophy:
- Records reference each other by distinguished name only
- References are resolved through the Inventory once collections exist
"""

from .schemas import (
    TrusteeType,
    SupportTier,
    DirectoryRecord,
    Zone,
    Computer,
    ADComputer,
    ComputerRole,
    Profile,
    UserProfile,
    GroupProfile,
    Role,
    RoleAssignment,
    CommandRight,
    VersionLifecycle,
    DeploymentSnapshot,
    HealthCheckResult,
)
from .inventory import Inventory, first_by_discovery_order
