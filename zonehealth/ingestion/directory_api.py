"""
Directory Query Interface
=========================

The operations the collection fetcher needs from the directory.

Each list_* call returns zero or more typed records for one scope unit, or
raises DirectoryQueryError (per-unit failure), DirectoryAuthError (fatal) or
ObjectNotFoundError. Scopes are passed as already-fetched records; an
implementation uses their distinguished names to build its queries.

LDAPDirectoryClient (ldap_client.py) is the production implementation.
Tests substitute an in-memory one.
"""

from dataclasses import dataclass
from typing import Optional, Union

from ..model.schemas import (
    ADComputer, Computer, ComputerRole, CommandRight, GroupProfile,
    Role, RoleAssignment, UserProfile, Zone
)

ProfileScope = Union[Zone, Computer]
AssignmentScope = Union[Zone, ComputerRole, Computer]


@dataclass
class ADCredentials:
    """Alternate identity for AD lookups.

    Attributes:
        username: Domain user (DOMAIN\\user or user@domain)
        password: Password for that user
        server: Domain controller to query instead of the default one
    """
    username: Optional[str] = None
    password: Optional[str] = None
    server: Optional[str] = None

    @property
    def has_identity(self) -> bool:
        return bool(self.username and self.password)

    def __repr__(self) -> str:
        # never print the password
        return f"ADCredentials(username={self.username!r}, server={self.server!r})"


class DirectoryQueryAPI:
    """Read-only query surface of the zone directory."""

    def list_zones(self, domain: str) -> list[Zone]:
        raise NotImplementedError

    def list_computers(self, zone: Zone) -> list[Computer]:
        raise NotImplementedError

    def list_computer_roles(self, zone: Zone) -> list[ComputerRole]:
        raise NotImplementedError

    def list_user_profiles(self, scope: ProfileScope) -> list[UserProfile]:
        raise NotImplementedError

    def list_group_profiles(self, scope: ProfileScope) -> list[GroupProfile]:
        raise NotImplementedError

    def list_role_assignments(self, scope: AssignmentScope) -> list[RoleAssignment]:
        raise NotImplementedError

    def list_roles(self, zone: Zone) -> list[Role]:
        raise NotImplementedError

    def list_command_rights(self, zone: Zone) -> list[CommandRight]:
        raise NotImplementedError

    def get_computer_identity(
        self,
        distinguished_name: str,
        credentials: Optional[ADCredentials] = None
    ) -> ADComputer:
        raise NotImplementedError
