"""
LDAP Directory Client
=====================

ldap3 implementation of DirectoryQueryAPI.

Zone data lives in Active Directory as vendor objects:
- Zones: containers whose displayName starts with "$CimsZoneVersion"
- Under each zone (or computer zone): "Computers", "Computer Roles", "Users",
  "Groups", "Role Assignments" containers, and an "Authorization" container
  holding "Roles" and "Commands"
- Entries are serviceConnectionPoint objects; their multi-valued keywords
  attribute carries "name:value" pairs (parentLink, agentVersion, uid...)

Design Decisions:
-----------------
1. Uses ldap3 library for cross-platform LDAP support
2. NTLM bind first, simple bind fallback, anonymous when no credentials
3. Paged searches so large zones do not hit the server size limit
4. Bind failures raise DirectoryAuthError; a missing object raises
   ObjectNotFoundError; every other failure raises DirectoryQueryError so the
   fetcher can skip just that scope unit

Security Consideration:
This module performs read-only operations. No modifications are made to the AD.
"""

from datetime import datetime, timezone
from typing import Optional

# LDAP library
try:
    from ldap3 import Server, Connection, ALL, SUBTREE, LEVEL, BASE, NTLM, SIMPLE
    from ldap3.core.exceptions import LDAPBindError, LDAPException
    LDAP3_AVAILABLE = True
except ImportError:
    LDAP3_AVAILABLE = False

from ..config import LDAPConfig
from ..exceptions import (
    DirectoryAuthError, DirectoryQueryError, MissingDependencyError, ObjectNotFoundError
)
from ..logger import get_logger, get_secure_logger
from ..model.schemas import (
    ADComputer, Computer, ComputerRole, CommandRight, GroupProfile,
    Role, RoleAssignment, TrusteeType, UserProfile, Zone, datetime_to_filetime
)
from .directory_api import ADCredentials, AssignmentScope, DirectoryQueryAPI, ProfileScope

logger = get_logger(__name__)
secure_logger = get_secure_logger()

ZONE_MARKER = "$CimsZoneVersion"
NO_SUCH_OBJECT = 32
INVALID_CREDENTIALS = 49

ENTRY_ATTRIBUTES = ["cn", "name", "description", "keywords", "managedBy", "displayName"]


def parse_keywords(values) -> dict[str, list[str]]:
    """Split "name:value" keyword strings into name.lower() -> values.

    Keywords without a colon map to an empty value list.
    """
    result: dict[str, list[str]] = {}
    for raw in values or []:
        text = str(raw)
        if ":" in text:
            key, value = text.split(":", 1)
            result.setdefault(key.strip().lower(), []).append(value.strip())
        else:
            result.setdefault(text.strip().lower(), [])
    return result


def _first(keywords: dict, key: str) -> Optional[str]:
    values = keywords.get(key.lower())
    return values[0] if values else None


def _flag(keywords: dict, key: str) -> bool:
    if key.lower() not in keywords:
        return False
    value = _first(keywords, key)
    return value is None or value.lower() in ("true", "1", "yes")


def _int(value: Optional[str]) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


def _filetime(value) -> int:
    """Normalize lastLogonTimestamp (raw int, digit string or ldap3 datetime)."""
    if value is None or value == []:
        return 0
    if isinstance(value, list):
        value = value[0]
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        if value.year <= 1601:
            return 0
        return datetime_to_filetime(value)
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def canonical_name(dn: str) -> str:
    """Build a canonical name (corp.local/Zones/Global) from a DN."""
    parts = [p.split("=", 1) for p in dn.split(",") if "=" in p]
    domain = ".".join(v for k, v in parts if k.strip().upper() == "DC")
    path = [v for k, v in parts if k.strip().upper() != "DC"]
    return "/".join([domain] + list(reversed(path)))


class LDAPDirectoryClient(DirectoryQueryAPI):
    """Directory query layer over LDAP.

    Usage:
        client = LDAPDirectoryClient(
            server="dc01.corp.local",
            domain="corp.local",
            username="auditor",
            password="..."
        )
        zones = client.list_zones("corp.local")
        client.disconnect()
    """

    def __init__(
        self,
        domain: str,
        server: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        config: Optional[LDAPConfig] = None
    ):
        """Initialize the client.

        Args:
            domain: Domain name (e.g., "corp.local")
            server: Domain controller; the domain name is used when omitted
            username: Username for authentication (domain\\user or user@domain)
            password: Password for authentication
            config: LDAPConfig object for connection settings
        """
        if not LDAP3_AVAILABLE:
            raise MissingDependencyError("ldap3 library is required. Install with: pip install ldap3")

        self.config = config or LDAPConfig()
        self.domain = domain
        self.server = server or domain
        self.username = username or self.config.username
        self.password = password or self.config.password

        self.connection = None
        self._alt_connections: dict[tuple, object] = {}
        self._exists_cache: dict[str, bool] = {}

        self.base_dn = ",".join([f"DC={part}" for part in domain.split(".")])

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------

    def _open(self, server_name: str, username: Optional[str], password: Optional[str]):
        port = self.config.port or (636 if self.config.use_ssl else 389)
        server = Server(
            server_name,
            port=port,
            use_ssl=self.config.use_ssl,
            get_info=ALL,
            connect_timeout=self.config.timeout
        )

        if not (username and password):
            logger.info("Connecting to %s:%d with the default identity", server_name, port)
            try:
                return Connection(server, auto_bind=True, receive_timeout=self.config.timeout)
            except LDAPBindError as e:
                raise DirectoryAuthError(f"Bind to {server_name} failed: {e}") from e
            except LDAPException as e:
                raise DirectoryQueryError(f"Cannot connect to {server_name}: {e}") from e

        if "\\" not in username and "@" not in username:
            ntlm_user = f"{self.domain.split('.')[0].upper()}\\{username}"
        else:
            ntlm_user = username

        logger.info("Connecting to %s:%d", server_name, port)
        secure_logger.info("Binding to %s as %s", server_name, ntlm_user)

        try:
            return Connection(
                server,
                user=ntlm_user,
                password=password,
                authentication=NTLM,
                auto_bind=True,
                receive_timeout=self.config.timeout
            )
        except LDAPBindError:
            secure_logger.info("NTLM bind as %s failed, trying simple bind", ntlm_user)
        except LDAPException as e:
            raise DirectoryQueryError(f"Cannot connect to {server_name}: {e}") from e

        if "@" in username:
            simple_user = username
        else:
            simple_user = username.split("\\")[-1] + f"@{self.domain}"
        try:
            return Connection(
                server,
                user=simple_user,
                password=password,
                authentication=SIMPLE,
                auto_bind=True,
                receive_timeout=self.config.timeout
            )
        except LDAPBindError as e:
            secure_logger.error("Bind to %s as %s rejected: %s", server_name, simple_user, e)
            raise DirectoryAuthError(f"Authentication to {server_name} failed for {simple_user}") from e
        except LDAPException as e:
            raise DirectoryQueryError(f"Cannot connect to {server_name}: {e}") from e

    def connect(self) -> None:
        """Establish the main connection (called lazily by every query)."""
        if self.connection is None:
            self.connection = self._open(self.server, self.username, self.password)
            logger.info("Connected to %s", self.server)

    def _connection_for(self, credentials: Optional[ADCredentials]):
        if credentials is None or not (credentials.has_identity or credentials.server):
            self.connect()
            return self.connection
        server = credentials.server or self.server
        username = credentials.username or self.username
        if server.lower() == self.server.lower() and (username or "").lower() == (self.username or "").lower():
            # same identity as the main connection
            self.connect()
            return self.connection
        key = (server, username)
        if key not in self._alt_connections:
            self._alt_connections[key] = self._open(server, username, credentials.password or self.password)
        return self._alt_connections[key]

    def disconnect(self) -> None:
        """Close every open LDAP connection."""
        for conn in [self.connection, *self._alt_connections.values()]:
            if conn is None:
                continue
            try:
                conn.unbind()
            except LDAPException as e:
                logger.debug("Unbind failed: %s", e)
        self.connection = None
        self._alt_connections.clear()

    # ------------------------------------------------------------------
    # Search helpers
    # ------------------------------------------------------------------

    def _search(self, base: str, ldap_filter: str, scope=None, attributes=None, connection=None) -> list:
        """Paged search returning entries as (dn, attributes) tuples.

        A missing search base returns an empty list: containers such as
        "Role Assignments" only exist once something was created in them.
        """
        conn = connection or self._connection_for(None)
        try:
            entries = conn.extend.standard.paged_search(
                search_base=base,
                search_filter=ldap_filter,
                search_scope=scope or SUBTREE,
                attributes=attributes or ENTRY_ATTRIBUTES,
                paged_size=self.config.page_size,
                generator=False
            )
        except LDAPException as e:
            if conn.result and conn.result.get("result") == NO_SUCH_OBJECT:
                return []
            raise DirectoryQueryError(f"Search under {base} failed: {e}") from e

        if conn.result and conn.result.get("result") == NO_SUCH_OBJECT:
            return []
        if conn.result and conn.result.get("result") == INVALID_CREDENTIALS:
            raise DirectoryAuthError(f"Search under {base} rejected: {conn.result.get('description')}")

        return [
            (str(e["dn"]), e.get("attributes", {}))
            for e in entries or []
            if e.get("type") == "searchResEntry"
        ]

    def _children(self, container: str, parent_dn: str) -> list:
        return self._search(
            f"CN={container},{parent_dn}",
            "(objectClass=serviceConnectionPoint)",
            scope=LEVEL
        )

    def _dn_exists(self, dn: Optional[str]) -> bool:
        if not dn:
            return False
        key = dn.lower()
        if key not in self._exists_cache:
            self._exists_cache[key] = bool(self._search(dn, "(objectClass=*)", scope=BASE, attributes=["cn"]))
        return self._exists_cache[key]

    @staticmethod
    def _name(dn: str, attrs: dict) -> str:
        name = attrs.get("name") or attrs.get("cn")
        if isinstance(name, list):
            name = name[0] if name else None
        if name:
            return str(name)
        return dn.split(",", 1)[0].split("=", 1)[-1]

    @staticmethod
    def _single(attrs: dict, attribute: str) -> Optional[str]:
        value = attrs.get(attribute)
        if isinstance(value, list):
            value = value[0] if value else None
        return str(value) if value else None

    # ------------------------------------------------------------------
    # DirectoryQueryAPI
    # ------------------------------------------------------------------

    def list_zones(self, domain: str) -> list[Zone]:
        base = ",".join([f"DC={part}" for part in domain.split(".")])
        entries = self._search(base, f"(&(objectClass=container)(displayName={ZONE_MARKER}*))")
        known = {dn.lower() for dn, _ in entries}

        zones = []
        for dn, attrs in entries:
            keywords = parse_keywords(attrs.get("keywords"))
            parent = _first(keywords, "parentLink")
            hierarchical = parent is not None or (_first(keywords, "zoneType") or "").lower() == "hierarchical"
            orphan_child = bool(parent) and parent.lower() not in known and not self._dn_exists(parent)
            schema = (_first(keywords, "schema") or "").lower()
            zones.append(Zone(
                name=self._name(dn, attrs),
                distinguished_name=dn,
                canonical_name=canonical_name(dn),
                is_hierarchical=hierarchical,
                parent=parent,
                is_orphan_child_zone=orphan_child,
                is_sfu=schema == "sfu",
                properties={
                    "description": self._single(attrs, "description") or "",
                    "version": (self._single(attrs, "displayName") or "").replace(ZONE_MARKER, ""),
                }
            ))
        return zones

    def list_computers(self, zone: Zone) -> list[Computer]:
        computers = []
        for dn, attrs in self._children("Computers", zone.distinguished_name):
            keywords = parse_keywords(attrs.get("keywords"))
            ad_dn = self._single(attrs, "managedBy")
            computers.append(Computer(
                name=self._name(dn, attrs),
                distinguished_name=dn,
                zone=zone.distinguished_name,
                ad_computer_dn=ad_dn,
                is_workstation_mode=(_first(keywords, "mode") or "").lower() == "workstation",
                is_express_mode=(_first(keywords, "mode") or "").lower() == "express",
                is_hierarchical=zone.is_hierarchical,
                is_windows=(_first(keywords, "platform") or "").lower() == "windows",
                is_joined_to_zone=_flag(keywords, "joined"),
                is_computer_zone_only=_flag(keywords, "computerZone"),
                is_orphan=not self._dn_exists(ad_dn),
                agent_version=_first(keywords, "agentVersion"),
            ))
        return computers

    def list_computer_roles(self, zone: Zone) -> list[ComputerRole]:
        return [
            ComputerRole(
                name=self._name(dn, attrs),
                distinguished_name=dn,
                zone=zone.distinguished_name,
                description=self._single(attrs, "description"),
            )
            for dn, attrs in self._search(
                f"CN=Computer Roles,{zone.distinguished_name}", "(objectClass=*)", scope=LEVEL
            )
        ]

    @staticmethod
    def _scope_keys(scope) -> dict:
        if isinstance(scope, Zone):
            return {"zone": scope.distinguished_name}
        if isinstance(scope, ComputerRole):
            return {"computer_role": scope.distinguished_name}
        return {"computer": scope.distinguished_name}

    def list_user_profiles(self, scope: ProfileScope) -> list[UserProfile]:
        profiles = []
        for dn, attrs in self._children("Users", scope.distinguished_name):
            keywords = parse_keywords(attrs.get("keywords"))
            profiles.append(UserProfile(
                name=self._name(dn, attrs),
                distinguished_name=dn,
                is_orphan=not self._dn_exists(_first(keywords, "parentLink")),
                uid=_int(_first(keywords, "uid")),
                gid=_int(_first(keywords, "gid")),
                home_directory=_first(keywords, "home"),
                shell=_first(keywords, "shell"),
                **self._scope_keys(scope)
            ))
        return profiles

    def list_group_profiles(self, scope: ProfileScope) -> list[GroupProfile]:
        profiles = []
        for dn, attrs in self._children("Groups", scope.distinguished_name):
            keywords = parse_keywords(attrs.get("keywords"))
            profiles.append(GroupProfile(
                name=self._name(dn, attrs),
                distinguished_name=dn,
                is_orphan=not self._dn_exists(_first(keywords, "parentLink")),
                gid=_int(_first(keywords, "gid")),
                **self._scope_keys(scope)
            ))
        return profiles

    def list_role_assignments(self, scope: AssignmentScope) -> list[RoleAssignment]:
        assignments = []
        for dn, attrs in self._children("Role Assignments", scope.distinguished_name):
            keywords = parse_keywords(attrs.get("keywords"))
            trustee_type = TrusteeType.from_string(_first(keywords, "trusteeType"))
            trustee = _first(keywords, "trustee")
            # only AD trustees can be checked against the directory
            trustee_orphaned = False
            if trustee_type in (TrusteeType.AD_USER, TrusteeType.AD_GROUP):
                trustee_orphaned = not self._dn_exists(trustee)
            assignments.append(RoleAssignment(
                name=self._name(dn, attrs),
                distinguished_name=dn,
                role=_first(keywords, "role"),
                trustee=trustee,
                trustee_type=trustee_type,
                is_role_orphaned=not self._dn_exists(_first(keywords, "roleLink")),
                is_trustee_orphaned=trustee_orphaned,
                **self._scope_keys(scope)
            ))
        return assignments

    def list_roles(self, zone: Zone) -> list[Role]:
        return [
            Role(
                name=self._name(dn, attrs),
                distinguished_name=dn,
                zone=zone.distinguished_name,
                description=self._single(attrs, "description"),
            )
            for dn, attrs in self._search(
                f"CN=Roles,CN=Authorization,{zone.distinguished_name}", "(objectClass=*)", scope=LEVEL
            )
        ]

    def list_command_rights(self, zone: Zone) -> list[CommandRight]:
        rights = []
        for dn, attrs in self._search(
            f"CN=Commands,CN=Authorization,{zone.distinguished_name}", "(objectClass=*)", scope=LEVEL
        ):
            keywords = parse_keywords(attrs.get("keywords"))
            rights.append(CommandRight(
                name=self._name(dn, attrs),
                distinguished_name=dn,
                zone=zone.distinguished_name,
                command=_first(keywords, "command"),
                description=self._single(attrs, "description"),
            ))
        return rights

    def get_computer_identity(
        self,
        distinguished_name: str,
        credentials: Optional[ADCredentials] = None
    ) -> ADComputer:
        conn = self._connection_for(credentials)
        entries = self._search(
            distinguished_name,
            "(objectClass=computer)",
            scope=BASE,
            attributes=["sAMAccountName", "userAccountControl", "lastLogonTimestamp"],
            connection=conn
        )
        if not entries:
            raise ObjectNotFoundError(distinguished_name)

        dn, attrs = entries[0]
        name = self._single(attrs, "sAMAccountName") or self._name(dn, attrs)
        uac = _int(self._single(attrs, "userAccountControl")) or 0
        return ADComputer(
            name=name[:-1] if name.endswith("$") else name,
            distinguished_name=dn,
            enabled=not (uac & 0x02),  # ACCOUNTDISABLE flag
            last_logon_timestamp=_filetime(attrs.get("lastLogonTimestamp")),
        )
