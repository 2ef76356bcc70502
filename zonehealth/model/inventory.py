"""
zoneHealth Inventory
====================

NetworkX-based lookup arena over the fetched collections.

Design Decisions:
-----------------
1. Records reference each other by DN only. The inventory is where those
   keys are resolved, after the collections they point into are fetched
2. A NetworkX DiGraph holds the containment structure:
   - parent zone -> child zone
   - zone -> computer
   - zone -> computer role
   so hierarchy questions (depth, top-level zones, descendants) are graph queries
3. Name lookups inside a zone can be ambiguous. They go through
   first_by_discovery_order, the one place the tie-break rule lives

The graph is directed because containment has a direction: a zone contains
its computers and its child zones, never the other way round.
"""

import logging
from collections import defaultdict
from typing import Iterable, Optional, Sequence, TypeVar

import networkx as nx

from ..logger import get_logger
from .schemas import Computer, ComputerRole, Zone

logger = get_logger(__name__)

T = TypeVar("T")


def first_by_discovery_order(
    candidates: Sequence[T],
    description: str,
    log: Optional[logging.Logger] = None
) -> Optional[T]:
    """Resolve a name collision by taking the first match in discovery order.

    Discovery order is the order records came back from the directory (and
    therefore the order they sit in their collection). More than one
    candidate is logged as an error; the run continues with the first.

    Args:
        candidates: Matches in discovery order
        description: What was being resolved, for the log line
        log: Logger to report ambiguity on (module logger by default)

    Returns:
        The first candidate, or None when there is none
    """
    if not candidates:
        return None
    if len(candidates) > 1:
        (log or logger).error(
            "%d objects match %s; using the first one found", len(candidates), description
        )
    return candidates[0]


class Inventory:
    """Lookup tables and containment graph built from fetched collections.

    Usage:
        inventory = Inventory(zones, computers, computer_roles)
        role = inventory.resolve_computer_role(zone_dn, "web-servers")
        depth = inventory.zone_depth(zone_dn)
        stats = inventory.zone_stats()
    """

    def __init__(
        self,
        zones: Iterable[Zone] = (),
        computers: Iterable[Computer] = (),
        computer_roles: Iterable[ComputerRole] = ()
    ):
        self._graph = nx.DiGraph()

        self._zones: dict[str, Zone] = {}
        self._computers: dict[str, Computer] = {}
        self._computer_roles: dict[str, ComputerRole] = {}

        # (zone dn, name.lower()) -> records in discovery order
        self._computers_by_name: dict[tuple, list] = defaultdict(list)
        self._roles_by_name: dict[tuple, list] = defaultdict(list)

        for zone in zones:
            self.add_zone(zone)
        for computer in computers:
            self.add_computer(computer)
        for role in computer_roles:
            self.add_computer_role(role)
        self._link_zone_parents()

    @property
    def nx_graph(self) -> nx.DiGraph:
        """Access underlying NetworkX graph for advanced operations."""
        return self._graph

    @staticmethod
    def _key(dn: Optional[str]) -> str:
        return (dn or "").lower()

    def add_zone(self, zone: Zone) -> None:
        key = self._key(zone.distinguished_name or zone.name)
        # first zone with a given DN wins
        if key in self._zones:
            return
        self._zones[key] = zone
        self._graph.add_node(key, kind="zone", name=zone.name)

    def add_computer(self, computer: Computer) -> None:
        key = self._key(computer.distinguished_name or computer.name)
        self._computers.setdefault(key, computer)
        self._graph.add_node(key, kind="computer", name=computer.name)
        if computer.zone:
            zone_key = self._key(computer.zone)
            self._graph.add_edge(zone_key, key, relation="contains")
        self._computers_by_name[(self._key(computer.zone), computer.name.lower())].append(computer)

    def add_computer_role(self, role: ComputerRole) -> None:
        key = self._key(role.distinguished_name or f"{role.zone}/{role.name}")
        self._computer_roles.setdefault(key, role)
        self._graph.add_node(key, kind="computer_role", name=role.name)
        if role.zone:
            self._graph.add_edge(self._key(role.zone), key, relation="contains")
        self._roles_by_name[(self._key(role.zone), role.name.lower())].append(role)

    def _link_zone_parents(self) -> None:
        for key, zone in self._zones.items():
            if zone.parent and self._key(zone.parent) in self._zones:
                self._graph.add_edge(self._key(zone.parent), key, relation="parent")

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def zone(self, dn: Optional[str]) -> Optional[Zone]:
        return self._zones.get(self._key(dn))

    def computer(self, dn: Optional[str]) -> Optional[Computer]:
        return self._computers.get(self._key(dn))

    def computer_role(self, dn: Optional[str]) -> Optional[ComputerRole]:
        return self._computer_roles.get(self._key(dn))

    def resolve_computer_role(self, zone_dn: Optional[str], name: str) -> Optional[ComputerRole]:
        """Find a computer role by name inside a zone (first match wins)."""
        matches = self._roles_by_name.get((self._key(zone_dn), name.lower()), [])
        return first_by_discovery_order(matches, f"computer role '{name}' in zone {zone_dn}")

    def resolve_computer(self, zone_dn: Optional[str], name: str) -> Optional[Computer]:
        """Find a computer by name inside a zone (first match wins)."""
        matches = self._computers_by_name.get((self._key(zone_dn), name.lower()), [])
        return first_by_discovery_order(matches, f"computer '{name}' in zone {zone_dn}")

    # ------------------------------------------------------------------
    # Hierarchy
    # ------------------------------------------------------------------

    def _zone_subgraph(self) -> nx.DiGraph:
        return self._graph.subgraph(self._zones.keys())

    def root_zones(self) -> list[Zone]:
        """Zones with no resolvable parent, in discovery order."""
        sub = self._zone_subgraph()
        return [zone for key, zone in self._zones.items() if sub.in_degree(key) == 0]

    def zone_depth(self, dn: str) -> int:
        """Number of parent links between a zone and its root (0 for a root)."""
        key = self._key(dn)
        if key not in self._zones:
            return 0
        sub = self._zone_subgraph()
        return len(nx.ancestors(sub, key))

    def child_zones(self, dn: str) -> list[Zone]:
        key = self._key(dn)
        if key not in self._zones:
            return []
        sub = self._zone_subgraph()
        return [self._zones[child] for child in sub.successors(key)]

    def computers_in_zone(self, dn: str) -> list[Computer]:
        key = self._key(dn)
        if key not in self._graph:
            return []
        return [
            self._computers[n] for n in self._graph.successors(key)
            if self._graph.nodes[n].get("kind") == "computer" and n in self._computers
        ]

    def zone_stats(self) -> dict:
        """Hierarchy statistics for the report."""
        if not self._zones:
            return {"zones": 0, "root_zones": 0, "max_depth": 0, "largest_zones": []}

        sub = self._zone_subgraph()
        max_depth = 0
        if nx.is_directed_acyclic_graph(sub):
            max_depth = nx.dag_longest_path_length(sub)
        else:
            logger.warning("Zone parent links form a cycle; depth not computed")

        sizes = [
            (zone.name, len(self.computers_in_zone(key)))
            for key, zone in self._zones.items()
        ]
        sizes.sort(key=lambda item: item[1], reverse=True)

        return {
            "zones": len(self._zones),
            "root_zones": len(self.root_zones()),
            "max_depth": max_depth,
            "largest_zones": [{"zone": name, "computers": n} for name, n in sizes[:5] if n],
        }
