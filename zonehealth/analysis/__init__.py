"""
zoneHealth Analysis Module
==========================

Deterministic classification of the fetched deployment.

Components:
- support_matrix.py: Agent release table, support cutoffs, lifecycle lookup
- classifier.py: Diagnostic bucket registry and aggregation

Design Philosophy:
- Pure functions of the fetched collections; no I/O
- Buckets overlap; each answers one question
"""

from .support_matrix import (
    SupportMatrix,
    DEFAULT_RELEASES,
    parse_version_code,
    format_version_code,
)
from .classifier import (
    Bucket,
    DeploymentClassifier,
    aggregate,
    build_buckets,
    AGENT_SECTIONS,
    ALL_SECTIONS,
    SECTION_TITLES,
)
