"""
zoneHealth Orchestration Module
===============================

Entry points that run the whole health check pipeline.
"""

from .runner import run_health_check, collect_snapshot, build_support_matrix
