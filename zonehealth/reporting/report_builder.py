"""
Report Builder Module
=====================

Builds the health check report from a classified result.

The report contains:
- Diagnostic counts grouped by section
- Agent support cutoffs and lifecycle dates of the versions found
- Agent version distribution
- Zone hierarchy statistics

Design Decisions:
-----------------
1. Reports are structured data (JSON-serializable) first
2. The text report is rendered from the same HealthCheckResult
3. Sections left out in agents-only mode are simply absent
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..analysis.classifier import SECTION_TITLES
from ..analysis.support_matrix import format_version_code
from ..model.schemas import DeploymentSnapshot, HealthCheckResult


class ReportBuilder:
    """Finalizes and persists health check results.

    Usage:
        builder = ReportBuilder(output_dir="output")
        result = builder.build_report(result, snapshot, zone_stats)
        print(generate_text_report(result))
    """

    def __init__(self, output_dir: str = "output", generate_json: bool = True):
        """Initialize the report builder.

        Args:
            output_dir: Directory for output files
            generate_json: Whether build_report writes the JSON report
        """
        self.output_dir = Path(output_dir)
        self.generate_json = generate_json
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def build_report(
        self,
        result: HealthCheckResult,
        snapshot: Optional[DeploymentSnapshot] = None,
        zone_stats: Optional[dict] = None,
        metadata: Optional[dict] = None
    ) -> HealthCheckResult:
        """Attach run metadata to a result and save it.

        Args:
            result: Classified result
            snapshot: Collections the result was computed from
            zone_stats: Inventory zone hierarchy statistics
            metadata: Extra metadata (server, cache directory...)

        Returns:
            The same result, with report_path set when JSON is written
        """
        result.zone_stats = zone_stats or {}
        result.metadata.update({
            "timestamp": datetime.now().isoformat(),
            "collections": snapshot.sizes() if snapshot else {},
        })
        result.metadata.update(metadata or {})

        if self.generate_json:
            result.report_path = self._save_json_report(result)
        return result

    def _save_json_report(self, result: HealthCheckResult) -> str:
        """Save the result as JSON.

        Returns:
            Path to the saved file
        """
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        path = self.output_dir / f"zonehealth_{result.domain}_{timestamp}.json"
        with open(path, "w", encoding="utf-8") as f:
            json.dump(result.to_dict(), f, indent=2, default=str)
        return str(path)


def generate_text_report(result: HealthCheckResult) -> str:
    """Generate a plain text report.

    Args:
        result: HealthCheckResult to summarize

    Returns:
        Formatted text report
    """
    lines = [
        "=" * 60,
        "zoneHealth - Zone Deployment Health Check",
        "=" * 60,
        "",
        f"Domain: {result.domain}",
        f"Generated: {result.metadata.get('timestamp', 'Unknown')}",
    ]
    if result.agents_only:
        lines.append("Mode: agents only (profiles, roles and command rights not collected)")
    lines.append("")

    width = max((len(label) for label in result.labels.values()), default=20) + 2
    for section, keys in result.sections.items():
        lines.extend([
            SECTION_TITLES.get(section, section).upper(),
            "-" * 40,
        ])
        for key in keys:
            if key in result.counts:
                lines.append(f"  {result.labels.get(key, key):<{width}}{result.counts[key]:>8}")
        if section == "agents" and result.support_cutoffs:
            cutoffs = result.support_cutoffs
            lines.append(
                f"  (core support from {cutoffs.get('core_version')}, "
                f"extended support from {cutoffs.get('extended_version')}, "
                f"as of {cutoffs.get('as_of')})"
            )
        lines.append("")

    if result.agent_versions:
        lines.extend([
            "AGENT VERSIONS",
            "-" * 40,
        ])
        for version, count in result.agent_versions.items():
            lines.append(f"  {version:<{width}}{count:>8}")
        lines.append("")

    if result.version_details:
        lines.extend([
            "VERSION LIFECYCLE",
            "-" * 40,
        ])
        for detail in result.version_details:
            matched = ""
            if detail.matched_code != detail.code:
                matched = f" (as {format_version_code(detail.matched_code)})"
            lines.append(
                f"  {format_version_code(detail.code)}{matched}: released {detail.released.isoformat()}, "
                f"core support until {detail.core_end.isoformat()}, "
                f"extended support until {detail.extended_end.isoformat()}"
            )
        lines.append("")

    stats = result.zone_stats
    if stats:
        lines.extend([
            "ZONE HIERARCHY",
            "-" * 40,
            f"  Root zones: {stats.get('root_zones', 0)}",
            f"  Maximum depth: {stats.get('max_depth', 0)}",
        ])
        for entry in stats.get("largest_zones", []):
            lines.append(f"  {entry['zone']}: {entry['computers']} computers")
        lines.append("")

    lines.extend([
        "=" * 60,
        "End of Report",
        "=" * 60,
    ])

    return "\n".join(lines)
