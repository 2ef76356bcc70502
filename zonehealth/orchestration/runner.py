"""
Health Check Runner
===================

High-level entry point that runs one complete health check.

The pipeline is strictly sequential; each stage needs the previous one:
1. Zones
2. Computers (per zone)
3. AD computers (per non-orphaned computer) and the expired computers
   derived from them
4. Computer roles, user profiles, group profiles
5. Role assignments, roles, command rights
6. Classification, zone statistics and report generation

Stages 4 and 5 are skipped in agents-only mode.

Design Decisions:
-----------------
1. Single entry point (run_health_check) for the CLI and for tests
2. The directory API can be injected; the ldap3 client is built otherwise
3. Progress updates via callback, so nothing here prints
4. DirectoryAuthError and MissingDependencyError propagate to the caller;
   everything sealed before the failure stays in the cache for the next run
"""

from datetime import datetime, timezone
from typing import Callable, Optional, Union

from ..analysis.classifier import DeploymentClassifier
from ..analysis.support_matrix import SupportMatrix
from ..config import ZoneHealthConfig, get_config
from ..ingestion.cache_store import CacheStore
from ..ingestion.directory_api import ADCredentials, DirectoryQueryAPI
from ..ingestion.fetcher import CollectionFetcher, derive_expired_computers
from ..ingestion.ldap_client import LDAPDirectoryClient
from ..ingestion.progress import CallbackProgress, ProgressObserver
from ..logger import get_logger
from ..model.inventory import Inventory
from ..model.schemas import DeploymentSnapshot, HealthCheckResult
from ..reporting.report_builder import ReportBuilder

logger = get_logger(__name__)


def _build_config(config: Union[ZoneHealthConfig, dict, None]) -> ZoneHealthConfig:
    if config is None:
        return get_config()
    if isinstance(config, dict):
        return ZoneHealthConfig.from_dict(config)
    return config


def build_support_matrix(config: ZoneHealthConfig, now: Optional[datetime] = None) -> SupportMatrix:
    """Support matrix from the configured release file, or the bundled table."""
    options = {
        "now": now.date() if now else None,
        "core_years": config.support.core_years,
        "extended_years": config.support.extended_years,
        "floor": config.support.version_floor,
    }
    if config.support.matrix_file:
        return SupportMatrix.from_file(config.support.matrix_file, **options)
    return SupportMatrix(**options)


def collect_snapshot(
    fetcher: CollectionFetcher,
    agents_only: bool = False,
    now: Optional[datetime] = None,
    expired_after_days: int = 60
) -> DeploymentSnapshot:
    """Run every fetch stage in dependency order."""
    snapshot = DeploymentSnapshot()

    snapshot.zones = fetcher.fetch_zones()
    snapshot.computers = fetcher.fetch_computers(snapshot.zones)
    snapshot.ad_computers = fetcher.fetch_ad_computers(snapshot.computers)
    snapshot.expired_computers = derive_expired_computers(
        snapshot.ad_computers, now=now, max_age_days=expired_after_days
    )

    if agents_only:
        logger.info("Agents-only mode: skipping profiles, roles and command rights")
        return snapshot

    snapshot.computer_roles = fetcher.fetch_computer_roles(snapshot.zones)
    snapshot.user_profiles = fetcher.fetch_user_profiles(snapshot.zones, snapshot.computers)
    snapshot.group_profiles = fetcher.fetch_group_profiles(snapshot.zones, snapshot.computers)
    snapshot.role_assignments = fetcher.fetch_role_assignments(
        snapshot.zones, snapshot.computer_roles, snapshot.computers
    )
    snapshot.roles = fetcher.fetch_roles(snapshot.zones)
    snapshot.command_rights = fetcher.fetch_command_rights(snapshot.zones)
    return snapshot


def run_health_check(
    domain: str,
    server: Optional[str] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
    agents_only: bool = False,
    config: Union[ZoneHealthConfig, dict, None] = None,
    api: Optional[DirectoryQueryAPI] = None,
    progress_callback: Optional[Callable[[str], None]] = None,
    clear_cache: bool = False,
    now: Optional[datetime] = None
) -> HealthCheckResult:
    """Main entry point for running a health check.

    Args:
        domain: Domain to assess (e.g., "corp.local")
        server: Domain controller to query (defaults to the domain name)
        username: Alternate identity for directory and AD lookups
        password: Password for that identity
        agents_only: Only collect zones, computers and agents
        config: ZoneHealthConfig or configuration dictionary
        api: Directory query implementation (ldap3 client when omitted)
        progress_callback: Receives progress lines
        clear_cache: Remove cached collections for the domain first
        now: Reference time (naive UTC) for expiry and support cutoffs

    Returns:
        HealthCheckResult with all counts and the report path

    Example:
        result = run_health_check("corp.local", server="dc01.corp.local")
        print(result.count("orphaned_computers"))
    """
    zh_config = _build_config(config)
    zh_config.ensure_directories()
    now = now or datetime.now(timezone.utc).replace(tzinfo=None)

    cache = CacheStore(zh_config.cache.cache_dir, domain)
    if clear_cache:
        removed = cache.clear()
        logger.info("Cleared %d cached collections for %s", removed, domain)

    progress = CallbackProgress(progress_callback, verbose=zh_config.verbose) \
        if progress_callback else ProgressObserver()

    credentials = None
    if username or server:
        credentials = ADCredentials(username=username, password=password, server=server)

    owns_api = api is None
    if owns_api:
        api = LDAPDirectoryClient(
            domain=domain,
            server=server,
            username=username,
            password=password,
            config=zh_config.ldap
        )

    logger.info("Starting health check of %s%s", domain, " (agents only)" if agents_only else "")
    try:
        fetcher = CollectionFetcher(api, cache, domain, credentials=credentials, progress=progress)
        snapshot = collect_snapshot(
            fetcher,
            agents_only=agents_only,
            now=now,
            expired_after_days=zh_config.analysis.expired_after_days
        )
    finally:
        if owns_api:
            api.disconnect()

    matrix = build_support_matrix(zh_config, now)
    classifier = DeploymentClassifier(matrix, zh_config.analysis.predefined_role_descriptions)
    result = classifier.classify(snapshot, domain=domain, agents_only=agents_only)

    inventory = Inventory(snapshot.zones, snapshot.computers, snapshot.computer_roles)
    builder = ReportBuilder(zh_config.output.output_dir, generate_json=zh_config.output.generate_json)
    result = builder.build_report(
        result,
        snapshot=snapshot,
        zone_stats=inventory.zone_stats(),
        metadata={
            "server": server or domain,
            "cache_dir": str(cache.cache_dir),
        }
    )

    logger.info("Health check of %s complete", domain)
    return result
