"""
zoneHealth Configuration Module
===============================

Centralized configuration management for the zoneHealth health check.
Supports environment variables for sensitive data (directory credentials).

Design Decision:
- Configuration is a dataclass tree that can be passed through the pipeline
- Support lifecycle windows are configuration, not constants, so a different
  vendor policy only needs a config change
- Cache, log and output paths are configurable for different environments
"""

import os
from dataclasses import dataclass, field
from typing import Optional
from pathlib import Path


@dataclass
class LDAPConfig:
    """Configuration for directory access.

    Attributes:
        use_ssl: Whether to use LDAPS (port 636) vs LDAP (port 389)
        port: Explicit port (auto-detected from use_ssl when None)
        page_size: Page size for LDAP queries
        timeout: Connection timeout in seconds
        username: Account used for AD lookups (loaded from environment if not provided)
        password: Password for that account (loaded from environment if not provided)
    """
    use_ssl: bool = False
    port: Optional[int] = None
    page_size: int = 1000
    timeout: int = 30
    username: Optional[str] = None
    password: Optional[str] = None

    def __post_init__(self):
        if self.port is None:
            self.port = 636 if self.use_ssl else 389
        if self.username is None:
            self.username = os.environ.get("ZONEHEALTH_USERNAME")
        if self.password is None:
            self.password = os.environ.get("ZONEHEALTH_PASSWORD")


@dataclass
class CacheConfig:
    """Configuration for the on-disk collection cache.

    Attributes:
        cache_dir: Directory holding the {domain}-{kind} artifacts
    """
    cache_dir: str = "cache"


@dataclass
class SupportConfig:
    """Configuration for the agent support lifecycle.

    Attributes:
        core_years: Years after release during which a version has core support
        extended_years: Years after release during which a version has extended support
        version_floor: Lowest version code the lifecycle lookup will descend to
        matrix_file: Optional JSON file replacing the bundled release table
    """
    core_years: int = 3
    extended_years: int = 5
    version_floor: int = 100
    matrix_file: Optional[str] = None


@dataclass
class AnalysisConfig:
    """Configuration for classification.

    Attributes:
        expired_after_days: AD computers not logged on for this many days are expired
        predefined_role_descriptions: Role descriptions shipped by the vendor;
            any role whose description matches one of these is predefined
    """
    expired_after_days: int = 60
    predefined_role_descriptions: list = field(default_factory=lambda: [
        "UNIX Login",
        "Windows Login",
        "Rescue - always permit login",
        "Listed",
        "Predefined role",
    ])


@dataclass
class OutputConfig:
    """Configuration for output and reporting.

    Attributes:
        output_dir: Directory for report files
        log_dir: Directory for the append-only log files
        generate_json: Whether to write the JSON report
    """
    output_dir: str = "output"
    log_dir: str = "logs"
    generate_json: bool = True


@dataclass
class ZoneHealthConfig:
    """Main configuration container for zoneHealth.

    Design Decision:
    This aggregates all sub-configurations into a single object that can be
    passed through the pipeline. Each module extracts the section it needs.

    Usage:
        config = ZoneHealthConfig()  # Uses all defaults
        config = ZoneHealthConfig(cache=CacheConfig(cache_dir="/tmp/zh"))
    """
    ldap: LDAPConfig = field(default_factory=LDAPConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    support: SupportConfig = field(default_factory=SupportConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    verbose: bool = False
    debug: bool = False

    @classmethod
    def from_dict(cls, config_dict: dict) -> "ZoneHealthConfig":
        """Create configuration from a dictionary.

        Useful for loading from JSON files or CLI arguments.
        """
        return cls(
            ldap=LDAPConfig(**config_dict.get("ldap", {})),
            cache=CacheConfig(**config_dict.get("cache", {})),
            support=SupportConfig(**config_dict.get("support", {})),
            analysis=AnalysisConfig(**config_dict.get("analysis", {})),
            output=OutputConfig(**config_dict.get("output", {})),
            verbose=config_dict.get("verbose", False),
            debug=config_dict.get("debug", False)
        )

    def to_dict(self) -> dict:
        """Convert configuration to dictionary for serialization.

        The password is never included.
        """
        from dataclasses import asdict
        data = asdict(self)
        data["ldap"]["password"] = None
        return data

    def ensure_directories(self) -> None:
        """Create the cache, log and output directories."""
        for directory in (self.cache.cache_dir, self.output.log_dir, self.output.output_dir):
            Path(directory).mkdir(parents=True, exist_ok=True)


# Default global configuration instance
_default_config: Optional[ZoneHealthConfig] = None


def get_config() -> ZoneHealthConfig:
    """Get the global configuration instance."""
    global _default_config
    if _default_config is None:
        _default_config = ZoneHealthConfig()
    return _default_config


def set_config(config: ZoneHealthConfig) -> None:
    """Set the global configuration instance."""
    global _default_config
    _default_config = config
