#!/usr/bin/env python3
"""
zoneHealth - Zone Deployment Inventory and Health Check
=======================================================

Command-line interface for running a health check.

Usage:
    # Full health check with the current identity
    python -m zonehealth -d corp.local

    # Explicit domain controller and credentials
    python -m zonehealth -d corp.local -s dc01.corp.local -u CORP\\auditor -p Password123

    # Agents only, ignoring anything cached by a previous run
    python -m zonehealth -d corp.local --agents-only --clear-cache

Options:
    --domain, -d        Domain to assess (e.g., corp.local)
    --server, -s        Domain controller to query
    --username, -u      Alternate identity for directory and AD lookups
    --password, -p      Password for that identity
    --agents-only       Only collect zones, computers and agents
    --output, -o        Output directory (default: ./output)
    --cache-dir         Cache directory (default: ./cache)
    --clear-cache       Remove cached collections for the domain first
    --matrix            JSON file replacing the bundled agent release table
    --log-dir           Log directory (default: ./logs)
    --verbose, -v       Verbose output

Environment Variables:
    ZONEHEALTH_USERNAME   Default username for directory access
    ZONEHEALTH_PASSWORD   Default password for directory access
"""

import argparse
import logging
import sys

from . import __version__
from .exceptions import DirectoryAuthError, MissingDependencyError
from .logger import configure_logging, get_logger, get_secure_logger
from .orchestration.runner import run_health_check
from .reporting.report_builder import generate_text_report

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zonehealth",
        description="zoneHealth - Zone Deployment Inventory and Health Check",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Full health check
  %(prog)s -d corp.local -s dc01.corp.local

  # With alternate credentials
  %(prog)s -d corp.local -u CORP\\auditor -p Password123

  # Agents only
  %(prog)s -d corp.local --agents-only
        """
    )

    # Directory options
    ldap_group = parser.add_argument_group("Directory")
    ldap_group.add_argument(
        "-d", "--domain",
        required=True,
        help="Domain name (e.g., corp.local)"
    )
    ldap_group.add_argument(
        "-s", "--server",
        help="Domain controller IP address or hostname"
    )
    ldap_group.add_argument(
        "-u", "--username",
        help="Alternate username for directory and AD computer lookups"
    )
    ldap_group.add_argument(
        "-p", "--password",
        help="Password for the alternate username"
    )

    # Collection options
    collection_group = parser.add_argument_group("Collection")
    collection_group.add_argument(
        "--agents-only",
        dest="agents_only",
        action="store_true",
        help="Only collect zones, computers and agents"
    )
    collection_group.add_argument(
        "--cache-dir",
        dest="cache_dir",
        default="cache",
        help="Directory for cached collections (default: ./cache)"
    )
    collection_group.add_argument(
        "--clear-cache",
        dest="clear_cache",
        action="store_true",
        help="Remove cached collections for the domain before collecting"
    )
    collection_group.add_argument(
        "--matrix",
        help="JSON file with agent release dates ({\"591\": \"2022-12-06\", ...})"
    )

    # Output options
    output_group = parser.add_argument_group("Output")
    output_group.add_argument(
        "-o", "--output",
        default="output",
        help="Output directory for results (default: ./output)"
    )
    output_group.add_argument(
        "--log-dir",
        dest="log_dir",
        default="logs",
        help="Directory for log files (default: ./logs)"
    )

    # General options
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"zoneHealth {__version__}"
    )
    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.password and not args.username:
        parser.error("--password requires --username")

    # Build configuration
    config = {
        "cache": {
            "cache_dir": args.cache_dir,
        },
        "support": {
            "matrix_file": args.matrix,
        },
        "output": {
            "output_dir": args.output,
            "log_dir": args.log_dir,
        },
        "verbose": args.verbose,
    }

    configure_logging(args.log_dir, level=logging.DEBUG if args.verbose else logging.INFO)

    # Print banner
    print_banner()

    try:
        print(f"\n{'='*60}")
        print(f"Starting Health Check: {args.domain}")
        print(f"{'='*60}\n")

        result = run_health_check(
            domain=args.domain,
            server=args.server,
            username=args.username,
            password=args.password,
            agents_only=args.agents_only,
            config=config,
            progress_callback=print,
            clear_cache=args.clear_cache
        )

        print(f"\n{generate_text_report(result)}\n")

        if result.report_path:
            print("Results saved to:")
            print(f"  - JSON: {result.report_path}")

        return 0

    except DirectoryAuthError as e:
        get_secure_logger().error("Authentication failed for %s: %s", args.username or "current identity", e)
        print("\n[!] Authentication failed; see the secure log for details")
        return 1
    except MissingDependencyError as e:
        logger.error("Missing dependency: %s", e)
        print(f"\n[!] Missing dependency: {e}")
        return 1
    except Exception as e:
        logger.exception("Health check failed")
        print(f"\n[!] Error: {e}")
        return 1


def print_banner():
    """Print the zoneHealth banner."""
    banner = r"""
                        _   _            _ _   _
  _______  _ __   ___  | | | | ___  __ _| | |_| |__
 |_  / _ \| '_ \ / _ \ | |_| |/ _ \/ _` | | __| '_ \
  / / (_) | | | |  __/ |  _  |  __/ (_| | | |_| | | |
 /___\___/|_| |_|\___| |_| |_|\___|\__,_|_|\__|_| |_|

  Zone Deployment Inventory and Health Check
  Read-only - nothing is written to the directory
    """
    print(banner)


if __name__ == "__main__":
    sys.exit(main())
