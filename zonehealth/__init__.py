"""
zoneHealth - Zone Deployment Inventory and Health Check
=======================================================

A read-only assessment of a directory-integrated identity-management
deployment: zones, managed computers, UNIX profiles, role assignments,
command rights and agent versions stored in Active Directory.

Architecture Overview:
----------------------
- ingestion/: Directory query layer (ldap3), on-disk cache and the
  collection fetcher that walks zones -> computers -> profiles/assignments
- model/: Typed records and the lookup arena used to resolve references
- analysis/: Agent support matrix and the diagnostic bucket classifier
- reporting/: Text and JSON report generation
- orchestration/: The end-to-end health check pipeline

Design Decisions:
-----------------
1. All records are dataclasses; references between them are DNs, never objects
2. Every collection is cached per {domain}-{kind} and reused until cleared
3. Classification is a pure function of the fetched collections
4. Nothing is ever written back to the directory

License: Research/Educational Use Only
"""

__version__ = "1.0.0"
__author__ = "zoneHealth Team"

from .config import ZoneHealthConfig
