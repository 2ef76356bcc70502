"""
zoneHealth Ingestion Module
===========================

Everything between the directory and the in-memory collections.

Components:
- directory_api.py: Query interface the fetcher depends on
- ldap_client.py: ldap3 implementation of that interface
- cache_store.py: Two-phase on-disk cache per {domain}-{kind}
- fetcher.py: Per-kind collection with per-unit failure tolerance
- progress.py: Progress observer interface

Design Philosophy:
- Per-unit failures stop at the fetcher; only authentication and missing
  dependency errors travel further
- A sealed cache artifact is trusted until it is cleared
"""

from .cache_store import CacheStore
from .directory_api import ADCredentials, DirectoryQueryAPI
from .fetcher import CollectionFetcher, derive_expired_computers
from .ldap_client import LDAPDirectoryClient, LDAP3_AVAILABLE
from .progress import CallbackProgress, ProgressObserver
