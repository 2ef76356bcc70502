"""
Collection Cache Store
======================

On-disk cache of fetched collections, one artifact per {domain}-{kind}.

Design Decisions:
-----------------
1. Two-phase writes. put() appends to an uncompressed staging file
   ({key}.staging.jsonl); seal() turns staging into the durable zip artifact
   ({key}.zip) and removes staging. A crash mid-fetch can only leave staging
   behind, never a half-written artifact
2. Anything unsealed is discarded. get() deletes leftover staging with a
   warning before looking for the artifact, so a sealed artifact is always
   fully consistent and never mixed with partial data
3. get() reads the artifact in place; the file on disk is never rewritten
4. Records are stored as field-named JSON. Nested values are followed at
   most MAX_DEPTH levels below the record; anything deeper is stringified

Usage:
    store = CacheStore("cache", "corp.local")
    store.put("Zones", zones)
    store.seal("Zones")
    records = store.get("Zones")   # list of dicts, or None when not cached
"""

import json
import os
import tempfile
import zipfile
from dataclasses import fields, is_dataclass
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Optional

from ..logger import get_logger

logger = get_logger(__name__)

MAX_DEPTH = 3
STAGING_SUFFIX = ".staging.jsonl"
ARTIFACT_SUFFIX = ".zip"
TEMP_SUFFIX = ".tmp"


def to_record(obj: Any, depth: int = 0, max_depth: int = MAX_DEPTH) -> Any:
    """Convert a record (or any nested value) to JSON-compatible data.

    Args:
        obj: Dataclass, enum, date, container or scalar
        depth: Current nesting level (0 = the record itself)
        max_depth: Levels below the record that are expanded

    Returns:
        JSON-compatible structure
    """
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if depth > max_depth:
        return str(obj)
    if is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_record(getattr(obj, f.name), depth + 1, max_depth) for f in fields(obj)}
    if isinstance(obj, dict):
        return {str(k): to_record(v, depth + 1, max_depth) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set)):
        return [to_record(v, depth + 1, max_depth) for v in obj]
    if isinstance(obj, bytes):
        return obj.hex()
    return str(obj)


class CacheStore:
    """Two-phase cache of record collections for one domain.

    Args:
        cache_dir: Directory holding the artifacts (created if missing)
        domain: Domain the cached collections belong to
    """

    def __init__(self, cache_dir: str, domain: str):
        self.cache_dir = Path(cache_dir)
        self.domain = domain
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def key(self, name: str) -> str:
        return f"{self.domain}-{name}"

    def staging_path(self, name: str) -> Path:
        return self.cache_dir / f"{self.key(name)}{STAGING_SUFFIX}"

    def artifact_path(self, name: str) -> Path:
        return self.cache_dir / f"{self.key(name)}{ARTIFACT_SUFFIX}"

    def exists(self, name: str) -> bool:
        """Whether a sealed artifact exists for the collection."""
        return self.artifact_path(name).is_file()

    def put(self, name: str, records: Iterable[Any]) -> int:
        """Append records to the collection's staging buffer.

        Returns:
            Number of records appended
        """
        lines = [json.dumps(to_record(record), sort_keys=True) + "\n" for record in records]
        if not lines:
            return 0
        with open(self.staging_path(name), "a", encoding="utf-8") as f:
            f.writelines(lines)
        return len(lines)

    def seal(self, name: str) -> Optional[Path]:
        """Turn the staging buffer into the durable compressed artifact.

        Returns:
            Path of the artifact, or None when nothing (or only empty data) was staged
        """
        staging = self.staging_path(name)
        if not staging.is_file():
            return None

        records = self._read_staging(staging)
        if not records:
            staging.unlink()
            return None

        artifact = self.artifact_path(name)
        member = f"{self.key(name)}.json"

        fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, prefix=f"{self.key(name)}.", suffix=TEMP_SUFFIX)
        os.close(fd)
        try:
            with zipfile.ZipFile(tmp_name, "w", compression=zipfile.ZIP_DEFLATED) as zf:
                zf.writestr(member, json.dumps(records, indent=1, sort_keys=True))
            os.replace(tmp_name, artifact)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        staging.unlink()
        logger.debug("Sealed %d %s records into %s", len(records), name, artifact)
        return artifact

    def get(self, name: str) -> Optional[list]:
        """Return a sealed collection, or None when it is not cached.

        Leftover staging data from an aborted run is discarded first.
        """
        staging = self.staging_path(name)
        if staging.exists():
            logger.warning(
                "Discarding unsealed cache data for %s left by an interrupted run: %s",
                self.key(name), staging
            )
            staging.unlink()

        artifact = self.artifact_path(name)
        if not artifact.is_file():
            return None

        member = f"{self.key(name)}.json"
        with zipfile.ZipFile(artifact, "r") as zf:
            names = zf.namelist()
            if member not in names:
                if not names:
                    return None
                member = names[0]
            with zf.open(member) as f:
                return json.loads(f.read().decode("utf-8"))

    def clear(self, name: Optional[str] = None) -> int:
        """Remove cached artifacts, staging and stray temp files for one or all collections.

        Returns:
            Number of files removed
        """
        prefix = f"{self.key(name)}." if name is not None else f"{self.domain}-"
        suffixes = (ARTIFACT_SUFFIX, STAGING_SUFFIX, TEMP_SUFFIX)
        targets = [
            p for p in self.cache_dir.iterdir()
            if p.name.startswith(prefix) and p.name.endswith(suffixes)
        ]
        removed = 0
        for path in targets:
            if path.exists():
                path.unlink()
                removed += 1
        return removed

    @staticmethod
    def _read_staging(path: Path) -> list:
        records = []
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line:
                    records.append(json.loads(line))
        return records
