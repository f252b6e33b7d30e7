"""
File-backed TTL cache for :class:`FleetReport`.

One JSON file per key under ``cache_dir``. The key is derived from the
configuration the report was computed for, so different prefixes or databases
never share an entry.
"""
from __future__ import annotations

import hashlib
import json
import os
import tempfile
import threading
import time
from pathlib import Path
from typing import Callable, Dict, Optional

from ssl_migrate.config import MigrationConfig
from ssl_migrate.logger import get_logger
from ssl_migrate.models import FleetReport

logger = get_logger("cache")

DEFAULT_TTL = 12 * 60 * 60
CACHE_NAMESPACE = "protected-sites"


def cache_key(settings: MigrationConfig, namespace: str = CACHE_NAMESPACE) -> str:
    parts = [
        namespace,
        settings.database.host,
        str(settings.database.port),
        settings.database.name,
        settings.table_prefix,
        settings.domain_current_site,
    ]
    digest = hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()[:16]
    return f"{namespace}-{digest}"


class ReportCache:
    """TTL cache; expired or unreadable entries count as a miss."""

    def __init__(
        self,
        directory: Path | str,
        ttl: int = DEFAULT_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.directory = Path(directory)
        self.ttl = ttl
        self.clock = clock
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(key, threading.Lock())

    def get(self, key: str) -> Optional[FleetReport]:
        path = self._path(key)
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable cache entry %s: %s", path, exc)
            return None
        try:
            if float(payload["expires_at"]) <= self.clock():
                logger.debug("Cache entry %s expired", key)
                return None
            return FleetReport.from_dict(payload["report"])
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.warning("Ignoring malformed cache entry %s: %r", path, exc)
            return None

    def set(self, key: str, report: FleetReport) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        payload = {"expires_at": self.clock() + self.ttl, "report": report.to_dict()}
        fd, tmp = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False)
            os.replace(tmp, self._path(key))
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def get_or_compute(
        self,
        key: str,
        compute: Callable[[], FleetReport],
        persist: bool = True,
    ) -> FleetReport:
        """Single-flight per key: concurrent callers wait for one recomputation."""
        cached = self.get(key)
        if cached is not None:
            logger.info("Using cached report %s (%d record(s))", key, len(cached))
            return cached
        with self._lock_for(key):
            cached = self.get(key)
            if cached is not None:
                return cached
            report = compute()
            if persist:
                self.set(key, report)
            return report


__all__ = ["ReportCache", "cache_key", "DEFAULT_TTL"]
