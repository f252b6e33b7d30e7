# File: ssl_migrate/discovery.py
"""ssl_migrate.discovery: поиск сайтов сети с запароленными записями и привязанным доменом."""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Callable, ContextManager, Iterator, List, Optional

from ssl_migrate.cache import ReportCache, cache_key
from ssl_migrate.config import MigrationConfig
from ssl_migrate.errors import DiscoveryTimeout
from ssl_migrate.logger import get_logger
from ssl_migrate.models import (
    ContactRecord,
    FleetReport,
    ProtectedContentRecord,
    TenantTableProbe,
)
from ssl_migrate.store import TenantStore

logger = get_logger("discovery")

# progress(total) -> context manager yielding an object with update(n),
# e.g. click.progressbar(length=total)
Progress = Callable[[int], ContextManager[Any]]

CONTENT_SUFFIX = "posts"

__all__ = ["FleetDiscovery"]


class _NullBar:
    def update(self, n: int) -> None:
        pass


@contextmanager
def no_progress(total: int) -> Iterator[_NullBar]:
    yield _NullBar()


class FleetDiscovery:
    """Обходит все активные сайты и собирает контакты для отчёта."""

    def __init__(
        self,
        store: TenantStore,
        settings: MigrationConfig,
        cache: ReportCache,
        progress: Optional[Progress] = None,
        persist: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.settings = settings
        self.cache = cache
        self.progress = progress or no_progress
        self.persist = persist
        self.clock = clock
        self._deadline: Optional[float] = None

    def discover(self) -> FleetReport:
        """Отчёт из кэша или полный пересчёт при промахе."""
        return self.cache.get_or_compute(cache_key(self.settings), self.compute, persist=self.persist)

    # ------------------------------------------------------------------ #
    # full pass                                                          #
    # ------------------------------------------------------------------ #

    def compute(self) -> FleetReport:
        if self.settings.discovery_timeout:
            self._deadline = self.clock() + self.settings.discovery_timeout
        tenant_ids = self.store.active_tenant_ids()
        logger.info("Probing %d active site(s)", len(tenant_ids))

        probes = self.probe_all(tenant_ids)
        existing = [p.tenant_id for p in probes if p.exists]
        protected = self.find_protected(existing)
        records = [self.contact_for(item.tenant_id) for item in protected]
        logger.info("Found %d mapped site(s) with protected content", len(records))
        return FleetReport(records=tuple(records))

    def _check_budget(self) -> None:
        if self._deadline is not None and self.clock() > self._deadline:
            raise DiscoveryTimeout(
                f"Discovery exceeded {self.settings.discovery_timeout}s budget"
            )

    def probe(self, tenant_id: int) -> TenantTableProbe:
        table = self.store.tenant_table(tenant_id, CONTENT_SUFFIX)
        return TenantTableProbe(tenant_id, table, self.store.table_exists(table))

    def probe_all(self, tenant_ids: List[int]) -> List[TenantTableProbe]:
        probes: List[TenantTableProbe] = []
        with self.progress(len(tenant_ids)) as bar:
            for tenant_id in tenant_ids:
                self._check_budget()
                probe = self.probe(tenant_id)
                if not probe.exists:
                    logger.debug("Site %s has no %s table", tenant_id, probe.table_name)
                probes.append(probe)
                bar.update(1)
        return probes

    def find_protected(self, tenant_ids: List[int]) -> List[ProtectedContentRecord]:
        """Сайты с ≥1 запароленной записью, которые есть в domain_mapping."""
        flagged: List[ProtectedContentRecord] = []
        for tenant_id in tenant_ids:
            self._check_budget()
            count = self.store.protected_item_count(tenant_id)
            if count > 0:
                flagged.append(ProtectedContentRecord(tenant_id, count))
        if not flagged:
            return []
        mapped = self.store.mapped_tenant_ids([item.tenant_id for item in flagged])
        unmapped = [item.tenant_id for item in flagged if item.tenant_id not in mapped]
        if unmapped:
            logger.debug("Protected but not mapped, excluded: %s", unmapped)
        return sorted(
            (item for item in flagged if item.tenant_id in mapped),
            key=lambda item: item.tenant_id,
        )

    def contact_for(self, tenant_id: int) -> ContactRecord:
        self._check_budget()
        return ContactRecord(
            tenant_id=tenant_id,
            canonical_url=self.store.option(tenant_id, "siteurl") or "",
            mapped_domain=self.store.mapped_domain(tenant_id) or "",
            admin_email=self.store.option(tenant_id, "admin_email") or "",
        )
