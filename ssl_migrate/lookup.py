"""ssl_migrate.lookup: поиск ID сайта по домену/пути и обратно (blogs → domain_mapping)."""

from __future__ import annotations

from typing import Optional, Tuple

from ssl_migrate.config import MigrationConfig
from ssl_migrate.logger import get_logger
from ssl_migrate.store import TenantStore

logger = get_logger("lookup")

__all__ = ["DomainLookup", "normalize_path", "looks_like_domain"]


def normalize_path(path: str) -> str:
    """Приводит путь к виду, в котором WordPress хранит его в blogs: ``/slug/``."""
    slug = path.strip().strip("/")
    return f"/{slug}/" if slug else "/"


def looks_like_domain(value: str) -> bool:
    """Точка внутри строки: домен, иначе путь."""
    return "." in value.strip(".")


class DomainLookup:
    """Разрешение между ID сайта и его доменом/путём."""

    def __init__(self, store: TenantStore, settings: MigrationConfig) -> None:
        self.store = store
        self.settings = settings

    def lookup_by_domain_or_path(self, value: str) -> Optional[int]:
        """Возвращает ID сайта или None, если ни одна таблица его не знает."""
        logger.debug("lookup_by_domain_or_path(): %s", value)
        if looks_like_domain(value):
            return self.lookup_by_domain(value)
        logger.debug("lookup_by_domain_or_path(): %s is not a domain", value)
        return self.lookup_by_path(value)

    def lookup_by_domain(self, domain: str) -> Optional[int]:
        match = self.match_domain(domain)
        return match[0] if match else None

    def match_domain(self, value: str) -> Optional[Tuple[int, str]]:
        """
        (ID, адрес, который совпал): путь или домен из blogs, либо хост из domain_mapping.
        Путь после хоста в domain_mapping не участвует.
        """
        domain, _, path = value.strip().lower().partition("/")
        path = normalize_path(path)
        tenant_id = self.store.tenant_id_for(domain, path)
        logger.debug("match_domain(): %s%s -> %s", domain, path, tenant_id)
        if tenant_id:
            if path != "/" and not self.settings.subdomain_install:
                return tenant_id, path
            return tenant_id, domain
        mapped = self.store.mapped_tenant_id(domain)
        logger.debug("match_domain(): mapped %s -> %s", domain, mapped)
        return (mapped, domain) if mapped else None

    def lookup_by_path(self, path: str) -> Optional[int]:
        tenant_id = self.store.tenant_id_for(self.settings.domain_current_site, normalize_path(path))
        return tenant_id or None

    def lookup_by_id(self, tenant_id: int) -> Optional[str]:
        """Домен (subdomain install) или путь (path install) сайта."""
        address = self.store.tenant_address(tenant_id, self.settings.address_column)
        logger.debug("lookup_by_id(): %s -> %s", tenant_id, address)
        return address
