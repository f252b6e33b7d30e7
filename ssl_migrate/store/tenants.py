"""
Query interface over the multisite tables.

Values always travel as driver parameters. Table names cannot, so every
name component is checked against :data:`IDENTIFIER_RE` and tenant ids must be
positive integers before a name is built.
"""
from __future__ import annotations

from typing import Any, Iterable, List, Optional, Sequence, Set

from ssl_migrate.config import IDENTIFIER_RE
from ssl_migrate.errors import InvalidIdentifier, PreconditionError
from ssl_migrate.logger import get_logger

logger = get_logger("store")

ADDRESS_COLUMNS = ("domain", "path")

# the main site keeps the unnumbered tables: wp_posts, wp_options, ...
MAIN_SITE_ID = 1


def _check_identifier(part: str) -> str:
    if not isinstance(part, str) or not IDENTIFIER_RE.match(part):
        raise InvalidIdentifier(f"Invalid table name component: {part!r}")
    return part


def _check_tenant_id(tenant_id: Any) -> int:
    if isinstance(tenant_id, bool) or not isinstance(tenant_id, int) or tenant_id <= 0:
        raise InvalidIdentifier(f"Tenant id must be a positive integer, got {tenant_id!r}")
    return tenant_id


def table_name(prefix: str, tenant_id: int, suffix: str) -> str:
    """``<prefix><tenant_id>_<suffix>``, e.g. ``wp_12_posts``; ``wp_posts`` for the main site."""
    prefix, suffix = _check_identifier(prefix), _check_identifier(suffix)
    if _check_tenant_id(tenant_id) == MAIN_SITE_ID:
        return f"{prefix}{suffix}"
    return f"{prefix}{tenant_id}_{suffix}"


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so ``wp_1_posts`` does not match ``wp11posts``."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _quoted(name: str) -> str:
    return f"`{_check_identifier(name)}`"


class TenantStore:
    """Read-only access to ``blogs``, ``domain_mapping`` and per-tenant tables."""

    def __init__(self, connection: Any, prefix: str) -> None:
        self._conn = connection
        self.prefix = _check_identifier(prefix)

    # ------------------------------------------------------------------ #
    # table names                                                        #
    # ------------------------------------------------------------------ #

    @property
    def blogs_table(self) -> str:
        return f"{self.prefix}blogs"

    @property
    def site_table(self) -> str:
        return f"{self.prefix}site"

    @property
    def mapping_table(self) -> str:
        return f"{self.prefix}domain_mapping"

    def tenant_table(self, tenant_id: int, suffix: str) -> str:
        return table_name(self.prefix, tenant_id, suffix)

    # ------------------------------------------------------------------ #
    # low level                                                          #
    # ------------------------------------------------------------------ #

    def _fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Any]:
        with self._conn.cursor() as cursor:
            cursor.execute(sql, tuple(params))
            row = cursor.fetchone()
        return None if row is None else row[0]

    def _fetch_column(self, sql: str, params: Sequence[Any] = ()) -> List[Any]:
        with self._conn.cursor() as cursor:
            cursor.execute(sql, tuple(params))
            rows = cursor.fetchall()
        return [row[0] for row in rows]

    # ------------------------------------------------------------------ #
    # probes                                                             #
    # ------------------------------------------------------------------ #

    def table_exists(self, name: str) -> bool:
        _check_identifier(name)
        found = self._fetch_one("SHOW TABLES LIKE %s", (escape_like(name),))
        return found is not None

    def is_multisite(self) -> bool:
        return self.table_exists(self.blogs_table) and self.table_exists(self.site_table)

    # ------------------------------------------------------------------ #
    # primary tenant table                                               #
    # ------------------------------------------------------------------ #

    def tenant_id_for(self, domain: str, path: str = "/") -> int:
        """Native id for an exact domain+path match, ``0`` when absent."""
        value = self._fetch_one(
            f"SELECT blog_id FROM {_quoted(self.blogs_table)} WHERE domain = %s AND path = %s LIMIT 1",
            (domain, path),
        )
        return int(value) if value is not None else 0

    def tenant_address(self, tenant_id: int, column: str) -> Optional[str]:
        if column not in ADDRESS_COLUMNS:
            raise InvalidIdentifier(f"Unknown address column: {column!r}")
        value = self._fetch_one(
            f"SELECT {column} FROM {_quoted(self.blogs_table)} WHERE blog_id = %s",
            (_check_tenant_id(tenant_id),),
        )
        return str(value) if value else None

    def active_tenant_ids(self) -> List[int]:
        """Non-archived, non-deleted tenants in ascending id order."""
        ids = self._fetch_column(
            f"SELECT blog_id FROM {_quoted(self.blogs_table)} "
            "WHERE archived = %s AND deleted = %s ORDER BY blog_id",
            ("0", 0),
        )
        return [int(i) for i in ids]

    # ------------------------------------------------------------------ #
    # domain mapping table                                               #
    # ------------------------------------------------------------------ #

    def mapped_tenant_id(self, domain: str) -> Optional[int]:
        if not self.table_exists(self.mapping_table):
            logger.debug("No %s table, skipping mapped lookup for %s", self.mapping_table, domain)
            return None
        value = self._fetch_one(
            f"SELECT blog_id FROM {_quoted(self.mapping_table)} WHERE domain = %s LIMIT 1",
            (domain,),
        )
        return int(value) if value else None

    def mapped_tenant_ids(self, tenant_ids: Iterable[int]) -> Set[int]:
        ids = [_check_tenant_id(i) for i in tenant_ids]
        if not ids:
            raise PreconditionError("mapped_tenant_ids() requires at least one tenant id")
        if not self.table_exists(self.mapping_table):
            return set()
        placeholders = ", ".join(["%s"] * len(ids))
        found = self._fetch_column(
            f"SELECT DISTINCT blog_id FROM {_quoted(self.mapping_table)} WHERE blog_id IN ({placeholders})",
            ids,
        )
        return {int(i) for i in found}

    def mapped_domain(self, tenant_id: int) -> Optional[str]:
        value = self._fetch_one(
            f"SELECT domain FROM {_quoted(self.mapping_table)} WHERE blog_id = %s LIMIT 1",
            (_check_tenant_id(tenant_id),),
        )
        return str(value) if value else None

    # ------------------------------------------------------------------ #
    # per-tenant tables                                                  #
    # ------------------------------------------------------------------ #

    def protected_item_count(self, tenant_id: int) -> int:
        """Rows in the tenant's posts table carrying a non-empty password."""
        value = self._fetch_one(
            f"SELECT COUNT(*) FROM {_quoted(self.tenant_table(tenant_id, 'posts'))} WHERE post_password <> %s",
            ("",),
        )
        return int(value or 0)

    def option(self, tenant_id: int, name: str) -> Optional[str]:
        value = self._fetch_one(
            f"SELECT option_value FROM {_quoted(self.tenant_table(tenant_id, 'options'))} "
            "WHERE option_name = %s LIMIT 1",
            (name,),
        )
        return None if value is None else str(value)


__all__ = ["TenantStore", "table_name", "escape_like", "ADDRESS_COLUMNS", "MAIN_SITE_ID"]
