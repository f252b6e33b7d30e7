"""ssl_migrate.store: доступ к таблицам multisite через PyMySQL."""

from .mysql import connect
from .tenants import MAIN_SITE_ID, TenantStore, escape_like, table_name

__all__ = ["connect", "TenantStore", "table_name", "escape_like", "MAIN_SITE_ID"]
