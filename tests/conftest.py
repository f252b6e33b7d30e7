# File: tests/conftest.py
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from ssl_migrate.config import DatabaseConfig, MigrationConfig
from ssl_migrate.errors import SubcommandError
from ssl_migrate.runner import SubcommandResult
from ssl_migrate.store import TenantStore


class FakeTenantStore(TenantStore):
    """
    In-memory stand-in for the multisite tables.
    Counts every query in ``calls`` so tests can assert on datastore traffic.
    """

    def __init__(self, prefix: str = "wp_", multisite: bool = True) -> None:
        super().__init__(connection=None, prefix=prefix)
        self.multisite = multisite
        self.blogs: Dict[int, dict] = {}
        self.mapping: Dict[str, int] = {}
        self.protected: Dict[int, int] = {}
        self.options: Dict[tuple, str] = {}
        self.tables: set = set()
        self.has_mapping_table = True
        self.calls: List[str] = []

    def add_blog(self, blog_id, domain, path="/", archived=False, posts_table=True):
        self.blogs[blog_id] = {"domain": domain, "path": path, "archived": archived}
        if posts_table:
            self.tables.add(self.tenant_table(blog_id, "posts"))
        return self

    def is_multisite(self) -> bool:
        self.calls.append("is_multisite")
        return self.multisite

    def table_exists(self, name: str) -> bool:
        self.calls.append(f"table_exists:{name}")
        return name in self.tables

    def tenant_id_for(self, domain: str, path: str = "/") -> int:
        self.calls.append(f"tenant_id_for:{domain}{path}")
        for blog_id, row in self.blogs.items():
            if row["domain"] == domain and row["path"] == path:
                return blog_id
        return 0

    def tenant_address(self, tenant_id: int, column: str) -> Optional[str]:
        self.calls.append(f"tenant_address:{tenant_id}")
        row = self.blogs.get(tenant_id)
        return row[column] if row else None

    def active_tenant_ids(self) -> List[int]:
        self.calls.append("active_tenant_ids")
        return sorted(i for i, row in self.blogs.items() if not row["archived"])

    def mapped_tenant_id(self, domain: str) -> Optional[int]:
        self.calls.append(f"mapped_tenant_id:{domain}")
        if not self.has_mapping_table:
            return None
        return self.mapping.get(domain)

    def mapped_tenant_ids(self, tenant_ids):
        ids = list(tenant_ids)
        self.calls.append(f"mapped_tenant_ids:{ids}")
        if not ids:
            # same contract as the SQL implementation
            return super().mapped_tenant_ids(ids)
        return {i for i in self.mapping.values() if i in ids}

    def mapped_domain(self, tenant_id: int) -> Optional[str]:
        for domain, blog_id in self.mapping.items():
            if blog_id == tenant_id:
                return domain
        return None

    def protected_item_count(self, tenant_id: int) -> int:
        self.calls.append(f"protected_item_count:{tenant_id}")
        return self.protected.get(tenant_id, 0)

    def option(self, tenant_id: int, name: str) -> Optional[str]:
        return self.options.get((tenant_id, name))


@pytest.fixture()
def settings(tmp_path: Path) -> MigrationConfig:
    """Path-based install rooted at example.edu, everything on disk under tmp_path."""
    return MigrationConfig(
        database=DatabaseConfig(name="wordpress"),
        table_prefix="wp_",
        subdomain_install=False,
        domain_current_site="example.edu",
        asset_root=tmp_path / "wordpress",
        cache_dir=tmp_path / "cache",
        report_file=tmp_path / "protected-sites.json",
        migration_report_file=tmp_path / "ssl-migration.json",
    )


@pytest.fixture()
def subdomain_settings(settings: MigrationConfig) -> MigrationConfig:
    return settings.model_copy(update={"subdomain_install": True})


@pytest.fixture()
def store() -> FakeTenantStore:
    """
    Three path-based sites, one custom domain mapped to site 3.
    """
    s = FakeTenantStore()
    s.add_blog(1, "example.edu", "/")
    s.add_blog(2, "example.edu", "/biology/")
    s.add_blog(3, "example.edu", "/chemistry/")
    s.mapping["chem.example.org"] = 3
    return s


class FakeRunner:
    """
    Emulates ``wp search-replace`` over an in-memory table store:
    ``tables`` maps tenant id to the text of its content.
    """

    def __init__(self, tables=None, fail_for=()):
        self.tables = dict(tables or {})
        self.fail_for = set(fail_for)
        self.calls = []

    def search_replace(self, search, replace, tables, options):
        self.calls.append((search, replace, tables, dict(options)))
        # "wp_12_*" for a network site, an explicit table list for the main site
        tenant_id = int(tables.split("_")[1]) if isinstance(tables, str) else 1
        if tenant_id in self.fail_for:
            raise SubcommandError(
                "wp search-replace exited with 1", output="Error: Table not found", returncode=1
            )
        text = self.tables.get(tenant_id, "")
        count = text.count(search)
        if not options.get("dry-run"):
            self.tables[tenant_id] = text.replace(search, replace)
        return SubcommandResult(("wp",), 0, f"Success: Made {count} replacements.")
