# File: ssl_migrate/report/__init__.py
"""ssl_migrate.report: вывод FleetReport и MigrationReport (консоль, JSON, HTML)."""

from __future__ import annotations

from typing import List

from ssl_migrate.models import FleetReport, MigrationReport

from .html_report import render_html
from .json_report import render_json


def table_lines(report: FleetReport) -> List[str]:
    """Одна строка на сайт, поля через табуляцию."""
    return [
        "\t".join((str(r.tenant_id), r.canonical_url, r.mapped_domain, r.admin_email))
        for r in report.records
    ]


def migration_lines(report: MigrationReport) -> List[str]:
    return [
        f"[{r.stage}] site {r.site.id} ({r.site.domain}): {r.status}" + (f" - {r.detail}" if r.detail else "")
        for r in report.results
    ]


__all__ = ["render_json", "render_html", "table_lines", "migration_lines"]
