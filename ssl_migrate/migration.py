# File: ssl_migrate/migration.py
"""ssl_migrate.migration: три этапа миграции на HTTPS для списка сайтов.

Этапы выполняются пакетно: сначала содержимое всех сайтов, затем файлы,
затем запрос сертификатов. Ошибка одного сайта не останавливает остальные.
"""

from __future__ import annotations

from typing import Callable, Dict, Sequence

from ssl_migrate.assets import AssetRewriter
from ssl_migrate.config import MigrationConfig, RunOptions
from ssl_migrate.errors import PromptAborted, SubcommandError, UsageError
from ssl_migrate.logger import get_logger
from ssl_migrate.models import MigrationReport, ResolvedSite, StageResult
from ssl_migrate.runner import Tables, WpCliRunner
from ssl_migrate.store import MAIN_SITE_ID, table_name

logger = get_logger("migration")

Confirm = Callable[[str], bool]

# core tables of the main site; its plugin tables share the bare prefix with the network tables
MAIN_SITE_TABLES = (
    "posts",
    "postmeta",
    "options",
    "comments",
    "commentmeta",
    "terms",
    "termmeta",
    "term_taxonomy",
    "links",
)

__all__ = ["MigrationOrchestrator", "site_address", "site_tables", "MAIN_SITE_TABLES"]


def site_address(site: ResolvedSite, root_domain: str) -> str:
    """Хост (и путь) сайта без схемы: ``blog.example.edu`` или ``example.edu/biology``."""
    if site.is_path:
        path = site.domain.strip("/")
        return f"{root_domain}/{path}" if path else root_domain
    return site.domain


def site_tables(prefix: str, site_id: int) -> Tables:
    """Таблицы сайта для search-replace: ``wp_12_*`` или явный список для главного сайта."""
    if site_id == MAIN_SITE_ID:
        return [table_name(prefix, site_id, suffix) for suffix in MAIN_SITE_TABLES]
    return f"{prefix}{site_id}_*"


class MigrationOrchestrator:
    """Последовательно применяет этапы content → assets → certificate."""

    def __init__(
        self,
        settings: MigrationConfig,
        options: RunOptions,
        runner: WpCliRunner,
        assets: AssetRewriter,
        confirm: Confirm,
    ) -> None:
        self.settings = settings
        self.options = options
        self.runner = runner
        self.assets = assets
        self.confirm = confirm

    def _pair(self, site: ResolvedSite) -> tuple[str, str]:
        address = site_address(site, self.settings.domain_current_site)
        return f"http://{address}", f"https://{address}"

    def migrate(self, sites: Sequence[ResolvedSite]) -> MigrationReport:
        if not sites:
            raise UsageError("migrate requires at least one resolved site")
        report = MigrationReport()
        logger.info("Migrating %d site(s)%s", len(sites), " [dry-run]" if self.options.dry_run else "")
        for site in sites:
            report.add(self.rewrite_content(site))
        for site in sites:
            report.add(self.rewrite_assets(site))
        self.request_certificates(sites, report)
        return report

    def rewrite_content(self, site: ResolvedSite) -> StageResult:
        search, replace = self._pair(site)
        tables = site_tables(self.settings.table_prefix, site.id)
        options = {
            "url": site_address(site, self.settings.domain_current_site),
            "all-tables-with-prefix": site.id != MAIN_SITE_ID,
            "precise": True,
            "report-changed-only": True,
            "dry-run": self.options.dry_run,
        }
        try:
            result = self.runner.search_replace(search, replace, tables, options)
        except SubcommandError as exc:
            logger.error("Site %s: content rewrite failed: %s", site.id, exc)
            detail = exc.output.strip() or str(exc)
            return StageResult("content", site, "failed", detail)
        status = "dry-run" if self.options.dry_run else "ok"
        logger.info("Site %s: %s → %s (%s)", site.id, search, replace, status)
        return StageResult("content", site, status, result.output.strip())

    def rewrite_assets(self, site: ResolvedSite) -> StageResult:
        search, replace = self._pair(site)
        try:
            rewrite = self.assets.rewrite(site, search, replace)
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("Site %s: asset rewrite failed: %s", site.id, exc)
            return StageResult("assets", site, "failed", str(exc))
        if not rewrite.exists:
            return StageResult("assets", site, "skipped", f"no asset directory {rewrite.directory}")
        status = "dry-run" if self.options.dry_run else "ok"
        detail = f"{rewrite.replacements} replacement(s) in {len(rewrite.changed)} file(s)"
        logger.info("Site %s: assets %s (%s)", site.id, detail, status)
        return StageResult("assets", site, status, detail)

    def certificate_host(self, site: ResolvedSite) -> str:
        return site_address(site, self.settings.domain_current_site).split("/", 1)[0]

    def request_certificates(self, sites: Sequence[ResolvedSite], report: MigrationReport) -> None:
        """Один вопрос на хост; после прерывания остальные сайты помечаются aborted."""
        answers: Dict[str, bool] = {}
        for index, site in enumerate(sites):
            try:
                report.add(self.request_certificate(site, answers))
            except PromptAborted:
                rest_of_batch = sites[index:]
                logger.warning("Certificate confirmation aborted; %d site(s) left unconfirmed", len(rest_of_batch))
                for rest in rest_of_batch:
                    report.add(StageResult("certificate", rest, "aborted", self.certificate_host(rest)))
                return

    def request_certificate(self, site: ResolvedSite, answers: Dict[str, bool] | None = None) -> StageResult:
        host = self.certificate_host(site)
        if self.options.dry_run:
            return StageResult("certificate", site, "dry-run", f"would request a certificate for {host}")
        if answers is None:
            answers = {}
        if host not in answers:
            answers[host] = self.confirm(f"Request a certificate for {host}?")
        if not answers[host]:
            logger.info("Site %s: certificate request declined", site.id)
            return StageResult("certificate", site, "declined", host)
        logger.info("Site %s: certificate request confirmed for %s", site.id, host)
        return StageResult("certificate", site, "ok", f"certificate requested for {host}")
