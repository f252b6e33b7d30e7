# File: ssl_migrate/assets.py
"""ssl_migrate.assets: замена http:// → https:// в пользовательских CSS/JS файлах сайта."""

from __future__ import annotations

from dataclasses import dataclass, field
from fnmatch import fnmatch
from pathlib import Path
from typing import List, Sequence

from ssl_migrate.config import MigrationConfig
from ssl_migrate.logger import get_logger
from ssl_migrate.models import ResolvedSite

logger = get_logger("assets")

__all__ = ["AssetRewriter", "AssetRewrite"]


@dataclass(slots=True)
class AssetRewrite:
    """Итог по каталогу сайта: какие файлы изменены и сколько замен."""

    directory: Path
    exists: bool = True
    changed: List[Path] = field(default_factory=list)
    replacements: int = 0


class AssetRewriter:
    """Переписывает файлы в каталоге ``asset_dir_template`` сайта."""

    def __init__(
        self,
        root: Path,
        template: str,
        patterns: Sequence[str],
        dry_run: bool = False,
    ) -> None:
        self.root = Path(root)
        self.template = template
        self.patterns = list(patterns)
        self.dry_run = dry_run

    @classmethod
    def from_config(cls, settings: MigrationConfig, dry_run: bool = False) -> AssetRewriter:
        return cls(settings.asset_root, settings.asset_dir_template, settings.asset_patterns, dry_run)

    def asset_dir(self, site: ResolvedSite) -> Path:
        return self.root / self.template.format(site_id=site.id)

    def _matches(self, path: Path) -> bool:
        return any(fnmatch(path.name, pattern) for pattern in self.patterns)

    def rewrite(self, site: ResolvedSite, search: str, replace: str) -> AssetRewrite:
        """Заменяет search на replace во всех подходящих файлах; нет каталога → exists=False."""
        directory = self.asset_dir(site)
        result = AssetRewrite(directory=directory)
        if not directory.is_dir():
            logger.debug("No asset directory for site %s: %s", site.id, directory)
            result.exists = False
            return result

        for path in sorted(directory.iterdir()):
            if not path.is_file() or not self._matches(path):
                continue
            text = path.read_text(encoding="utf-8")
            count = text.count(search)
            if not count:
                continue
            result.changed.append(path)
            result.replacements += count
            if self.dry_run:
                logger.info("[dry-run] %s: %d replacement(s)", path, count)
                continue
            path.write_text(text.replace(search, replace), encoding="utf-8")
            logger.debug("Rewrote %s: %d replacement(s)", path, count)
        return result
