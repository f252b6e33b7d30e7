# File: ssl_migrate/resolver.py
"""ssl_migrate.resolver: разбор значения --sites в список ResolvedSite.

Принимает один ID (``123``), домен (``blog.example.edu``), домен из таблицы
domain_mapping (``mapped-site.com``), путь (``biology``) или список через
запятую (``123, biology, mapped-site.com``).
"""

from __future__ import annotations

from typing import List, Optional

from ssl_migrate.errors import ResolutionError, UsageError
from ssl_migrate.logger import get_logger
from ssl_migrate.lookup import DomainLookup, looks_like_domain, normalize_path
from ssl_migrate.models import ResolutionResult, ResolvedSite, SkippedToken

logger = get_logger("resolver")

SEPARATOR = ","
_STRIP_CHARS = SEPARATOR + " \t\r\n"

__all__ = ["SiteSpecifierResolver", "split_specifier", "SEPARATOR"]


def split_specifier(raw: str) -> List[str]:
    """Обрезает разделители по краям и делит строку на непустые токены."""
    trimmed = (raw or "").strip(_STRIP_CHARS)
    if not trimmed:
        return []
    if SEPARATOR not in trimmed:
        return [trimmed]
    return [token.strip() for token in trimmed.split(SEPARATOR) if token.strip()]


class SiteSpecifierResolver:
    """Превращает пользовательский ввод в канонические пары (ID, домен)."""

    def __init__(self, lookup: DomainLookup) -> None:
        self.lookup = lookup

    def resolve(self, raw: str) -> ResolutionResult:
        """Разрешает все токены; неразрешённые пропускаются, дубликаты ID отбрасываются.

        Raises:
            UsageError: ввод пуст или ни один токен не разрешился.
            ResolutionError: числовой ID без домена/пути в blogs.
        """
        logger.debug("resolve(): %r", raw)
        tokens = split_specifier(raw)
        if not tokens:
            raise UsageError("At least one site ID or domain is required")

        resolved: List[ResolvedSite] = []
        skipped: List[SkippedToken] = []
        seen: set[int] = set()
        for token in tokens:
            site = self.resolve_token(token)
            if site is None:
                logger.warning("Skipping %r: no matching site", token)
                skipped.append(SkippedToken(token, "not found"))
                continue
            if site.id in seen:
                logger.debug("Skipping %r: site %s already listed", token, site.id)
                skipped.append(SkippedToken(token, "duplicate"))
                continue
            seen.add(site.id)
            resolved.append(site)

        if not resolved:
            names = ", ".join(s.token for s in skipped)
            raise UsageError(f"No sites matched the given specifier: {names}")
        return ResolutionResult(resolved=tuple(resolved), skipped=tuple(skipped))

    def resolve_token(self, token: str) -> Optional[ResolvedSite]:
        """Один токен → ResolvedSite или None (не найден)."""
        token = token.strip()
        logger.debug("resolve_token(): %r", token)
        if not token:
            return None

        if token.isascii() and token.isdigit():
            tenant_id = int(token)
            if tenant_id <= 0:
                return None
            address = self.lookup.lookup_by_id(tenant_id)
            if not address:
                raise ResolutionError(tenant_id)
            return ResolvedSite(tenant_id, address)

        if looks_like_domain(token):
            match = self.lookup.match_domain(token)
            if not match:
                return None
            tenant_id, address = match
            return ResolvedSite(int(tenant_id), address)

        tenant_id = self.lookup.lookup_by_path(token)
        if not tenant_id:
            return None
        return ResolvedSite(int(tenant_id), normalize_path(token))
