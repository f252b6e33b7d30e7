"""ssl_migrate.errors: иерархия исключений, которые CLI превращает в ненулевой код выхода."""

from __future__ import annotations


class MigrationError(Exception):
    """Базовый класс всех ошибок ssl_migrate."""


class UsageError(MigrationError):
    """Пустой или неразрешимый --sites, пустой список сайтов для миграции."""


class ResolutionError(MigrationError):
    """Числовой ID сайта без домена/пути в таблице blogs (битая запись)."""

    def __init__(self, tenant_id: int) -> None:
        super().__init__(f"Site {tenant_id} has no domain or path on record")
        self.tenant_id = tenant_id


class PreconditionError(MigrationError):
    """Нарушено предусловие: не multisite, пустой список ID и т.п."""


class InvalidIdentifier(PreconditionError):
    """Компонент имени таблицы не прошёл проверку."""


class SubcommandError(MigrationError):
    """Внешняя подкоманда (WP-CLI) завершилась с ошибкой или по таймауту."""

    def __init__(self, message: str, output: str = "", returncode: int | None = None) -> None:
        super().__init__(message)
        self.output = output
        self.returncode = returncode


class DiscoveryTimeout(MigrationError):
    """Обход сети сайтов не уложился в discovery_timeout."""


class PromptAborted(MigrationError):
    """Оператор прервал подтверждение (Ctrl-C или конец ввода)."""


__all__ = [
    "MigrationError",
    "UsageError",
    "ResolutionError",
    "PreconditionError",
    "InvalidIdentifier",
    "SubcommandError",
    "DiscoveryTimeout",
    "PromptAborted",
]
