# === FILE: ssl_migrate/config.py ===
"""
Модуль для загрузки и валидации конфигурации ssl_migrate.
Используется Pydantic для описания схемы и проверки данных.
"""
from __future__ import annotations

import errno
import json
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Literal, Optional, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
)

IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9_]+$")

OutputMode = Literal["table", "json", "file"]


class DatabaseConfig(BaseModel):
    """Параметры подключения PyMySQL."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    host: str = "localhost"
    port: int = Field(3306, ge=1, le=65535)
    user: str = "root"
    password: SecretStr = SecretStr("")
    name: str = Field(..., min_length=1, description="Имя базы данных WordPress.")
    charset: str = "utf8mb4"
    connect_timeout: int = Field(10, ge=1, description="Таймаут подключения (секунд).")
    read_timeout: int = Field(60, ge=1, description="Таймаут чтения (секунд).")
    write_timeout: int = Field(60, ge=1, description="Таймаут записи (секунд).")


class MigrationConfig(BaseModel):
    """Конфигурация одной установки multisite."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    database: DatabaseConfig
    table_prefix: str = Field("wp_", description="Префикс таблиц WordPress.")
    multisite: bool = Field(True, description="Установка является multisite.")
    subdomain_install: bool = Field(False, description="Сайты адресуются поддоменами.")
    domain_current_site: str = Field(..., min_length=1, description="Корневой домен сети.")
    asset_root: Path = Field(Path("."), description="Корень установки WordPress на диске.")
    asset_dir_template: str = Field(
        "wp-content/uploads/sites/{site_id}/custom-css-js",
        description="Каталог пользовательских CSS/JS сайта относительно asset_root.",
    )
    asset_patterns: List[str] = Field(default_factory=lambda: ["*.css", "*.js"])
    wp_cli: List[str] = Field(default_factory=lambda: ["wp"], min_length=1)
    wp_path: Optional[Path] = Field(None, description="--path для WP-CLI.")
    subcommand_timeout: float = Field(600.0, gt=0, description="Таймаут одного вызова WP-CLI.")
    cache_dir: Path = Path(".ssl_migrate_cache")
    cache_ttl: int = Field(12 * 60 * 60, ge=0, description="TTL кэша отчёта (секунд).")
    report_file: Path = Path("protected-sites.json")
    migration_report_file: Path = Path("ssl-migration.json")
    discovery_timeout: Optional[float] = Field(None, gt=0, description="Бюджет обхода сети (секунд).")

    @field_validator("table_prefix")
    def _check_prefix(cls, v: str) -> str:
        if not IDENTIFIER_RE.match(v):
            raise ValueError(f"table_prefix must match {IDENTIFIER_RE.pattern}, got {v!r}")
        return v

    @field_validator("domain_current_site", mode="before")
    def _strip_scheme(cls, v: Any) -> Any:
        if isinstance(v, str):
            return re.sub(r"^https?://", "", v.strip()).rstrip("/")
        return v

    @field_validator("asset_dir_template")
    def _check_template(cls, v: str) -> str:
        if "{site_id}" not in v:
            raise ValueError("asset_dir_template must contain '{site_id}'")
        return v

    def with_overrides(self, *, prefix: str | None = None, url: str | None = None) -> MigrationConfig:
        """Копия конфига с --prefix / --url; значения проходят ту же валидацию."""
        data = self.model_dump()
        if prefix:
            data["table_prefix"] = prefix
        if url:
            data["domain_current_site"] = url
        return MigrationConfig(**data)

    @property
    def address_column(self) -> str:
        return "domain" if self.subdomain_install else "path"


@dataclass(frozen=True, slots=True)
class RunOptions:
    """Флаги одного запуска команды."""

    dry_run: bool = False
    verbose: bool = False
    output: OutputMode = "table"


_DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Неправильный YAML в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень YAML должен быть mapping, получено {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Неправильный JSON в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень JSON должен быть mapping, получено {type(data).__name__}")
    return data


def load_config(path: Union[str, Path, None]) -> MigrationConfig:
    """
    Читает YAML или JSON и возвращает проверенный объект MigrationConfig.
    При отсутствии файла конфига бросает FileNotFoundError.
    """
    if path is None:
        if not _DEFAULT_CFG.exists():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(_DEFAULT_CFG))
        path_obj = _DEFAULT_CFG
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Неподдерживаемый формат конфига: {suffix}")

    try:
        return MigrationConfig(**data)
    except ValidationError:
        raise


__all__ = [
    "IDENTIFIER_RE",
    "DatabaseConfig",
    "MigrationConfig",
    "RunOptions",
    "load_config",
]
