#!/usr/bin/env python3
"""
Точка входа ssl_migrate: перевод сайтов multisite на HTTPS.

Команды:
  migrate          Перевести один или несколько сайтов на HTTPS
  protected-sites  Отчёт о сайтах с запароленными записями и привязанным доменом
  config           Показать текущую конфигурацию

Общие опции:
  --config PATH       Путь к YAML/JSON-конфигу (default: configs/default.yaml)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (stderr, если не указан)
  --log-format FORMAT Формат логирования

Примеры:
  ssl-migrate migrate --sites="123"
  ssl-migrate migrate --sites="subdomain.example.edu"
  ssl-migrate migrate --sites="domainmappedsite.com"
  ssl-migrate migrate --sites="123,456,789" --dry-run
  ssl-migrate protected-sites --output file
"""
import json
import sys
from contextlib import contextmanager
from pathlib import Path

import click
import pymysql

from ssl_migrate import __version__
from ssl_migrate.assets import AssetRewriter
from ssl_migrate.cache import ReportCache
from ssl_migrate.config import MigrationConfig, RunOptions, load_config
from ssl_migrate.discovery import FleetDiscovery
from ssl_migrate.errors import MigrationError, PromptAborted
from ssl_migrate.logger import init_logging, set_verbose
from ssl_migrate.lookup import DomainLookup
from ssl_migrate.migration import MigrationOrchestrator
from ssl_migrate.report import migration_lines, render_html, render_json, table_lines
from ssl_migrate.resolver import SiteSpecifierResolver
from ssl_migrate.runner import WpCliRunner
from ssl_migrate.store import TenantStore, connect

CONTEXT_SETTINGS = dict(help_option_names=["--help"])
OUTPUT_CHOICES = click.Choice(["table", "json", "file"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


def open_store(settings: MigrationConfig) -> TenantStore:
    """Подключение к БД установки; подменяется в тестах."""
    return TenantStore(connect(settings.database), settings.table_prefix)


def make_runner(settings: MigrationConfig) -> WpCliRunner:
    return WpCliRunner.from_config(settings)


def _settings(ctx, prefix=None, url=None) -> MigrationConfig:
    cfg = ctx.obj['config']
    try:
        return cfg.with_overrides(prefix=prefix, url=url)
    except ValueError as e:
        print_error(f'Неверные параметры: {e}')


def _multisite_store(settings: MigrationConfig) -> TenantStore:
    """Обе команды работают только на multisite; проверка идёт до всего остального."""
    if not settings.multisite:
        print_error('This is not a multisite install.')
    try:
        store = open_store(settings)
        is_multisite = store.is_multisite()
    except (MigrationError, pymysql.MySQLError) as e:
        print_error(str(e))
    if not is_multisite:
        print_error('This is not a multisite install.')
    return store


def confirm_certificate(message: str) -> bool:
    """click.confirm; Ctrl-C или конец ввода превращаются в PromptAborted."""
    try:
        return click.confirm(message, default=False, err=True)
    except click.Abort as e:
        raise PromptAborted(message) from e


@contextmanager
def _progressbar(total: int):
    with click.progressbar(length=total, label='Probing sites', file=sys.stderr) as bar:
        yield bar


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='ssl_migrate, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default='configs/default.yaml',
    show_default=True,
    envvar='SSL_MIGRATE_CONFIG',
    type=click.Path(dir_okay=False, path_type=Path),
    help='Путь к файлу конфигурации YAML/JSON.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (stderr, если не указан)'
)
@click.option(
    '--log-format', 'log_format',
    default='%(asctime)s %(levelname)s %(message)s',
    show_default=True,
    help='Строка формата для логов'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """Группа команд ssl_migrate."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    try:
        cfg = load_config(config_path)
    except (OSError, ValueError, TypeError) as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg


@cli.command('migrate', context_settings=CONTEXT_SETTINGS)
@click.option('--sites', '-s', 'sites', required=True,
              help='ID сайта, домен, путь или список через запятую.')
@click.option('--dry-run', is_flag=True, help='Ничего не менять, только показать замены.')
@click.option('--verbose', is_flag=True, help='Подробный лог (DEBUG).')
@click.option('--url', default=None, help='Переопределить корневой домен сети.')
@click.option('--prefix', default=None, help='Переопределить префикс таблиц.')
@click.option('--output', '-o', type=OUTPUT_CHOICES, default='table', show_default=True,
              help='Куда выводить отчёт: консоль, JSON в stdout или файл.')
@click.option('--yes', '-y', is_flag=True, help='Подтверждать запрос сертификата без вопроса.')
@click.pass_context
def migrate(ctx, sites, dry_run, verbose, url, prefix, output, yes):
    """Перевести сайты на HTTPS: содержимое, файлы, сертификат."""
    set_verbose(verbose)
    settings = _settings(ctx, prefix=prefix, url=url)
    options = RunOptions(dry_run=dry_run, verbose=verbose, output=output)
    store = _multisite_store(settings)

    confirm = (lambda message: True) if yes else confirm_certificate

    try:
        resolution = SiteSpecifierResolver(DomainLookup(store, settings)).resolve(sites)
        for skipped in resolution.skipped:
            click.secho(f'Skipped {skipped.token!r}: {skipped.reason}', fg='yellow', err=True)
        orchestrator = MigrationOrchestrator(
            settings,
            options,
            make_runner(settings),
            AssetRewriter.from_config(settings, dry_run=dry_run),
            confirm,
        )
        report = orchestrator.migrate(resolution.resolved)
    except (MigrationError, pymysql.MySQLError) as e:
        print_error(str(e))

    if output == 'json':
        click.echo(json.dumps(report.to_list(), ensure_ascii=False, indent=2))
    elif output == 'file':
        path = settings.migration_report_file
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(report.to_list(), ensure_ascii=False, indent=2), encoding='utf-8')
        click.echo(f'Migration report: {path}')
    else:
        for line in migration_lines(report):
            click.echo(line)

    if not report.ok:
        print_error(f'{len(report.failed)} stage(s) failed')
    if report.aborted:
        print_error(f'Certificate confirmation aborted, {len(report.aborted)} site(s) left unconfirmed')
    if output == 'table':
        click.secho('Dry run complete.' if dry_run else 'Migration complete.', fg='green')


@cli.command('protected-sites', context_settings=CONTEXT_SETTINGS)
@click.option('--dry-run', is_flag=True, help='Не записывать результат в кэш.')
@click.option('--verbose', is_flag=True, help='Подробный лог (DEBUG).')
@click.option('--prefix', default=None, help='Переопределить префикс таблиц.')
@click.option('--output', '-o', type=OUTPUT_CHOICES, default='table', show_default=True,
              help='Куда выводить отчёт: консоль, JSON в stdout или файл.')
@click.option('--html', 'html_output', default=None,
              type=click.Path(writable=True, dir_okay=False, path_type=Path),
              help='Дополнительно сохранить HTML-отчёт в файл')
@click.option('--template', '-t', 'template_dir', default=None,
              type=click.Path(exists=True, file_okay=False, path_type=Path),
              help='Папка с Jinja2-шаблоном fleet_report.html.j2')
@click.pass_context
def protected_sites(ctx, dry_run, verbose, prefix, output, html_output, template_dir):
    """Сайты с запароленными записями, у которых есть привязанный домен."""
    set_verbose(verbose)
    settings = _settings(ctx, prefix=prefix)
    store = _multisite_store(settings)

    discovery = FleetDiscovery(
        store,
        settings,
        ReportCache(settings.cache_dir, settings.cache_ttl),
        progress=None if output == 'json' else _progressbar,
        persist=not dry_run,
    )
    try:
        report = discovery.discover()
    except (MigrationError, pymysql.MySQLError) as e:
        print_error(str(e))

    if output == 'json':
        click.echo(report.json(pretty=True))
    elif output == 'file':
        try:
            saved = render_json(report, settings.report_file)
        except OSError as e:
            print_error(f'Ошибка при сохранении JSON: {e}')
        click.echo(f'JSON report: {saved}')
    else:
        for line in table_lines(report):
            click.echo(line)
        click.echo(f'{len(report)} site(s)')

    if html_output:
        try:
            saved_html = render_html(report, template_dir, html_output)
        except Exception as e:
            print_error(f'Ошибка при сохранении HTML: {e}')
        click.echo(f'HTML report: {saved_html}')


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Показать текущую конфигурацию в JSON (пароль скрыт)."""
    cfg = ctx.obj['config']
    click.echo(cfg.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
