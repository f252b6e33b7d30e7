# cli.py

"""
Запуск ssl_migrate без установки пакета.

Пример запуска:
    python cli.py --config configs/default.yaml migrate --sites="123,456" --dry-run
    python cli.py --config configs/default.yaml protected-sites --output file
"""
from ssl_migrate.cli import cli


if __name__ == '__main__':
    cli()
