# ssl_migrate/report/json_report.py

"""
Сохранение FleetReport в JSON-файл.

Файл всегда содержит один JSON-массив записей, а не склеенные объекты.
"""
import json
from pathlib import Path

from ssl_migrate.models import FleetReport


def render_json(report: FleetReport, output_path: Path | str) -> Path:
    """
    Сохраняет отчёт report в формате JSON по указанному пути.

    :param report: объект FleetReport
    :param output_path: путь к JSON-файлу
    :return: Path сохранённого файла

    Пример:
    ```python
    from ssl_migrate.report.json_report import render_json
    report_path = render_json(report, 'reports/protected-sites.json')
    ```
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    data = [record.to_dict() for record in report.records]

    with output.open('w', encoding='utf-8') as f:
        json.dump(data, f, ensure_ascii=False, indent=2)

    return output
