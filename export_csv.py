from __future__ import annotations

import csv
from pathlib import Path
from typing import Any, Iterable, Mapping

EXPORT_FILENAME = "tasks.csv"

# record field -> column title
EXPORT_COLUMNS: dict[str, str] = {
    "title": "Título",
    "description": "Descrição",
}


def write_tasks_csv(tasks: Iterable[Mapping[str, Any]], path: Path) -> Path:
    """
    Write the title/description of each task to `path` as UTF-8 CSV, replacing any previous file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(EXPORT_COLUMNS.values())
        for task in tasks:
            writer.writerow(
                "" if task.get(field) is None else str(task.get(field)) for field in EXPORT_COLUMNS
            )
    return path
