from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from coglet.common.sanitize import maskSecretsInObject, truncateText
from coglet.common.time import getNowIso
from coglet.domain.exceptions import RecordError


@dataclass
class ReportMeta:
    """
    Назначение:
        Метаданные отчёта запуска команды.
    """

    run_id: str
    command: str
    started_at: str
    finished_at: str | None = None
    duration_ms: int | None = None
    pool: str | None = None
    input_path: str | None = None
    log_file: str | None = None
    config_sources: list[str] = field(default_factory=list)


@dataclass
class Report:
    """
    Поля:
        status: "ok" | "failed"
        summary: счётчики команды (для apply-users: applied/skipped/failed/not_dispatched)
        items: неуспешные записи (line_no, username, code, message)
    """

    meta: ReportMeta
    status: str = "ok"
    summary: dict[str, Any] = field(default_factory=dict)
    items: list[dict[str, Any]] = field(default_factory=list)
    error: dict[str, Any] | None = None


def createEmptyReport(runId: str, command: str, configSources: list[str]) -> Report:
    meta = ReportMeta(
        run_id=runId,
        command=command,
        started_at=getNowIso(),
        config_sources=list(configSources or []),
    )
    return Report(meta=meta)


def addFailure(report: Report, failure: RecordError) -> None:
    report.items.append(
        {
            "line_no": failure.line_no,
            "username": failure.username,
            "code": failure.code,
            "message": truncateText(failure.message),
        }
    )


def finalizeReport(report: Report, durationMs: int, logFile: str | None) -> None:
    """
    Назначение:
        Финализирует отчёт: время завершения, длительность, путь к логу.
    """
    report.meta.finished_at = getNowIso()
    report.meta.duration_ms = durationMs
    report.meta.log_file = logFile


def writeReportJson(report: Report, reportDir: str, fileBaseName: str) -> str:
    """
    Назначение:
        Записывает report.json на диск.

    Входные данные:
        report: Report
        reportDir: str
        fileBaseName: str
            Например: "report_apply-users_<runId>"

    Выходные данные:
        str
            Полный путь к созданному файлу.
    """
    Path(reportDir).mkdir(parents=True, exist_ok=True)
    reportPath = str(Path(reportDir) / f"{fileBaseName}.json")

    data = maskSecretsInObject(asdict(report))

    with open(reportPath, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)

    return reportPath
