from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from coglet.common.task_group import TaskGroup
from coglet.domain.exceptions import DecodeError, RecordError
from coglet.domain.filter import UsernameFilter
from coglet.domain.models import ApplyOptionModifier, RunCounters, UserRecord, buildApplyOptions
from coglet.domain.ports.directory import DirectoryProtocol
from coglet.infra.logging.setup import logEvent
from coglet.usecases.apply_user import applyUser


@dataclass
class ApplyUsersResult:
    """
    Назначение:
        Итог запуска apply-users.
    Поля:
        applied/skipped — счётчики RunCounters.
        failed — записи, завершившиеся ошибкой.
        not_dispatched — живые записи, не запущенные после отмены (fail-fast).
        error — ошибка, которую нужно сообщить пользователю (DecodeError или первая RecordError).
        failures — все ошибки записей в порядке строк входного файла.
    """

    applied: int = 0
    skipped: int = 0
    failed: int = 0
    not_dispatched: int = 0
    dry_run: bool = False
    error: BaseException | None = None
    failures: list[RecordError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    def summary(self) -> dict[str, Any]:
        return {
            "dry_run": self.dry_run,
            "applied": self.applied,
            "skipped": self.skipped,
            "failed": self.failed,
            "not_dispatched": self.not_dispatched,
        }


class ApplyUsersService:
    """
    Назначение/ответственность:
        Движок сверки: читает записи по порядку, фильтрует, параллельно применяет
        их к каталогу и агрегирует результат.
    Инварианты/гарантии:
        - Чтение/фильтрация/подсчёт dry-run — строго в порядке входа (один читатель).
        - Каждая запись увеличивает applied или skipped не более одного раза.
        - Отфильтрованные записи и dry-run никогда не доходят до каталога.
        - fail_fast=True: после первой ошибки новые задачи не запускаются,
          запущенные дорабатывают; в обоих режимах результат формируется после join.
    """

    def __init__(
        self,
        directory: DirectoryProtocol | None,
        modifiers: Iterable[ApplyOptionModifier] = (),
        usernameFilter: UsernameFilter | None = None,
        failFast: bool = True,
        maxConcurrency: int | None = None,
        applier: Callable[..., None] = applyUser,
    ):
        self.directory = directory
        self.modifiers = tuple(modifiers)
        # Конфликт опций: ошибка конфигурации до чтения входа.
        self.options = buildApplyOptions(self.modifiers)
        self.usernameFilter = usernameFilter or UsernameFilter()
        self.failFast = failFast
        self.maxConcurrency = maxConcurrency
        self.applier = applier

    def run(
        self,
        records: Iterable[tuple[int, UserRecord]],
        logger: logging.Logger,
        runId: str,
        dryRun: bool = False,
        verbose: bool = False,
    ) -> ApplyUsersResult:
        if not dryRun and self.directory is None:
            raise ValueError("directory is required unless dry-run")

        counters = RunCounters()
        group = TaskGroup(maxConcurrency=self.maxConcurrency, name="apply-user")
        prefix = "dry-run: " if dryRun else ""
        notDispatched = 0
        cancelLogged = False
        decodeError: DecodeError | None = None

        logEvent(logger, logging.INFO, runId, "apply", f"{prefix}apply users started")
        try:
            for lineNo, record in records:
                if not self.usernameFilter.matches(record.username):
                    if verbose:
                        logEvent(logger, logging.INFO, runId, "apply", f"skip user username={record.username}")
                    counters.addSkipped()
                    continue
                if verbose:
                    logEvent(logger, logging.INFO, runId, "apply", f"applying user username={record.username}")
                if dryRun:
                    counters.addApplied()
                    continue
                if self.failFast and group.isCancelled():
                    if not cancelLogged:
                        logEvent(logger, logging.WARNING, runId, "apply", "apply users cancelled: no further users will be dispatched")
                        cancelLogged = True
                    notDispatched += 1
                    continue
                group.go(lineNo, self._makeTask(lineNo, record, counters, logger, runId))
        except DecodeError as exc:
            decodeError = exc
            group.cancel()
            logEvent(logger, logging.ERROR, runId, "input", f"apply users aborted: {exc}")
        finally:
            group.wait()

        failures = [err for _order, err in group.errors() if isinstance(err, RecordError)]
        result = ApplyUsersResult(
            applied=counters.applied,
            skipped=counters.skipped,
            failed=len(failures),
            not_dispatched=notDispatched,
            dry_run=dryRun,
            error=decodeError or group.firstError(),
            failures=failures,
        )
        logEvent(
            logger,
            logging.INFO,
            runId,
            "apply",
            f"{prefix}apply users completed total={result.applied} skipped={result.skipped} "
            f"failed={result.failed} not_dispatched={result.not_dispatched}",
        )
        return result

    def _makeTask(
        self,
        lineNo: int,
        record: UserRecord,
        counters: RunCounters,
        logger: logging.Logger,
        runId: str,
    ) -> Callable[[], None]:
        def task() -> None:
            try:
                self.applier(self.directory, record, self.modifiers)
            except Exception as exc:
                logEvent(
                    logger,
                    logging.ERROR,
                    runId,
                    "apply",
                    f"apply user failed line={lineNo} username={record.username}: {exc}",
                )
                raise RecordError(lineNo, record.username, exc) from exc
            counters.addApplied()

        return task
