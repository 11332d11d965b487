from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s runId=%(runId)s comp=%(component)s msg=%(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"


class EnsureFieldsFilter(logging.Filter):
    """
    Назначение:
        Гарантирует наличие полей runId и component в LogRecord,
        чтобы форматтер не падал KeyError.

    Входные данные:
        runId: str
            Идентификатор запуска.
        defaultComponent: str
            Компонент по умолчанию, если не задан.
    """

    def __init__(self, runId: str, defaultComponent: str = "core"):
        super().__init__()
        self.runId = runId
        self.defaultComponent = defaultComponent

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "runId"):
            record.runId = self.runId
        if not hasattr(record, "component"):
            record.component = self.defaultComponent
        return True


def mapLogLevel(levelName: str) -> int:
    """
    Назначение:
        Преобразует строковый уровень логирования в logging level.

    Входные данные:
        levelName: str
            ERROR|WARN|INFO|DEBUG

    Выходные данные:
        int
    """
    value = (levelName or "").strip().upper()
    if value == "ERROR":
        return logging.ERROR
    if value in ("WARN", "WARNING"):
        return logging.WARNING
    if value == "INFO":
        return logging.INFO
    if value == "DEBUG":
        return logging.DEBUG
    raise ValueError(f"Unsupported log level: {levelName}")


def createCommandLogger(
    commandName: str,
    runId: str,
    logLevel: str,
    logDir: str | None = None,
    stream=None,
) -> tuple[logging.Logger, str | None]:
    """
    Назначение:
        Создаёт логгер для конкретной команды.

    Входные данные:
        commandName: str
        runId: str
        logLevel: str
        logDir: str | None
            Если задан — дополнительно пишет в <logDir>/<command>_<runId>.log.
        stream:
            Поток консольного вывода; по умолчанию sys.stderr (stdout занят результатом команды).

    Выходные данные:
        (logger, logFilePath | None)
    """
    loggerName = f"coglet.{commandName}.{runId}"
    logger = logging.getLogger(loggerName)
    logger.handlers.clear()
    logger.propagate = False

    level = mapLogLevel(logLevel)
    logger.setLevel(level)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    consoleHandler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    consoleHandler.setLevel(level)
    consoleHandler.setFormatter(formatter)
    consoleHandler.addFilter(EnsureFieldsFilter(runId=runId))
    logger.addHandler(consoleHandler)

    logFilePath: str | None = None
    if logDir:
        Path(logDir).mkdir(parents=True, exist_ok=True)
        logFilePath = str(Path(logDir) / f"{commandName}_{runId}.log")
        fileHandler = logging.FileHandler(logFilePath, encoding="utf-8")
        fileHandler.setLevel(level)
        fileHandler.setFormatter(formatter)
        fileHandler.addFilter(EnsureFieldsFilter(runId=runId))
        logger.addHandler(fileHandler)

    return logger, logFilePath


def closeCommandLogger(logger: logging.Logger) -> None:
    """Закрывает и снимает обработчики логгера команды."""
    for handler in list(logger.handlers):
        handler.flush()
        handler.close()
        logger.removeHandler(handler)


def logEvent(logger: logging.Logger, level: int, runId: str, component: str, message: str) -> None:
    """
    Назначение:
        Унифицированная запись событий с runId/component.
    """
    logger.log(level, message, extra={"runId": runId, "component": component})
