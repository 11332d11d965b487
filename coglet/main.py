from __future__ import annotations

import json
import logging
import os
import time
import uuid
from pathlib import Path
from typing import Any

import typer

from coglet.common.sanitize import maskSecret
from coglet.common.time import getDurationMs
from coglet.config.config import Settings, loadSettings
from coglet.domain.exceptions import (
    AmbiguousNameError,
    ConfigError,
    DecodeError,
    DirectoryError,
    NotFoundError,
    ValidationError,
)
from coglet.domain.filter import UsernameFilter
from coglet.domain.models import (
    ApplyOptionModifier,
    withPassword,
    withPermanentPassword,
    withRandomPassword,
    withSendPasswordResetCode,
)
from coglet.errors import AppError
from coglet.infra.artifacts.report_writer import (
    Report,
    addFailure,
    createEmptyReport,
    finalizeReport,
    writeReportJson,
)
from coglet.infra.cache.token_cache import TokenCache
from coglet.infra.directory.cognito_directory import CognitoDirectory, createCognitoClient
from coglet.infra.logging.setup import closeCommandLogger, createCommandLogger, logEvent, mapLogLevel
from coglet.infra.sources.record_decoder import parseColumns, readUserRecords
from coglet.usecases.apply_users_service import ApplyUsersService
from coglet.usecases.login_as_service import LoginAsService

PASSWORD_ENV = "COGLET_PASSWORD"

app = typer.Typer(no_args_is_help=True, add_completion=False)


def printRunHeader(logger: logging.Logger, runId: str, command: str, settings: Settings, sources: list[str]) -> None:
    """
    Назначение:
        Пишет в лог безопасную сводку параметров запуска (без секретов).
    """
    logEvent(
        logger,
        logging.INFO,
        runId,
        "core",
        f"run_id={runId} command={command} region={settings.region} profile={settings.profile} "
        f"endpoint={settings.endpoint_url} sources={sources} log_level={settings.log_level}",
    )


def runWithReport(ctx: typer.Context, commandName: str, runner) -> None:
    """
    Назначение:
        Унифицированная обвязка выполнения команд:
        - создаёт логгер (stderr + файл, если задан log_dir)
        - создаёт report skeleton
        - гарантирует запись отчёта в finally (если задан report_dir)
        - переводит код возврата runner в exit code процесса

    Входные данные:
        ctx: typer.Context
        commandName: str
        runner: Callable[[logging.Logger, Report], int]
    """
    runId = ctx.obj["runId"]
    settings: Settings = ctx.obj["settings"]
    sources = ctx.obj["sources"]

    startMonotonic = time.monotonic()
    logger, logFilePath = createCommandLogger(
        commandName=commandName,
        runId=runId,
        logLevel=settings.log_level,
        logDir=settings.log_dir,
    )
    report = createEmptyReport(runId=runId, command=commandName, configSources=sources)

    exitCode: int | None = None
    try:
        printRunHeader(logger, runId, commandName, settings, sources)
        exitCode = runner(logger, report)
    finally:
        finalizeReport(report, getDurationMs(startMonotonic, time.monotonic()), logFilePath)
        if settings.report_dir:
            reportPath = writeReportJson(report, settings.report_dir, f"report_{commandName}_{runId}")
            logEvent(logger, logging.INFO, runId, "report", f"Report written: {reportPath}")
        closeCommandLogger(logger)

    if exitCode:
        raise typer.Exit(code=exitCode)


def failCommand(logger: logging.Logger, report: Report, runId: str, component: str, exc: BaseException, code: int) -> int:
    """Фиксирует ошибку в логе и отчёте, печатает её в stderr и возвращает exit code."""
    logEvent(logger, logging.ERROR, runId, component, str(exc))
    report.status = "failed"
    report.error = exc.to_dict() if isinstance(exc, AppError) else {"message": str(exc)}
    typer.echo(f"ERROR: {exc}", err=True)
    return code


def parseClientMetadata(value: str | None) -> dict[str, str]:
    """
    Назначение:
        Разбирает --client-metadata.

    Поведение:
        - "" / None -> {}.
        - JSON-объект со строковыми значениями.
        - Иначе пары key=value через запятую.
    """
    if not value:
        return {}
    text = value.strip()
    if text.startswith("{"):
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValidationError(f"invalid client metadata: {exc.msg}", field="client_metadata") from exc
        if not isinstance(data, dict) or any(not isinstance(v, str) for v in data.values()):
            raise ValidationError("client metadata must be an object of strings", field="client_metadata")
        return dict(data)

    result: dict[str, str] = {}
    for pair in text.split(","):
        if not pair:
            continue
        key, sep, val = pair.partition("=")
        if not sep or not key:
            raise ValidationError(f"invalid client metadata pair: {pair}", field="client_metadata")
        result[key] = val
    return result


def buildApplyModifiers(
    password: str | None,
    randomPassword: bool,
    permanentPassword: bool,
    sendPasswordResetCode: bool,
) -> list[ApplyOptionModifier]:
    modifiers: list[ApplyOptionModifier] = []
    if password:
        modifiers.append(withPassword(password))
    if randomPassword:
        modifiers.append(withRandomPassword())
    if permanentPassword:
        modifiers.append(withPermanentPassword())
    if sendPasswordResetCode:
        modifiers.append(withSendPasswordResetCode())
    return modifiers


def openDirectory(settings: Settings, poolIdOrName: str) -> CognitoDirectory:
    return CognitoDirectory.connect(createCognitoClient(settings), poolIdOrName)


def runApplyUsersCommand(
    ctx: typer.Context,
    poolIdOrName: str,
    usersFile: str,
    password: str | None,
    randomPassword: bool,
    permanentPassword: bool,
    sendPasswordResetCode: bool,
    filterPattern: str | None,
    columns: str | None,
    dryRun: bool,
    verbose: bool,
    continueOnError: bool,
) -> None:
    settings: Settings = ctx.obj["settings"]
    runId = ctx.obj["runId"]

    def execute(logger: logging.Logger, report: Report) -> int:
        report.meta.input_path = usersFile
        report.meta.pool = poolIdOrName
        logEvent(
            logger,
            logging.INFO,
            runId,
            "apply",
            f"options password={maskSecret(password)} random_password={randomPassword} "
            f"permanent_password={permanentPassword} send_password_reset_code={sendPasswordResetCode} "
            f"filter={filterPattern} columns={columns} dry_run={dryRun} continue_on_error={continueOnError}",
        )
        if not Path(usersFile).is_file():
            return failCommand(logger, report, runId, "input", FileNotFoundError(f"users file not found: {usersFile}"), 2)

        try:
            modifiers = buildApplyModifiers(password, randomPassword, permanentPassword, sendPasswordResetCode)
            usernameFilter = UsernameFilter(filterPattern)
            directory = openDirectory(settings, poolIdOrName)
            service = ApplyUsersService(
                directory,
                modifiers=modifiers,
                usernameFilter=usernameFilter,
                failFast=not continueOnError,
                maxConcurrency=settings.max_concurrency,
            )
        except (ConfigError, ValidationError, NotFoundError, AmbiguousNameError, DirectoryError) as exc:
            return failCommand(logger, report, runId, "config", exc, 2)

        report.meta.pool = directory.poolId
        try:
            result = service.run(
                readUserRecords(usersFile, parseColumns(columns)),
                logger=logger,
                runId=runId,
                dryRun=dryRun,
                verbose=verbose,
            )
        except OSError as exc:
            return failCommand(logger, report, runId, "input", exc, 2)

        report.summary = result.summary()
        for failure in result.failures:
            addFailure(report, failure)

        summary: dict[str, Any] = {"run_id": runId, "pool_id": directory.poolId, **result.summary()}
        typer.echo(json.dumps(summary, ensure_ascii=False))

        if result.error is not None:
            code = 2 if isinstance(result.error, DecodeError) else 1
            return failCommand(logger, report, runId, "apply", result.error, code)
        return 0

    runWithReport(ctx=ctx, commandName="apply-users", runner=execute)


def runLoginAsCommand(
    ctx: typer.Context,
    poolIdOrName: str,
    username: str,
    password: str | None,
    client: str | None,
    clientMetadata: str | None,
    useCache: bool,
) -> None:
    settings: Settings = ctx.obj["settings"]
    runId = ctx.obj["runId"]

    def execute(logger: logging.Logger, report: Report) -> int:
        report.meta.pool = poolIdOrName
        effectivePassword = password or os.getenv(PASSWORD_ENV, "")
        logEvent(
            logger,
            logging.INFO,
            runId,
            "login",
            f"options username={username} password={maskSecret(effectivePassword or None)} client={client} use_cache={useCache}",
        )
        try:
            metadata = parseClientMetadata(clientMetadata)
            directory = openDirectory(settings, poolIdOrName)
        except (ConfigError, ValidationError, NotFoundError, AmbiguousNameError, DirectoryError) as exc:
            return failCommand(logger, report, runId, "config", exc, 2)

        report.meta.pool = directory.poolId
        cache = TokenCache(settings.state_dir) if useCache else None
        try:
            result = LoginAsService(directory, cache).login(
                username,
                effectivePassword,
                logger=logger,
                runId=runId,
                clientIdOrName=client,
                clientMetadata=metadata,
            )
        except (ValidationError, NotFoundError, AmbiguousNameError) as exc:
            return failCommand(logger, report, runId, "login", exc, 2)
        except DirectoryError as exc:
            return failCommand(logger, report, runId, "login", exc, 1)

        report.summary = {"from_cache": result.from_cache, "client_id": result.client_id}
        typer.echo(json.dumps(result.auth.to_dict(), ensure_ascii=False))
        return 0

    runWithReport(ctx=ctx, commandName="login-as", runner=execute)


@app.callback()
def main(
    ctx: typer.Context,
    config: str | None = typer.Option(None, "--config", help="Path to config.yml"),
    runId: str | None = typer.Option(None, "--run-id", help="Run identifier (UUID). If omitted, generated."),
    logLevel: str | None = typer.Option(None, "--log-level", help="Log level: ERROR|WARN|INFO|DEBUG"),
    logDir: str | None = typer.Option(None, "--log-dir", help="Directory for log files."),
    reportDir: str | None = typer.Option(None, "--report-dir", help="Directory for report JSON files."),
    stateDir: str | None = typer.Option(None, "--state-dir", help="Directory for the login-as token cache."),
    region: str | None = typer.Option(None, "--region", help="AWS region of the user pool"),
    profile: str | None = typer.Option(None, "--profile", help="AWS shared config profile"),
    endpoint: str | None = typer.Option(None, "--endpoint", "-e", help="Custom directory endpoint URL"),
    connectTimeout: float | None = typer.Option(None, "--connect-timeout", help="Connect timeout in seconds"),
    readTimeout: float | None = typer.Option(None, "--read-timeout", help="Read timeout in seconds"),
    maxAttempts: int | None = typer.Option(None, "--max-attempts", help="Transport-level attempts per directory call"),
    maxConcurrency: int | None = typer.Option(None, "--max-concurrency", help="Limit concurrently applied users (default: unlimited)"),
):
    """
    Назначение:
        Глобальная инициализация CLI:
        - генерирует/принимает run_id
        - загружает настройки (CLI > ENV > config > defaults)
        - сохраняет всё в ctx.obj для подкоманд
    """
    if not runId:
        runId = str(uuid.uuid4())

    cliOverrides = {
        "log_level": logLevel,
        "log_dir": logDir,
        "report_dir": reportDir,
        "state_dir": stateDir,
        "region": region,
        "profile": profile,
        "endpoint_url": endpoint,
        "connect_timeout": connectTimeout,
        "read_timeout": readTimeout,
        "max_attempts": maxAttempts,
        "max_concurrency": maxConcurrency,
    }
    try:
        loaded = loadSettings(config_path=config, cli_overrides=cliOverrides)
        mapLogLevel(loaded.settings.log_level)
    except ValueError as exc:
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(code=2)

    ctx.obj = {
        "runId": runId,
        "settings": loaded.settings,
        "sources": loaded.sources_used,
        "configPath": config,
    }


@app.command("apply-users")
def applyUsers(
    ctx: typer.Context,
    poolIdOrName: str = typer.Argument(..., metavar="USER_POOL_ID_OR_NAME"),
    usersFile: str = typer.Argument(..., metavar="USERS_FILE"),
    password: str | None = typer.Option(None, "--password", "-p", help="Set password"),
    randomPassword: bool = typer.Option(False, "--random-password", "-r", help="Set random password"),
    permanentPassword: bool = typer.Option(False, "--permanent-password", "-P", help="Set permanent password"),
    sendPasswordResetCode: bool = typer.Option(
        False, "--send-password-reset-code", "-s", help="Send password reset code"
    ),
    filterPattern: str | None = typer.Option(None, "--filter", "-f", help="Apply only usernames matching this regex"),
    columns: str | None = typer.Option(None, "--columns", "-c", help="Define columns for CSV format"),
    dryRun: bool = typer.Option(False, "--dry-run", help="Do not change the user pool"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    continueOnError: bool = typer.Option(
        False, "--continue-on-error", help="Dispatch all users even after a failure"
    ),
):
    """Apply users to the user pool."""
    runApplyUsersCommand(
        ctx=ctx,
        poolIdOrName=poolIdOrName,
        usersFile=usersFile,
        password=password,
        randomPassword=randomPassword,
        permanentPassword=permanentPassword,
        sendPasswordResetCode=sendPasswordResetCode,
        filterPattern=filterPattern,
        columns=columns,
        dryRun=dryRun,
        verbose=verbose,
        continueOnError=continueOnError,
    )


@app.command("login-as")
def loginAs(
    ctx: typer.Context,
    poolIdOrName: str = typer.Argument(..., metavar="USER_POOL_ID_OR_NAME"),
    username: str = typer.Argument(..., metavar="USERNAME"),
    password: str | None = typer.Option(
        None, "--password", "-p", help=f"Password. If not set, {PASSWORD_ENV} env is used"
    ),
    client: str | None = typer.Option(None, "--client", "-c", help="User pool client id or name"),
    clientMetadata: str | None = typer.Option(None, "--client-metadata", "-m", help="Client metadata (k=v,k2=v2 or JSON)"),
    useCache: bool = typer.Option(False, "--use-cache", help="Use cached tokens while they are valid"),
):
    """Login as the user in the user pool."""
    runLoginAsCommand(
        ctx=ctx,
        poolIdOrName=poolIdOrName,
        username=username,
        password=password,
        client=client,
        clientMetadata=clientMetadata,
        useCache=useCache,
    )
