import io
import json
import logging

import pytest

from coglet.common.sanitize import maskSecretsInObject, truncateText
from coglet.domain.exceptions import RecordError, ValidationError
from coglet.domain.models import AuthResult
from coglet.infra.artifacts.report_writer import addFailure, createEmptyReport, finalizeReport, writeReportJson
from coglet.infra.logging.setup import closeCommandLogger, createCommandLogger, logEvent, mapLogLevel


def test_report_masks_secrets(tmp_path):
    report = createEmptyReport(runId="r1", command="login-as", configSources=["cli"])
    report.summary = {"auth": AuthResult(access_token="at", refresh_token="rt", expires_in=60).to_dict()}
    addFailure(report, RecordError(3, "bob", ValidationError("username is required")))
    finalizeReport(report, durationMs=12, logFile=None)

    path = writeReportJson(report, str(tmp_path), "report_login-as_r1")
    data = json.loads(open(path, encoding="utf-8").read())

    assert data["summary"]["auth"]["access_token"] == "***"
    assert data["summary"]["auth"]["refresh_token"] == "***"
    assert data["summary"]["auth"]["expires_in"] == 60
    assert data["items"] == [
        {"line_no": 3, "username": "bob", "code": "VALIDATION_ERROR", "message": "line 3: username is required"}
    ]
    assert data["meta"]["duration_ms"] == 12


def test_mask_and_truncate_helpers():
    assert maskSecretsInObject({"Password": "x", "nested": [{"session": None}]}) == {
        "Password": "***",
        "nested": [{"session": None}],
    }
    assert truncateText("abcdef", limit=5) == "ab..."
    assert truncateText(None) is None


def test_command_logger_writes_console_and_file(tmp_path):
    stream = io.StringIO()
    logger, logFile = createCommandLogger("apply-users", "run-7", "INFO", logDir=str(tmp_path), stream=stream)
    try:
        logEvent(logger, logging.INFO, "run-7", "apply", "apply users started")
        logEvent(logger, logging.DEBUG, "run-7", "apply", "hidden")
    finally:
        closeCommandLogger(logger)

    assert "runId=run-7 comp=apply msg=apply users started" in stream.getvalue()
    assert "hidden" not in stream.getvalue()
    assert logFile.endswith("apply-users_run-7.log")
    assert "apply users started" in open(logFile, encoding="utf-8").read()


def test_map_log_level():
    assert mapLogLevel("warn") == logging.WARNING
    with pytest.raises(ValueError):
        mapLogLevel("LOUD")
