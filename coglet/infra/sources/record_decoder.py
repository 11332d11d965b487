from __future__ import annotations

import json
from typing import Any, BinaryIO, Iterable, Iterator

from coglet.domain.exceptions import DecodeError
from coglet.domain.models import UserRecord

RESERVED_USERNAME = "username"
RESERVED_PASSWORD = "password"


def parseColumns(columns: str | None) -> list[str] | None:
    """
    Назначение:
        Разбирает значение --columns в упорядоченный список имён колонок.

    Поведение:
        - None/"" -> None (режим JSON-объекта на строку).
        - Пустые имена сохраняются: соответствующее поле строки отбрасывается.
    """
    if not columns:
        return None
    return columns.split(",")


def isRecordLine(line: str) -> bool:
    """Пустые строки и строки, начинающиеся с '#', записями не являются."""
    stripped = line.strip()
    return stripped != "" and not stripped.startswith("#")


def _decodeJsonLine(line: str, lineNo: int) -> UserRecord:
    try:
        data = json.loads(line)
    except json.JSONDecodeError as exc:
        raise DecodeError(lineNo, f"invalid JSON: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise DecodeError(lineNo, "expected a JSON object")

    username = data.get("username")
    if not isinstance(username, str):
        raise DecodeError(lineNo, "field 'username' is required and must be a string")

    password = data.get("password")
    if password is None:
        password = ""
    if not isinstance(password, str):
        raise DecodeError(lineNo, "field 'password' must be a string")

    attributes = data.get("attributes")
    if attributes is None:
        attributes = {}
    if not isinstance(attributes, dict):
        raise DecodeError(lineNo, "field 'attributes' must be an object")

    metadata = data.get("clientMetadata")
    if metadata is None:
        metadata = {}
    if not isinstance(metadata, dict) or any(not isinstance(v, str) for v in metadata.values()):
        raise DecodeError(lineNo, "field 'clientMetadata' must be an object of strings")

    return UserRecord(
        username=username,
        password=password,
        attributes=dict(attributes),
        client_metadata=dict(metadata),
    )


def _decodeTabularLine(line: str, lineNo: int, columns: list[str]) -> UserRecord:
    fields = line.split(",")
    if len(fields) != len(columns):
        raise DecodeError(lineNo, f"invalid format: expected {len(columns)} fields, got {len(fields)}")

    username = ""
    password = ""
    attributes: dict[str, Any] = {}
    for key, value in zip(columns, fields):
        if key == RESERVED_USERNAME:
            username = value
        elif key == RESERVED_PASSWORD:
            password = value
        elif key == "":
            continue
        else:
            attributes[key] = value
    return UserRecord(username=username, password=password, attributes=attributes)


def decodeLine(line: str, lineNo: int, columns: list[str] | None = None) -> UserRecord:
    """
    Назначение:
        Преобразует одну строку входного файла в UserRecord.

    Входные данные:
        line: str
            Строка без ведущих/хвостовых пробелов; не пустая и не комментарий.
        lineNo: int
            Номер строки (с 1), попадает в DecodeError.
        columns: list[str] | None
            Маппинг колонок; None — режим JSON-объекта.

    Ошибки:
        DecodeError с номером строки.
    """
    if columns is None:
        return _decodeJsonLine(line, lineNo)
    return _decodeTabularLine(line, lineNo, columns)


def iterUserRecords(lines: Iterable[str], columns: list[str] | None = None) -> Iterator[tuple[int, UserRecord]]:
    """
    Назначение:
        Последовательно декодирует поток строк, сохраняя порядок и номера строк.

    Выходные данные:
        Пары (line_no, UserRecord); пустые строки и комментарии пропускаются.
    """
    for lineNo, raw in enumerate(lines, start=1):
        if not isRecordLine(raw):
            continue
        yield lineNo, decodeLine(raw.strip(), lineNo, columns)


def iterUtf8Lines(stream: BinaryIO) -> Iterator[str]:
    """
    Назначение:
        Декодирует байтовые строки файла как UTF-8 (BOM в первой строке отбрасывается).

    Ошибки:
        DecodeError с номером строки, если строка не является корректным UTF-8.
    """
    for lineNo, raw in enumerate(stream, start=1):
        encoding = "utf-8-sig" if lineNo == 1 else "utf-8"
        try:
            yield raw.decode(encoding)
        except UnicodeDecodeError as exc:
            raise DecodeError(lineNo, f"invalid UTF-8: {exc.reason} at byte {exc.start}") from exc


def readUserRecords(path: str, columns: list[str] | None = None) -> Iterator[tuple[int, UserRecord]]:
    """Читает файл пользователей (UTF-8) построчно, не загружая его целиком."""
    with open(path, "rb") as f:
        yield from iterUserRecords(iterUtf8Lines(f), columns)
