from __future__ import annotations

from typing import Any

from coglet.domain.error_codes import ErrorCode
from coglet.errors import AppError


class DecodeError(AppError):
    """
    Назначение:
        Строка входного файла не разбирается в UserRecord.
    Инварианты/гарантии:
        - line_no — номер строки во входном файле (с 1).
        - Ошибка фатальна для всего запуска.
    """

    def __init__(self, line_no: int, reason: str):
        super().__init__(
            category="input",
            code=ErrorCode.DECODE_ERROR.value,
            message=f"line {line_no}: {reason}",
            details={"line_no": line_no},
        )
        self.line_no = line_no
        self.reason = reason


class ValidationError(AppError):
    """Некорректные входные данные записи или конфликтующие опции."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(
            category="validation",
            code=ErrorCode.VALIDATION_ERROR.value,
            message=message,
            details={"field": field} if field else {},
        )
        self.field = field


class NotFoundError(AppError):
    def __init__(self, kind: str, id_or_name: str):
        super().__init__(
            category="directory",
            code=ErrorCode.NOT_FOUND.value,
            message=f"{kind} not found: {id_or_name}",
            details={"kind": kind, "id_or_name": id_or_name},
        )
        self.kind = kind
        self.id_or_name = id_or_name


class AmbiguousNameError(AppError):
    def __init__(self, kind: str, name: str):
        super().__init__(
            category="directory",
            code=ErrorCode.AMBIGUOUS_NAME.value,
            message=f"{kind} name is ambiguous: {name}",
            details={"kind": kind, "name": name},
        )
        self.kind = kind
        self.name = name


class ConfigError(AppError):
    """Окружение не позволяет создать клиент каталога (регион, профиль, учётные данные)."""

    def __init__(self, message: str, setting: str | None = None):
        super().__init__(
            category="config",
            code=ErrorCode.CONFIG_ERROR.value,
            message=message,
            details={"setting": setting} if setting else {},
        )
        self.setting = setting


class GenerationError(AppError):
    """Политика паролей не может быть удовлетворена при вычисленной длине."""

    def __init__(self, message: str):
        super().__init__(
            category="password",
            code=ErrorCode.GENERATION_ERROR.value,
            message=message,
        )


class DirectoryError(AppError):
    """
    Назначение:
        Ошибка, возвращённая каталогом (Cognito) или транспортом boto3.
    Контракт:
        - message содержит исходный текст ошибки каталога без изменений.
        - aws_code — Error.Code из ответа (None для сетевых ошибок).
        - operation — имя вызванной операции API.
    """

    def __init__(
        self,
        operation: str,
        message: str,
        aws_code: str | None = None,
        status_code: int | None = None,
        retryable: bool = False,
        code: str | None = None,
    ):
        super().__init__(
            category="directory",
            code=code or ErrorCode.from_aws_code(aws_code).value,
            message=f"{operation}: {aws_code}: {message}" if aws_code else f"{operation}: {message}",
            retryable=retryable,
            details={"operation": operation, "aws_code": aws_code, "status_code": status_code},
        )
        self.operation = operation
        self.aws_code = aws_code
        self.status_code = status_code


class RecordError(AppError):
    """
    Назначение:
        Ошибка обработки одной записи с привязкой к строке входного файла.
    Контракт:
        - code/category наследуются от исходной ошибки (если это AppError).
        - cause доступна через __cause__ и атрибут cause.
    """

    def __init__(self, line_no: int, username: str, cause: BaseException):
        details: dict[str, Any] = {"line_no": line_no, "username": username}
        if isinstance(cause, AppError):
            category, code = cause.category, cause.code
            details.update(cause.details or {})
        else:
            category, code = "record", ErrorCode.UNEXPECTED_ERROR.value
        super().__init__(
            category=category,
            code=code,
            message=f"line {line_no}: {cause}",
            details=details,
        )
        self.line_no = line_no
        self.username = username
        self.cause = cause
        self.__cause__ = cause


__all__ = [
    "DecodeError",
    "ValidationError",
    "NotFoundError",
    "AmbiguousNameError",
    "GenerationError",
    "ConfigError",
    "DirectoryError",
    "RecordError",
]
