from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """
    Назначение:
        Единая таксономия кодов ошибок для отчёта и exit code.
    """

    DECODE_ERROR = "DECODE_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    AMBIGUOUS_NAME = "AMBIGUOUS_NAME"
    GENERATION_ERROR = "GENERATION_ERROR"
    CONFIG_ERROR = "CONFIG_ERROR"

    USER_NOT_FOUND = "USER_NOT_FOUND"
    USER_EXISTS = "USER_EXISTS"
    INVALID_PASSWORD = "INVALID_PASSWORD"
    INVALID_PARAMETER = "INVALID_PARAMETER"
    NOT_AUTHORIZED = "NOT_AUTHORIZED"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    THROTTLED = "THROTTLED"
    NETWORK_ERROR = "NETWORK_ERROR"
    DIRECTORY_ERROR = "DIRECTORY_ERROR"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"

    @classmethod
    def from_aws_code(cls, aws_code: str | None) -> "ErrorCode":
        """
        Назначение:
            Подбор общего кода по коду ошибки Cognito (Error.Code из ответа).
        """
        if aws_code == "UserNotFoundException":
            return cls.USER_NOT_FOUND
        if aws_code in ("UsernameExistsException", "AliasExistsException"):
            return cls.USER_EXISTS
        if aws_code == "InvalidPasswordException":
            return cls.INVALID_PASSWORD
        if aws_code == "InvalidParameterException":
            return cls.INVALID_PARAMETER
        if aws_code in ("NotAuthorizedException", "AccessDeniedException", "UnrecognizedClientException"):
            return cls.NOT_AUTHORIZED
        if aws_code == "ResourceNotFoundException":
            return cls.RESOURCE_NOT_FOUND
        if aws_code in ("TooManyRequestsException", "ThrottlingException", "LimitExceededException"):
            return cls.THROTTLED
        return cls.DIRECTORY_ERROR
