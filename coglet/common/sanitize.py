SECRET_MASK = "***"

SENSITIVE_KEYS = (
    "password",
    "access_token",
    "id_token",
    "refresh_token",
    "session",
    "client_secret",
    "secret_hash",
)


def maskSecret(value: str | None) -> str | None:
    """
    Назначение:
        Маскирует секреты для безопасного вывода в stderr/logs/report.

    Выходные данные:
        '***' если значение задано (включая пустую строку), иначе None.
    """
    if value is None:
        return None
    return SECRET_MASK


def truncateText(value: str | None, limit: int = 500) -> str | None:
    """
    Назначение:
        Ограничивает длину текста ошибок в отчёте.
    """
    if value is None:
        return None
    if len(value) <= limit:
        return value
    suffix = "..." if limit > 3 else ""
    head = limit - len(suffix)
    return value[:head] + suffix


def maskSecretsInObject(obj: object, sensitive_keys: tuple[str, ...] = SENSITIVE_KEYS) -> object:
    """
    Назначение:
        Рекурсивно маскирует значения по заданным ключам в структурах dict/list.
    """
    sensitive = {key.lower() for key in sensitive_keys}
    if isinstance(obj, dict):
        masked: dict[str, object] = {}
        for k, v in obj.items():
            if str(k).lower() in sensitive:
                masked[k] = maskSecret(str(v) if v is not None else None)
            else:
                masked[k] = maskSecretsInObject(v, sensitive_keys)
        return masked
    if isinstance(obj, list):
        return [maskSecretsInObject(item, sensitive_keys) for item in obj]
    return obj
