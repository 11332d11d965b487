from __future__ import annotations

import threading
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Iterable, Mapping

from coglet.domain.exceptions import ValidationError


@dataclass
class UserRecord:
    """
    Назначение/ответственность:
        Желаемое состояние одного пользователя пула, полученное из строки входного файла.
    Инварианты/гарантии:
        - username — ключ записи в рамках запуска (пустой отклоняется в applyUser).
        - attributes: имя атрибута -> значение (любое JSON-значение).
        - client_metadata передаётся в вызовы каталога без изменений.
    """

    username: str
    password: str = ""
    attributes: dict[str, Any] = field(default_factory=dict)
    client_metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class ApplyOptions:
    """
    Назначение:
        Итоговые опции применения пользователя, собранные из модификаторов.
    Инварианты:
        - password и random_password взаимоисключающие.
    """

    password: str = ""
    random_password: bool = False
    permanent_password: bool = False
    send_password_reset_code: bool = False


ApplyOptionModifier = Callable[[ApplyOptions], None]


def withPassword(password: str) -> ApplyOptionModifier:
    def apply(opt: ApplyOptions) -> None:
        if opt.random_password:
            raise ValidationError("cannot specify password with random password", field="password")
        opt.password = password

    return apply


def withRandomPassword() -> ApplyOptionModifier:
    def apply(opt: ApplyOptions) -> None:
        if opt.password:
            raise ValidationError("cannot specify password with random password", field="random_password")
        opt.random_password = True

    return apply


def withPermanentPassword() -> ApplyOptionModifier:
    def apply(opt: ApplyOptions) -> None:
        opt.permanent_password = True

    return apply


def withSendPasswordResetCode() -> ApplyOptionModifier:
    def apply(opt: ApplyOptions) -> None:
        opt.send_password_reset_code = True

    return apply


def buildApplyOptions(modifiers: Iterable[ApplyOptionModifier]) -> ApplyOptions:
    """
    Назначение:
        Сворачивает модификаторы по порядку в один ApplyOptions.

    Поведение:
        - Первый конфликт бросает ValidationError; до обращения к каталогу.
    """
    opt = ApplyOptions()
    for modifier in modifiers:
        modifier(opt)
    return opt


@dataclass(frozen=True)
class PasswordPolicy:
    minimum_length: int = 8
    require_lowercase: bool = False
    require_uppercase: bool = False
    require_numbers: bool = False
    require_symbols: bool = False

    @classmethod
    def fromCognito(cls, data: Mapping[str, Any]) -> "PasswordPolicy":
        """Строит политику из UserPool.Policies.PasswordPolicy ответа DescribeUserPool."""
        return cls(
            minimum_length=int(data.get("MinimumLength") or 8),
            require_lowercase=bool(data.get("RequireLowercase", False)),
            require_uppercase=bool(data.get("RequireUppercase", False)),
            require_numbers=bool(data.get("RequireNumbers", False)),
            require_symbols=bool(data.get("RequireSymbols", False)),
        )


@dataclass(frozen=True)
class AppClient:
    client_id: str
    client_name: str | None = None
    client_secret: str | None = None


@dataclass
class AuthResult:
    """
    Назначение:
        Результат обмена логин/пароль на токены сессии.
    Поля:
        expires_in — срок жизни access/id токенов в секундах (None, если выдан challenge).
        challenge_name/session — заполняются, если каталог требует дополнительный шаг.
    """

    access_token: str | None = None
    id_token: str | None = None
    refresh_token: str | None = None
    token_type: str | None = None
    expires_in: int | None = None
    challenge_name: str | None = None
    session: str | None = None

    @classmethod
    def fromCognito(cls, response: Mapping[str, Any]) -> "AuthResult":
        auth = response.get("AuthenticationResult") or {}
        expires_in = auth.get("ExpiresIn")
        return cls(
            access_token=auth.get("AccessToken"),
            id_token=auth.get("IdToken"),
            refresh_token=auth.get("RefreshToken"),
            token_type=auth.get("TokenType"),
            expires_in=int(expires_in) if expires_in is not None else None,
            challenge_name=response.get("ChallengeName"),
            session=response.get("Session"),
        )

    @classmethod
    def fromDict(cls, data: Mapping[str, Any]) -> "AuthResult":
        known = {name for name in cls.__dataclass_fields__}
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class RunCounters:
    """
    Назначение:
        Счётчики applied/skipped запуска apply-users.
    Инварианты/гарантии:
        - Только увеличиваются.
        - Инкремент атомарен относительно потоков задач.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._applied = 0
        self._skipped = 0

    def addApplied(self, n: int = 1) -> None:
        with self._lock:
            self._applied += n

    def addSkipped(self, n: int = 1) -> None:
        with self._lock:
            self._skipped += n

    @property
    def applied(self) -> int:
        with self._lock:
            return self._applied

    @property
    def skipped(self) -> int:
        with self._lock:
            return self._skipped
