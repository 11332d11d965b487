from __future__ import annotations

from typing import Mapping, Protocol

from coglet.domain.models import AppClient, AuthResult, PasswordPolicy, UserRecord


class DirectoryProtocol(Protocol):
    """
    Назначение/ответственность:
        Порт управляемого каталога пользователей (пул уже разрешён).
    Взаимодействия:
        use-case'ы apply-user/apply-users/login-as зависят только от протокола;
        реализация — CognitoDirectory поверх boto3.
    Ограничения:
        - Каждый метод — один сетевой вызов (resolveAppClient — листинг + describe).
        - Реализации должны быть безопасны для вызова из нескольких потоков.
    """

    @property
    def poolId(self) -> str:
        ...

    def userExists(self, username: str) -> bool:
        """
        Контракт:
            - True/False по наличию пользователя.
            - Любая ошибка, кроме "пользователь не найден", пробрасывается.
        """
        ...

    def createUser(self, record: UserRecord) -> None:
        ...

    def setAttributes(self, record: UserRecord) -> None:
        ...

    def setPassword(self, username: str, password: str, permanent: bool) -> None:
        ...

    def triggerPasswordReset(self, username: str, metadata: Mapping[str, str] | None = None) -> None:
        ...

    def fetchPasswordPolicy(self) -> PasswordPolicy:
        ...

    def resolveAppClient(self, idOrName: str | None) -> AppClient:
        ...

    def authenticate(
        self,
        username: str,
        password: str,
        clientId: str,
        clientSecret: str | None,
        metadata: Mapping[str, str] | None = None,
    ) -> AuthResult:
        ...


__all__ = ["DirectoryProtocol"]
