from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping

from coglet.domain.exceptions import ValidationError
from coglet.domain.models import AuthResult
from coglet.domain.ports.directory import DirectoryProtocol
from coglet.infra.cache.token_cache import TokenCache, cacheKey
from coglet.infra.logging.setup import logEvent


@dataclass
class LoginAsResult:
    auth: AuthResult
    from_cache: bool = False
    client_id: str | None = None


class LoginAsService:
    """
    Назначение/ответственность:
        Однократный вход от имени пользователя пула с опциональным кэшем токенов.
    Взаимодействия:
        - DirectoryProtocol.resolveAppClient/authenticate.
        - TokenCache (если передан) по ключу pool_id:username.
    """

    def __init__(self, directory: DirectoryProtocol, cache: TokenCache | None = None):
        self.directory = directory
        self.cache = cache

    def login(
        self,
        username: str,
        password: str,
        logger: logging.Logger,
        runId: str,
        clientIdOrName: str | None = None,
        clientMetadata: Mapping[str, str] | None = None,
    ) -> LoginAsResult:
        """
        Алгоритм:
            - Кэш включён и запись не истекла -> вернуть её без обращения к каталогу.
            - Иначе resolveAppClient -> authenticate.
            - Кэш включён и получены токены -> сохранить с вычисленным сроком.

        Ошибки:
            ValidationError — пустые username/password.
            NotFoundError/AmbiguousNameError/DirectoryError — от каталога, без изменений.
        """
        if not username:
            raise ValidationError("username is required", field="username")

        key = cacheKey(self.directory.poolId, username)
        if self.cache is not None:
            cached = self.cache.load(key)
            if cached is not None:
                logEvent(logger, logging.INFO, runId, "cache", f"login-as cache hit username={username}")
                return LoginAsResult(auth=cached, from_cache=True)
            logEvent(logger, logging.DEBUG, runId, "cache", f"login-as cache miss username={username}")

        if not password:
            raise ValidationError("password is required (use --password or COGLET_PASSWORD)", field="password")

        appClient = self.directory.resolveAppClient(clientIdOrName)
        logEvent(logger, logging.INFO, runId, "login", f"authenticating username={username} client_id={appClient.client_id}")
        auth = self.directory.authenticate(
            username,
            password,
            appClient.client_id,
            appClient.client_secret,
            clientMetadata,
        )

        if auth.challenge_name:
            logEvent(logger, logging.WARNING, runId, "login", f"authentication returned challenge {auth.challenge_name}")
        if self.cache is not None and auth.expires_in is not None:
            path = self.cache.save(key, auth)
            logEvent(logger, logging.DEBUG, runId, "cache", f"login-as result cached path={path}")
        return LoginAsResult(auth=auth, from_cache=False, client_id=appClient.client_id)
