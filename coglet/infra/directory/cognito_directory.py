from __future__ import annotations

import base64
import hashlib
import hmac
import json
from dataclasses import dataclass
from typing import Any, Mapping

import boto3
from botocore.client import BaseClient
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError, NoRegionError, ProfileNotFound

from coglet.config.config import Settings
from coglet.domain.error_codes import ErrorCode
from coglet.domain.exceptions import AmbiguousNameError, ConfigError, DirectoryError, NotFoundError
from coglet.domain.models import AppClient, AuthResult, PasswordPolicy, UserRecord

PAGE_SIZE = 60
RETRYABLE_AWS_CODES = ("TooManyRequestsException", "ThrottlingException", "LimitExceededException")


def createCognitoClient(settings: Settings) -> BaseClient:
    """
    Назначение:
        Создаёт клиент cognito-idp из ambient-учётных данных процесса
        (переменные окружения, профиль, роль).

    Входные данные:
        settings: Settings
            region/profile/endpoint_url и таймауты транспорта.

    Выходные данные:
        botocore клиент cognito-idp. Потокобезопасен, разделяется задачами.

    Ошибки:
        ConfigError, если профиль не найден, регион не задан
        или botocore отклонил параметры клиента.
    """
    config = BotoConfig(
        connect_timeout=settings.connect_timeout,
        read_timeout=settings.read_timeout,
        retries={"max_attempts": settings.max_attempts, "mode": "standard"},
        max_pool_connections=settings.max_pool_connections,
    )
    try:
        session = boto3.session.Session(profile_name=settings.profile, region_name=settings.region)
        return session.client("cognito-idp", endpoint_url=settings.endpoint_url, config=config)
    except ProfileNotFound as exc:
        raise ConfigError(str(exc), setting="profile") from exc
    except NoRegionError as exc:
        raise ConfigError(f"{exc} (use --region or COGLET_REGION)", setting="region") from exc
    except BotoCoreError as exc:
        raise ConfigError(str(exc)) from exc
    except ValueError as exc:
        raise ConfigError(str(exc), setting="endpoint_url") from exc


def computeSecretHash(username: str, clientId: str, clientSecret: str) -> str:
    """Base64(HMAC-SHA256(clientSecret, username + clientId)) для SECRET_HASH."""
    digest = hmac.new(clientSecret.encode("utf-8"), (username + clientId).encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def formatAttributeValue(value: Any) -> str:
    """Строковое представление значения атрибута для AdminUpdateUserAttributes."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value)


def callDirectory(client: BaseClient, operation: str, **params: Any) -> dict[str, Any]:
    """
    Назначение:
        Выполняет одну операцию cognito-idp и нормализует ошибки в DirectoryError.

    Поведение:
        - ClientError -> DirectoryError с исходными Code/Message.
        - BotoCoreError (сеть, учётные данные, таймаут) -> DirectoryError(NETWORK_ERROR).
        - Повторы выполняет только сам botocore (retries в BotoConfig).
    """
    method = getattr(client, operation)
    try:
        return method(**params)
    except ClientError as exc:
        error = exc.response.get("Error", {})
        aws_code = error.get("Code")
        raise DirectoryError(
            operation=operation,
            message=error.get("Message") or str(exc),
            aws_code=aws_code,
            status_code=exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode"),
            retryable=aws_code in RETRYABLE_AWS_CODES,
        ) from exc
    except BotoCoreError as exc:
        raise DirectoryError(
            operation=operation,
            message=str(exc),
            code=ErrorCode.NETWORK_ERROR.value,
        ) from exc


def resolvePoolId(client: BaseClient, idOrName: str) -> str:
    """
    Назначение:
        Разрешает идентификатор или имя пула в канонический UserPoolId.

    Алгоритм:
        - Постранично листает ListUserPools (по PAGE_SIZE).
        - Точное совпадение Id возвращается сразу.
        - Совпадение по имени запоминается; второе совпадение -> AmbiguousNameError.
        - После всех страниц: найденный по имени Id, иначе NotFoundError.
    """
    foundIdByName: str | None = None
    nextToken: str | None = None
    while True:
        params: dict[str, Any] = {"MaxResults": PAGE_SIZE}
        if nextToken:
            params["NextToken"] = nextToken
        resp = callDirectory(client, "list_user_pools", **params)
        for pool in resp.get("UserPools", []):
            if pool.get("Id") == idOrName:
                return pool["Id"]
            if pool.get("Name") == idOrName:
                if foundIdByName is not None:
                    raise AmbiguousNameError("user pool", idOrName)
                foundIdByName = pool["Id"]
        nextToken = resp.get("NextToken")
        if not nextToken:
            break

    if foundIdByName is not None:
        return foundIdByName
    raise NotFoundError("user pool", idOrName)


@dataclass(frozen=True)
class DirectorySession:
    """
    Назначение:
        Аутентифицированный клиент + разрешённый pool id.
    Инварианты:
        - Неизменяем после создания; безопасно разделяется всеми задачами запуска.
    """

    client: BaseClient
    pool_id: str


class CognitoDirectory:
    """
    Назначение/ответственность:
        Реализация DirectoryProtocol поверх Amazon Cognito user pools (boto3 cognito-idp).
    Ограничения:
        - Каждая операция — один запрос к каталогу, без повторов на уровне записи.
        - Состояние только для чтения, вызовы из разных потоков допустимы.
    """

    def __init__(self, session: DirectorySession):
        self.session = session
        self.client = session.client

    @classmethod
    def connect(cls, client: BaseClient, poolIdOrName: str) -> "CognitoDirectory":
        """Разрешает пул один раз и возвращает готовый каталог."""
        return cls(DirectorySession(client=client, pool_id=resolvePoolId(client, poolIdOrName)))

    @property
    def poolId(self) -> str:
        return self.session.pool_id

    def _call(self, operation: str, **params: Any) -> dict[str, Any]:
        return callDirectory(self.client, operation, **params)

    def userExists(self, username: str) -> bool:
        try:
            self._call("admin_get_user", UserPoolId=self.poolId, Username=username)
        except DirectoryError as exc:
            if exc.aws_code == "UserNotFoundException":
                return False
            raise
        return True

    def createUser(self, record: UserRecord) -> None:
        params: dict[str, Any] = {"UserPoolId": self.poolId, "Username": record.username}
        if record.client_metadata:
            params["ClientMetadata"] = dict(record.client_metadata)
        self._call("admin_create_user", **params)

    def setAttributes(self, record: UserRecord) -> None:
        # Пустой набор атрибутов: запрос не отправляется.
        if not record.attributes:
            return
        params: dict[str, Any] = {
            "UserPoolId": self.poolId,
            "Username": record.username,
            "UserAttributes": [
                {"Name": name, "Value": formatAttributeValue(value)}
                for name, value in record.attributes.items()
            ],
        }
        if record.client_metadata:
            params["ClientMetadata"] = dict(record.client_metadata)
        self._call("admin_update_user_attributes", **params)

    def setPassword(self, username: str, password: str, permanent: bool) -> None:
        if not password:
            return
        self._call(
            "admin_set_user_password",
            UserPoolId=self.poolId,
            Username=username,
            Password=password,
            Permanent=permanent,
        )

    def triggerPasswordReset(self, username: str, metadata: Mapping[str, str] | None = None) -> None:
        params: dict[str, Any] = {"UserPoolId": self.poolId, "Username": username}
        if metadata:
            params["ClientMetadata"] = dict(metadata)
        self._call("admin_reset_user_password", **params)

    def fetchPasswordPolicy(self) -> PasswordPolicy:
        resp = self._call("describe_user_pool", UserPoolId=self.poolId)
        policy = resp.get("UserPool", {}).get("Policies", {}).get("PasswordPolicy", {})
        return PasswordPolicy.fromCognito(policy)

    def listAppClients(self) -> list[dict[str, Any]]:
        clients: list[dict[str, Any]] = []
        nextToken: str | None = None
        while True:
            params: dict[str, Any] = {"UserPoolId": self.poolId, "MaxResults": PAGE_SIZE}
            if nextToken:
                params["NextToken"] = nextToken
            resp = self._call("list_user_pool_clients", **params)
            clients.extend(resp.get("UserPoolClients", []))
            nextToken = resp.get("NextToken")
            if not nextToken:
                return clients

    def resolveAppClient(self, idOrName: str | None) -> AppClient:
        """
        Назначение:
            Выбирает app client пула и получает его секрет.

        Алгоритм:
            - Нет клиентов -> NotFoundError.
            - Один клиент: используется, если idOrName не задан или совпадает с id/именем.
            - Несколько: idOrName обязателен; точный id выигрывает сразу,
              имя должно быть уникальным.
            - Секрет берётся из DescribeUserPoolClient.
        """
        clients = self.listAppClients()
        if not clients:
            raise NotFoundError("user pool client", idOrName or "<any>")

        clientId: str | None = None
        if len(clients) == 1:
            only = clients[0]
            if idOrName and idOrName not in (only.get("ClientId"), only.get("ClientName")):
                raise NotFoundError("user pool client", idOrName)
            clientId = only["ClientId"]
        else:
            if not idOrName:
                raise NotFoundError("user pool client", "<client id or name is required>")
            for item in clients:
                if item.get("ClientId") == idOrName:
                    clientId = item["ClientId"]
                    break
                if item.get("ClientName") == idOrName:
                    if clientId is not None:
                        raise AmbiguousNameError("user pool client", idOrName)
                    clientId = item["ClientId"]
            if clientId is None:
                raise NotFoundError("user pool client", idOrName)

        resp = self._call("describe_user_pool_client", UserPoolId=self.poolId, ClientId=clientId)
        described = resp.get("UserPoolClient", {})
        return AppClient(
            client_id=clientId,
            client_name=described.get("ClientName"),
            client_secret=described.get("ClientSecret"),
        )

    def authenticate(
        self,
        username: str,
        password: str,
        clientId: str,
        clientSecret: str | None,
        metadata: Mapping[str, str] | None = None,
    ) -> AuthResult:
        authParameters = {"USERNAME": username, "PASSWORD": password}
        if clientSecret:
            authParameters["SECRET_HASH"] = computeSecretHash(username, clientId, clientSecret)
        params: dict[str, Any] = {
            "ClientId": clientId,
            "AuthFlow": "USER_PASSWORD_AUTH",
            "AuthParameters": authParameters,
        }
        if metadata:
            params["ClientMetadata"] = dict(metadata)
        return AuthResult.fromCognito(self._call("initiate_auth", **params))
