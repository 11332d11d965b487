from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Callable

from coglet.domain.models import AuthResult

APP_DIR_NAME = "coglet"
EXPIRY_SKEW_SECONDS = 60

log = logging.getLogger(__name__)


def defaultStateDir() -> str:
    """
    Назначение:
        Каталог состояния по XDG: $XDG_STATE_HOME/coglet, иначе ~/.local/state/coglet.
    """
    base = os.getenv("XDG_STATE_HOME") or ""
    if not base:
        base = str(Path.home() / ".local" / "state")
    return str(Path(base) / APP_DIR_NAME)


def cacheKey(poolId: str, username: str) -> str:
    return f"{poolId}:{username}"


class TokenCache:
    """
    Назначение/ответственность:
        Файловый кэш результатов login-as: один JSON-файл на ключ pool_id:username.
    Инварианты/гарантии:
        - Файл содержит {"expires_at": <epoch>, "auth": {...}}; expires_at — буквальный срок.
        - Запись считается истёкшей за EXPIRY_SKEW_SECONDS до expires_at.
        - Истёкшая или повреждённая запись удаляется при чтении.
        - Файлы создаются с правами 0600, каталог — 0700.
    """

    def __init__(self, stateDir: str | None = None, clock: Callable[[], float] = time.time):
        self.stateDir = Path(stateDir or defaultStateDir())
        self.clock = clock

    def pathFor(self, key: str) -> Path:
        safe = key.replace(":", "_").replace("/", "_")
        return self.stateDir / f"{safe}.json"

    def save(self, key: str, auth: AuthResult) -> Path:
        """
        Назначение:
            Сохраняет результат аутентификации с вычисленным сроком действия.
        Ограничения:
            - auth.expires_in обязателен (результат с challenge не кэшируется).
        """
        if auth.expires_in is None:
            raise ValueError("cannot cache authentication result without expires_in")
        self.stateDir.mkdir(parents=True, exist_ok=True, mode=0o700)
        path = self.pathFor(key)
        payload = {
            "expires_at": int(self.clock()) + int(auth.expires_in),
            "auth": auth.to_dict(),
        }
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False)
        return path

    def load(self, key: str) -> AuthResult | None:
        """
        Выходные данные:
            AuthResult при попадании в кэш; None при отсутствии, истечении или повреждении записи.
        """
        path = self.pathFor(key)
        if not path.is_file():
            return None
        try:
            with path.open("r", encoding="utf-8") as f:
                payload = json.load(f)
            expiresAt = int(payload["expires_at"])
            auth = AuthResult.fromDict(payload["auth"])
        except (OSError, ValueError, KeyError, TypeError) as exc:
            log.warning("Discarding unreadable token cache entry %s: %s", path, exc)
            self.delete(key)
            return None

        if self.clock() >= expiresAt - EXPIRY_SKEW_SECONDS:
            self.delete(key)
            return None
        return auth

    def delete(self, key: str) -> None:
        try:
            self.pathFor(key).unlink()
        except FileNotFoundError:
            pass
