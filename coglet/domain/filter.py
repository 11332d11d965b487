from __future__ import annotations

import re

from coglet.domain.exceptions import ValidationError


class UsernameFilter:
    """
    Назначение:
        Шлюз по username, компилируется один раз на запуск.
    Контракт:
        - pattern None/"" пропускает всех.
        - Поиск не якорный (re.search): "^"/"$" задаются в самом шаблоне.
        - Некорректный шаблон -> ValidationError до начала обработки.
    """

    def __init__(self, pattern: str | None = None):
        self.pattern = pattern or None
        self._regex: re.Pattern[str] | None = None
        if self.pattern is not None:
            try:
                self._regex = re.compile(self.pattern)
            except re.error as exc:
                raise ValidationError(f"invalid filter pattern: {exc}", field="filter") from exc

    def matches(self, username: str) -> bool:
        if self._regex is None:
            return True
        return self._regex.search(username) is not None
