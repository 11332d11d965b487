from __future__ import annotations

import secrets
import string
from dataclasses import dataclass
from random import Random

from coglet.domain.exceptions import GenerationError
from coglet.domain.models import PasswordPolicy

PASSWORD_PADDING = 8

LOWERS = string.ascii_lowercase
UPPERS = string.ascii_uppercase
DIGITS = string.digits
# Подмножество спецсимволов, которые принимает Cognito.
SYMBOLS = "!#$%&()*+,-.:;<=>?@[]^_{}~"
AMBIGUOUS = "0O1lI|B8G6S5Z2`'\""


@dataclass(frozen=True)
class CharRecipe:
    """
    Назначение:
        Спецификация генерации: длина, допустимый алфавит и обязательные классы.
    Инварианты:
        - allowed уже очищен от AMBIGUOUS.
        - required: по одному набору на каждый обязательный класс (тоже без AMBIGUOUS).
    """

    length: int
    allowed: str
    required: tuple[str, ...]


def _clean(chars: str) -> str:
    return "".join(ch for ch in chars if ch not in AMBIGUOUS)


def buildRecipe(policy: PasswordPolicy) -> CharRecipe:
    """
    Назначение:
        Детерминированно переводит политику пула в CharRecipe.

    Алгоритм:
        - Алфавит = объединение обязательных классов.
        - Обязательные наборы повторяют алфавит по классам.
        - Если политика не требует ни одного класса, алфавит — буквы и цифры без обязательных наборов.
        - Длина = minimum_length + PASSWORD_PADDING.
    """
    classes: list[str] = []
    if policy.require_lowercase:
        classes.append(LOWERS)
    if policy.require_numbers:
        classes.append(DIGITS)
    if policy.require_symbols:
        classes.append(SYMBOLS)
    if policy.require_uppercase:
        classes.append(UPPERS)

    required = tuple(_clean(chars) for chars in classes)
    if classes:
        allowed = "".join(required)
    else:
        allowed = _clean(LOWERS + UPPERS + DIGITS)
    return CharRecipe(
        length=policy.minimum_length + PASSWORD_PADDING,
        allowed=allowed,
        required=required,
    )


def generatePassword(policy: PasswordPolicy, rng: Random | None = None) -> str:
    """
    Назначение:
        Генерирует случайный пароль, удовлетворяющий политике пула.

    Входные данные:
        policy: PasswordPolicy
        rng: Random | None
            Источник случайности; по умолчанию secrets.SystemRandom.

    Выходные данные:
        str длиной minimum_length + 8.

    Ошибки:
        GenerationError — пустой алфавит или длина меньше числа обязательных классов.
    """
    rng = rng or secrets.SystemRandom()
    recipe = buildRecipe(policy)

    if not recipe.allowed:
        raise GenerationError("password policy leaves no allowed characters")
    if any(not chars for chars in recipe.required):
        raise GenerationError("required character class is empty after excluding ambiguous characters")
    if recipe.length < len(recipe.required):
        raise GenerationError(
            f"password length {recipe.length} cannot fit {len(recipe.required)} required character classes"
        )

    chars = [rng.choice(required) for required in recipe.required]
    chars.extend(rng.choice(recipe.allowed) for _ in range(recipe.length - len(chars)))
    rng.shuffle(chars)
    return "".join(chars)
