from __future__ import annotations

from typing import Callable, Iterable

from coglet.domain.exceptions import ValidationError
from coglet.domain.models import ApplyOptionModifier, PasswordPolicy, UserRecord, buildApplyOptions
from coglet.domain.password_generator import generatePassword
from coglet.domain.ports.directory import DirectoryProtocol


def applyUser(
    directory: DirectoryProtocol,
    record: UserRecord,
    modifiers: Iterable[ApplyOptionModifier] = (),
    passwordGenerator: Callable[[PasswordPolicy], str] = generatePassword,
) -> None:
    """
    Назначение:
        Приводит одного пользователя пула к желаемому состоянию (create-or-update).

    Входные данные:
        directory: DirectoryProtocol
            Каталог с уже разрешённым пулом.
        record: UserRecord
        modifiers: Iterable[ApplyOptionModifier]
            Модификаторы опций; сворачиваются по порядку до первого вызова каталога.
        passwordGenerator:
            Генератор пароля по политике пула.

    Алгоритм:
        1. Пустой username -> ValidationError.
        2. Свёртка модификаторов; конфликт -> ValidationError.
        3. Нет пользователя -> создать (без атрибутов).
        4. Обновить атрибуты (и для нового, и для существующего).
        5. Пароль: явный из опций, иначе случайный по политике, иначе пароль записи.
        6. Установить пароль (пустой — no-op), постоянный/временный по опции.
        7. При запросе — отправить уведомление о сбросе пароля.

    Ошибки:
        Первая ошибка прерывает оставшиеся шаги; выполненные шаги не откатываются.
    """
    if not record.username:
        raise ValidationError("username is required", field="username")
    opt = buildApplyOptions(modifiers)

    if not directory.userExists(record.username):
        directory.createUser(record)

    directory.setAttributes(record)

    password = record.password
    if opt.password:
        password = opt.password
    elif opt.random_password:
        password = passwordGenerator(directory.fetchPasswordPolicy())

    directory.setPassword(record.username, password, opt.permanent_password)

    if opt.send_password_reset_code:
        directory.triggerPasswordReset(record.username, record.client_metadata)
