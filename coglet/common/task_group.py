from __future__ import annotations

import threading
from typing import Callable

PRUNE_THRESHOLD = 64


class TaskGroup:
    """
    Назначение/ответственность:
        Fan-out/join для независимых задач: один поток на задачу, без фиксированного пула.
    Инварианты/гарантии:
        - Первая ошибка любой задачи выставляет общий сигнал отмены (cancelled).
        - Сигнал не прерывает запущенные задачи; решение "запускать ли новые"
          принимает вызывающий код, проверяя isCancelled() перед go().
        - wait() всегда дожидается всех запущенных задач.
        - Завершённые потоки отбрасываются при росте списка, память
          пропорциональна числу активных задач, а не размеру входа.
        - firstError() — ошибка задачи с наименьшим order (детерминирована
          при одинаковых входных данных, независимо от порядка завершения).
    Ограничения:
        - maxConcurrency=None — без ограничения; иначе go() блокируется,
          пока число активных задач не опустится ниже лимита.
    """

    def __init__(self, maxConcurrency: int | None = None, name: str = "task"):
        if maxConcurrency is not None and maxConcurrency < 1:
            raise ValueError("maxConcurrency must be >= 1")
        self.name = name
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._threads: list[threading.Thread] = []
        self._dispatched = 0
        self._pruneAt = PRUNE_THRESHOLD
        self._errors: list[tuple[int, BaseException]] = []
        self._slots = threading.BoundedSemaphore(maxConcurrency) if maxConcurrency else None

    def isCancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def go(self, order: int, fn: Callable[[], None]) -> None:
        """Запускает fn в отдельном потоке; order используется для выбора первой ошибки."""
        if self._slots is not None:
            self._slots.acquire()
        thread = threading.Thread(
            target=self._run,
            args=(order, fn),
            name=f"{self.name}-{order}",
            daemon=True,
        )
        try:
            thread.start()
        except RuntimeError:
            if self._slots is not None:
                self._slots.release()
            raise
        with self._lock:
            self._dispatched += 1
            self._threads.append(thread)
            if len(self._threads) >= self._pruneAt:
                self._threads = [t for t in self._threads if t.is_alive()]
                self._pruneAt = max(PRUNE_THRESHOLD, 2 * len(self._threads))

    def _run(self, order: int, fn: Callable[[], None]) -> None:
        try:
            fn()
        except Exception as exc:
            with self._lock:
                self._errors.append((order, exc))
            self._cancelled.set()
        finally:
            if self._slots is not None:
                self._slots.release()

    def wait(self) -> BaseException | None:
        """Дожидается всех задач и возвращает firstError()."""
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join()
        return self.firstError()

    def firstError(self) -> BaseException | None:
        with self._lock:
            if not self._errors:
                return None
            return min(self._errors, key=lambda item: item[0])[1]

    def errors(self) -> list[tuple[int, BaseException]]:
        with self._lock:
            return sorted(self._errors, key=lambda item: item[0])

    @property
    def dispatched(self) -> int:
        with self._lock:
            return self._dispatched

    @property
    def tracked(self) -> int:
        """Число удерживаемых объектов потоков (завершённые периодически отбрасываются)."""
        with self._lock:
            return len(self._threads)
