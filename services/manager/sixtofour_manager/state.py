from __future__ import annotations

from fcntl import LOCK_EX, LOCK_NB, LOCK_UN, flock
from pathlib import Path
from typing import IO, Optional

from sixtofour_manager.errors import InvocationBusy


class InvocationLock:
    """
    Один вызов на хост: туннель, конфиг и pidfile radvd общие.
    Неблокирующий flock, занято -> InvocationBusy.
    """

    def __init__(self, path: str) -> None:
        self._path = Path(path)
        self._f: Optional[IO[str]] = None

    def acquire(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        f = self._path.open("a+", encoding="utf-8")
        try:
            flock(f.fileno(), LOCK_EX | LOCK_NB)
        except OSError as e:
            f.close()
            raise InvocationBusy(str(self._path)) from e
        self._f = f

    def release(self) -> None:
        if self._f is None:
            return
        try:
            flock(self._f.fileno(), LOCK_UN)
        finally:
            self._f.close()
            self._f = None

    def __enter__(self) -> "InvocationLock":
        self.acquire()
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()
