from __future__ import annotations

import logging
import subprocess
import sys
from typing import List, Optional, Sequence

import structlog

from sixtofour_manager.errors import OperationalError

log = structlog.get_logger()


def configure_logging(debug: bool = False) -> None:
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if debug else logging.WARNING),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def run(
    cmd: Sequence[str],
    check: bool = True,
    user: Optional[str] = None,
) -> subprocess.CompletedProcess:
    """
    Запуск внешней команды с захватом вывода.
    check=True: ненулевой код -> OperationalError (stderr внутри).
    user: выполнить от имени другого пользователя (subprocess сам делает setuid).
    """
    argv: List[str] = [str(c) for c in cmd]
    log.debug("exec", cmd=" ".join(argv), user=user)
    try:
        cp = subprocess.run(
            argv,
            check=False,
            capture_output=True,
            text=True,
            user=user,
        )
    except OSError as e:
        raise OperationalError(argv, None, str(e)) from e
    except KeyError as e:
        # user= не найден в passwd
        raise OperationalError(argv, None, f"unknown user {user}") from e
    if check and cp.returncode != 0:
        raise OperationalError(argv, cp.returncode, cp.stderr)
    return cp
