"""radvd configuration and process control.

The daemon is never reloaded: every (re)start writes the whole config, kills
the running instance through its pidfile and launches a new one.

Reading the pidfile and signalling the pid are two separate steps, so the
process may exit (and, in theory, its pid be reused) in between. There is no
atomic primitive for this on Linux without pidfds held by the parent, which we
are not, so the race is accepted.
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Callable, List, Optional

import structlog

from sixtofour_manager.errors import AdvertiserUnavailable, OperationalError
from sixtofour_manager.iproute import Runner
from sixtofour_manager.models import Settings, SubnetAssignment
from sixtofour_manager.util import run as _default_run

log = structlog.get_logger()

Chown = Callable[..., None]


def _probe(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except (ProcessLookupError, OverflowError):
        # OverflowError: в pidfile число, которое не может быть pid
        return False
    except PermissionError:
        # процесс есть, просто чужой
        return True
    return True


def _own_dir(path: Path, user: str, chown: Chown) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OperationalError(["mkdir", "-p", str(path)], None, str(e)) from e
    try:
        chown(path, user=user)
    except (LookupError, OSError) as e:
        # LookupError: пользователя нет в passwd
        raise OperationalError(["chown", user, str(path)], None, str(e)) from e


class AdvertiserHandle:
    def __init__(
        self,
        settings: Settings,
        runner: Optional[Runner] = None,
        chown: Chown = shutil.chown,
        probe: Callable[[int], bool] = _probe,
    ) -> None:
        self._s = settings
        self._run = runner or _default_run
        self._chown = chown
        self._probe = probe

    @property
    def pidfile(self) -> Path:
        return Path(self._s.radvd_pidfile)

    def pid(self) -> Optional[int]:
        try:
            raw = self.pidfile.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            log.warning("radvd_pidfile_unreadable", pidfile=str(self.pidfile), error=str(e))
            return None
        try:
            pid = int(raw.split()[0]) if raw else 0
        except ValueError:
            pid = 0
        return pid if pid > 0 else None

    def is_running(self) -> bool:
        pid = self.pid()
        return pid is not None and self._probe(pid)

    def _drop_stale(self) -> None:
        try:
            self.pidfile.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            log.warning("radvd_pidfile_not_removed", pidfile=str(self.pidfile), error=str(e))
            return
        log.info("radvd_stale_pidfile_removed", pidfile=str(self.pidfile))

    def stop(self) -> bool:
        """True если сигнал был отправлен."""
        if not self.pidfile.exists():
            log.debug("radvd_not_running", pidfile=str(self.pidfile))
            return False
        pid = self.pid()
        if pid is None or not self._probe(pid):
            self._drop_stale()
            return False
        # сигналим от имени radvd, а не root
        self._run(["kill", "-TERM", str(pid)], user=self._s.radvd_user)
        log.info("radvd_stopped", pid=pid, user=self._s.radvd_user)
        return True

    def command(self) -> List[str]:
        return [
            self._s.radvd_binary,
            "-u", self._s.radvd_user,
            "-C", self._s.radvd_config_path,
            "-p", self._s.radvd_pidfile,
        ]

    def start(self) -> None:
        _own_dir(self.pidfile.parent, self._s.radvd_user, self._chown)
        # radvd сам уходит в фон и пишет свой pidfile
        self._run(self.command())
        log.info("radvd_started", config=self._s.radvd_config_path, pidfile=str(self.pidfile))


class AdvertisementConfigurator:
    def __init__(
        self,
        settings: Settings,
        runner: Optional[Runner] = None,
        chown: Chown = shutil.chown,
        handle: Optional[AdvertiserHandle] = None,
    ) -> None:
        self._s = settings
        self._chown = chown
        self.handle = handle or AdvertiserHandle(settings, runner=runner, chown=chown)

    @property
    def config_path(self) -> Path:
        return Path(self._s.radvd_config_path)

    def available(self) -> bool:
        b = self._s.radvd_binary
        return os.path.isfile(b) and os.access(b, os.X_OK)

    def ensure_available(self) -> None:
        if not self.available():
            raise AdvertiserUnavailable(self._s.radvd_binary)

    def build_config(self, assignment: SubnetAssignment) -> str:
        lines: List[str] = ["# auto-generated by sixtofour_manager, do not edit"]
        for e in assignment:
            lines += [
                f"interface {e.interface}",
                "{",
                "\tAdvSendAdvert on;",
                "\tIgnoreIfMissing on;",
                f"\tAdvDefaultLifetime {self._s.adv_default_lifetime};",
                f"\tAdvDefaultPreference {self._s.adv_default_preference};",
                f"\tprefix {e.network}",
                "\t{",
                "\t\tAdvOnLink on;",
                "\t\tAdvAutonomous on;",
                "\t};",
                "};",
            ]
        return "\n".join(lines) + "\n"

    def write_config(self, text: str) -> Path:
        p = self.config_path
        _own_dir(p.parent, self._s.radvd_user, self._chown)
        # всегда целиком, никаких патчей
        try:
            p.write_text(text, encoding="utf-8")
        except OSError as e:
            raise OperationalError(["write", str(p)], None, str(e)) from e
        log.info("radvd_config_written", path=str(p), bytes=len(text))
        return p

    def stop_existing(self) -> bool:
        return self.handle.stop()

    def start_new(self) -> None:
        self.handle.start()
