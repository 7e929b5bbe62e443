from __future__ import annotations

from pathlib import Path

import structlog

log = structlog.get_logger()


class Sysctl:
    """Тонкая обёртка над /proc/sys. Переключатели best-effort: ошибка -> warning."""

    def __init__(self, proc_root: str = "/proc") -> None:
        self._root = Path(proc_root)

    def ipv6_probe(self) -> Path:
        return self._root / "net" / "if_inet6"

    def ipv6_supported(self) -> bool:
        return self.ipv6_probe().exists()

    def _path(self, key: str) -> Path:
        return self._root / "sys" / Path(*key.split("."))

    def set(self, key: str, value: str) -> bool:
        p = self._path(key)
        try:
            p.write_text(f"{value}\n", encoding="ascii")
        except OSError as e:
            log.warning("sysctl_failed", key=key, value=value, error=str(e))
            return False
        log.debug("sysctl_set", key=key, value=value)
        return True

    def enable_forwarding(self) -> bool:
        return self.set("net.ipv6.conf.all.forwarding", "1")

    def disable_accept_ra(self) -> bool:
        return self.set("net.ipv6.conf.all.accept_ra", "0")
