from __future__ import annotations

from typing import List, Optional, Sequence


class SixToFourError(Exception):
    exit_code = 1


class ConfigurationError(SixToFourError):
    """Неверный вызов или невалидный файл настроек."""


class InvocationBusy(SixToFourError):
    def __init__(self, lock_path: str) -> None:
        super().__init__(f"another invocation holds {lock_path}")
        self.lock_path = lock_path


# ---- discovery ----

class DiscoveryError(SixToFourError):
    pass


class NoSuitableAddress(DiscoveryError):
    def __init__(self) -> None:
        super().__init__("no global IPv4 address found, use -i <ipv4>")


class AmbiguousAddress(DiscoveryError):
    def __init__(self, candidates: Sequence[str]) -> None:
        self.candidates: List[str] = list(candidates)
        super().__init__(
            "more than one global IPv4 address found "
            f"({', '.join(self.candidates)}), choose one with -i <ipv4>"
        )


class NoInterfaces(DiscoveryError):
    def __init__(self) -> None:
        super().__init__("no interfaces to advertise subnets on, use -I <iface>")


# ---- platform ----

class PlatformError(SixToFourError):
    pass


class IPv6Unsupported(PlatformError):
    exit_code = 3

    def __init__(self, probe: str) -> None:
        super().__init__(f"no IPv6 support in this kernel ({probe} missing)")
        self.probe = probe


class AdvertiserUnavailable(PlatformError):
    def __init__(self, binary: str) -> None:
        super().__init__(f"{binary} not found or not executable")
        self.binary = binary


# ---- operational ----

class OperationalError(SixToFourError):
    """Внешняя команда завершилась с ошибкой."""

    def __init__(self, cmd: Sequence[str], returncode: Optional[int] = None, stderr: str = "") -> None:
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        msg = f"command failed: {' '.join(self.cmd)}"
        if returncode is not None:
            msg += f" (rc={returncode})"
        if self.stderr:
            msg += f": {self.stderr}"
        super().__init__(msg)
