from __future__ import annotations

from dataclasses import dataclass
from ipaddress import IPv4Address, IPv6Interface, IPv6Network
from typing import Iterator, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Settings(BaseModel):
    """Постоянные параметры хоста (пути, имена, константы radvd)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    tunnel_name: str = "tun6to4"
    tunnel_ttl: int = 64
    relay_ipv4: IPv4Address = IPv4Address("192.88.99.1")

    radvd_binary: str = "/usr/sbin/radvd"
    radvd_user: str = "radvd"
    radvd_config_path: str = "/run/radvd-6to4/radvd.conf"
    radvd_pidfile: str = "/run/radvd-6to4/radvd.pid"
    adv_default_lifetime: int = 600
    adv_default_preference: Literal["low", "medium", "high"] = "low"

    lock_path: str = "/run/sixtofour.lock"
    proc_root: str = "/proc"
    ip_binary: str = "ip"

    @field_validator("tunnel_name")
    @classmethod
    def _ifname_ok(cls, v: str) -> str:
        # IFNAMSIZ - 1
        if not v or len(v) > 15 or "/" in v or " " in v:
            raise ValueError(f"invalid interface name {v!r}")
        return v

    @field_validator("tunnel_ttl")
    @classmethod
    def _ttl_ok(cls, v: int) -> int:
        if not (1 <= v <= 255):
            raise ValueError("tunnel_ttl must be 1..255")
        return v

    @field_validator("adv_default_lifetime")
    @classmethod
    def _lifetime_ok(cls, v: int) -> int:
        if not (0 <= v <= 9000):
            raise ValueError("adv_default_lifetime must be 0..9000")
        return v


class RunConfig(BaseModel):
    """Всё, что нужно одному вызову: настройки + аргументы командной строки."""

    model_config = ConfigDict(frozen=True)

    settings: Settings = Field(default_factory=Settings)
    ipv4_override: Optional[IPv4Address] = None
    radvd_enabled: bool = True
    interfaces: Tuple[str, ...] = ()
    debug: bool = False


@dataclass(frozen=True)
class SubnetEntry:
    interface: str
    index: int
    network: IPv6Network

    @property
    def host(self) -> IPv6Interface:
        return IPv6Interface(f"{self.network.network_address + 1}/{self.network.prefixlen}")


@dataclass(frozen=True)
class SubnetAssignment:
    entries: Tuple[SubnetEntry, ...]

    def __iter__(self) -> Iterator[SubnetEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)
