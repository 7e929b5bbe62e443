from __future__ import annotations

from dataclasses import dataclass
from ipaddress import IPv4Address, IPv6Address, IPv6Interface, IPv6Network
from typing import Union

SIXTOFOUR_MARKER = 0x2002
SIXTOFOUR_NET = IPv6Network("2002::/16")
TUNNEL_PREFIXLEN = 16
SUBNET_PREFIXLEN = 64


@dataclass(frozen=True)
class TunnelPrefix:
    """
    2002:WWXX:YYZZ::/16 - маркер 2002, затем 32 бита IPv4, остальное нули.
    """

    address: IPv6Address
    prefixlen: int = TUNNEL_PREFIXLEN

    def host(self, n: int = 1) -> IPv6Interface:
        return IPv6Interface(f"{IPv6Address(int(self.address) + n)}/{self.prefixlen}")

    def subnet(self, index: int) -> IPv6Network:
        if not (0 <= index <= 0xFFFF):
            raise ValueError(f"subnet index {index} does not fit 16 bits")
        return IPv6Network((int(self.address) | (index << 64), SUBNET_PREFIXLEN))

    def __str__(self) -> str:
        return f"{self.address}/{self.prefixlen}"


def derive(addr: Union[str, IPv4Address]) -> TunnelPrefix:
    v4 = IPv4Address(addr)
    return TunnelPrefix(IPv6Address((SIXTOFOUR_MARKER << 112) | (int(v4) << 80)))


def extract_ipv4(prefix: Union[TunnelPrefix, IPv6Address, str]) -> IPv4Address:
    if isinstance(prefix, TunnelPrefix):
        a = prefix.address
    else:
        a = IPv6Address(prefix)
    return IPv4Address((int(a) >> 80) & 0xFFFFFFFF)


def is_sixtofour(addr: Union[str, IPv6Address]) -> bool:
    return IPv6Address(addr) in SIXTOFOUR_NET


def mapped(v4: Union[str, IPv4Address]) -> str:
    """::a.b.c.d - адрес релея в виде, понятном sit."""
    return f"::{IPv4Address(v4)}"
