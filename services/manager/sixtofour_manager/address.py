from __future__ import annotations

from ipaddress import IPv4Address, IPv4Network
from typing import Iterable, List, Optional, Union

import structlog

from sixtofour_manager.errors import AmbiguousAddress, NoSuitableAddress
from sixtofour_manager.iproute import IpRoute2

log = structlog.get_logger()

# loopback, RFC1918, link-local
NON_GLOBAL = (
    IPv4Network("127.0.0.0/8"),
    IPv4Network("10.0.0.0/8"),
    IPv4Network("172.16.0.0/12"),
    IPv4Network("192.168.0.0/16"),
    IPv4Network("169.254.0.0/16"),
)


def is_eligible(addr: Union[str, IPv4Address]) -> bool:
    a = IPv4Address(addr)
    return not any(a in n for n in NON_GLOBAL)


def discover(net: IpRoute2, exclude_ifaces: Iterable[str] = ()) -> List[IPv4Address]:
    skip = set(exclude_ifaces)
    return [IPv4Address(a.local) for a in net.addresses(4) if a.ifname not in skip]


def select(
    override: Optional[Union[str, IPv4Address]],
    discovered: Iterable[Union[str, IPv4Address]],
) -> IPv4Address:
    if override is not None:
        # без проверок: за NAT пользователь сам знает свой внешний адрес
        log.debug("ipv4_override", addr=str(override))
        return IPv4Address(override)

    candidates: List[IPv4Address] = []
    for raw in discovered:
        a = IPv4Address(raw)
        if is_eligible(a) and a not in candidates:
            candidates.append(a)

    log.debug("ipv4_candidates", candidates=[str(c) for c in candidates])
    if not candidates:
        raise NoSuitableAddress()
    if len(candidates) > 1:
        raise AmbiguousAddress([str(c) for c in candidates])
    return candidates[0]
