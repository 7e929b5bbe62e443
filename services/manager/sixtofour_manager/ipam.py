from __future__ import annotations

from typing import Iterable, List, Sequence

import structlog

from sixtofour_manager.errors import NoInterfaces
from sixtofour_manager.ipv6 import TunnelPrefix, is_sixtofour
from sixtofour_manager.iproute import IpRoute2
from sixtofour_manager.models import SubnetAssignment, SubnetEntry

log = structlog.get_logger()


def resolve_interfaces(net: IpRoute2, explicit: Sequence[str] = (), exclude: Iterable[str] = ()) -> List[str]:
    """
    Явный список (-I) как есть, иначе все не-loopback интерфейсы с IPv4,
    в порядке ядра. Пустой результат -> NoInterfaces.
    """
    skip = set(exclude)
    if explicit:
        res = list(dict.fromkeys(explicit))
    else:
        loopbacks = {l.ifname for l in net.links() if l.is_loopback}
        res = []
        for a in net.addresses(4):
            if a.ifname in loopbacks or a.ifname in skip or a.ifname in res:
                continue
            res.append(a.ifname)
    if not res:
        raise NoInterfaces()
    return res


class SubnetAllocator:
    """/64 на интерфейс: 2002:WWXX:YYZZ:<i>::/64, i с единицы по порядку списка."""

    def __init__(self, net: IpRoute2) -> None:
        self._net = net

    @staticmethod
    def plan(prefix: TunnelPrefix, interfaces: Sequence[str]) -> SubnetAssignment:
        if not interfaces:
            raise NoInterfaces()
        return SubnetAssignment(
            entries=tuple(
                SubnetEntry(interface=name, index=i, network=prefix.subnet(i))
                for i, name in enumerate(interfaces, start=1)
            )
        )

    def remove_stale(self, iface: str) -> List[str]:
        removed: List[str] = []
        for a in self._net.addresses(6, dev=iface):
            if not is_sixtofour(a.local):
                continue
            self._net.addr_del(iface, a.cidr)
            removed.append(a.cidr)
        if removed:
            log.debug("stale_subnets_removed", iface=iface, addrs=removed)
        return removed

    def apply(self, assignment: SubnetAssignment) -> None:
        for e in assignment:
            self.remove_stale(e.interface)
            self._net.addr_add(e.interface, str(e.host))
            log.info("subnet_assigned", iface=e.interface, index=e.index, subnet=str(e.network))

    def allocate(self, prefix: TunnelPrefix, interfaces: Sequence[str]) -> SubnetAssignment:
        assignment = self.plan(prefix, interfaces)
        self.apply(assignment)
        return assignment
