from __future__ import annotations

from ipaddress import IPv4Address
from typing import Union

import structlog

from sixtofour_manager.ipv6 import TunnelPrefix, mapped
from sixtofour_manager.iproute import IpRoute2
from sixtofour_manager.models import Settings

log = structlog.get_logger()

V4_COMPAT_ROUTE = "::/96"
GLOBAL_UNICAST = "2000::/3"
RELAY_METRIC = 1


class TunnelManager:
    """sit-туннель к релею 6to4. Всегда пересоздаётся, in-place обновлений нет."""

    def __init__(self, settings: Settings, net: IpRoute2) -> None:
        self._s = settings
        self._net = net

    @property
    def name(self) -> str:
        return self._s.tunnel_name

    def exists(self) -> bool:
        return self._net.link_exists(self.name)

    def teardown(self) -> None:
        """Можно звать всегда: отсутствующий туннель - не ошибка."""
        if not self.exists():
            log.debug("tunnel_absent", dev=self.name)
            return
        if self._net.routes6(self.name):
            self._net.route_flush(self.name)
            self._net.addr_flush(self.name)
            log.debug("tunnel_flushed", dev=self.name)
        self._net.link_set(self.name, "down")
        self._net.tunnel_del(self.name)
        log.info("tunnel_removed", dev=self.name)

    def create(self, local: Union[str, IPv4Address], prefix: TunnelPrefix) -> None:
        self.teardown()
        dev = self.name
        self._net.tunnel_add(dev, local=str(IPv4Address(local)), ttl=self._s.tunnel_ttl)
        self._net.link_set(dev, "up")
        self._net.addr_add(dev, str(prefix.host(1)))
        self._net.route_add(V4_COMPAT_ROUTE, dev)
        self._net.route_add(GLOBAL_UNICAST, dev, via=mapped(self._s.relay_ipv4), metric=RELAY_METRIC)
        log.info(
            "tunnel_created",
            dev=dev,
            local=str(local),
            address=str(prefix.host(1)),
            relay=str(self._s.relay_ipv4),
        )
