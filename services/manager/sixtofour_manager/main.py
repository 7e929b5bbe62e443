from __future__ import annotations

from typing import Optional

import structlog

from sixtofour_manager import address, ipv6
from sixtofour_manager.errors import AdvertiserUnavailable, IPv6Unsupported, SixToFourError
from sixtofour_manager.ipam import SubnetAllocator, resolve_interfaces
from sixtofour_manager.iproute import IpRoute2, Runner
from sixtofour_manager.models import RunConfig, SubnetAssignment
from sixtofour_manager.radvd import AdvertisementConfigurator
from sixtofour_manager.sysctl import Sysctl
from sixtofour_manager.tunnel import TunnelManager

log = structlog.get_logger()


class Orchestrator:
    """
    start / stop / restart. Состояние не хранится нигде, кроме самого ядра:
    каждый start сносит туннель и строит заново, поэтому повтор безопасен.
    """

    def __init__(
        self,
        config: RunConfig,
        net: Optional[IpRoute2] = None,
        runner: Optional[Runner] = None,
        radvd: Optional[AdvertisementConfigurator] = None,
        sysctl: Optional[Sysctl] = None,
    ) -> None:
        s = config.settings
        self.config = config
        self.net = net or IpRoute2(s.ip_binary, runner=runner)
        self.tunnel = TunnelManager(s, self.net)
        self.subnets = SubnetAllocator(self.net)
        self.radvd = radvd or AdvertisementConfigurator(s, runner=runner)
        self.sysctl = sysctl or Sysctl(s.proc_root)

    def start(self) -> Optional[SubnetAssignment]:
        cfg = self.config
        s = cfg.settings

        if not self.sysctl.ipv6_supported():
            raise IPv6Unsupported(str(self.sysctl.ipv6_probe()))

        discovered = [] if cfg.ipv4_override is not None else address.discover(self.net, exclude_ifaces=[s.tunnel_name])
        local = address.select(cfg.ipv4_override, discovered)
        prefix = ipv6.derive(local)
        log.info("prefix_derived", ipv4=str(local), prefix=str(prefix))

        self.tunnel.teardown()
        self.tunnel.create(local, prefix)

        if not cfg.radvd_enabled:
            log.info("radvd_disabled")
            return None
        try:
            self.radvd.ensure_available()
        except AdvertiserUnavailable as e:
            log.warning("radvd_unavailable", binary=e.binary)
            return None

        ifaces = resolve_interfaces(self.net, cfg.interfaces, exclude=[s.tunnel_name])
        assignment = self.subnets.plan(prefix, ifaces)
        self.radvd.write_config(self.radvd.build_config(assignment))
        self.subnets.apply(assignment)
        self.sysctl.enable_forwarding()
        self.sysctl.disable_accept_ra()

        self.radvd.stop_existing()
        self.radvd.start_new()
        return assignment

    def stop(self) -> None:
        if self.config.radvd_enabled:
            self.radvd.stop_existing()
        self.tunnel.teardown()

    def restart(self) -> Optional[SubnetAssignment]:
        try:
            self.stop()
        except SixToFourError as e:
            log.warning("stop_failed_ignored", error=str(e))
        return self.start()
