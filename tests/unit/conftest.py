import subprocess
from ipaddress import ip_interface
from pathlib import Path
from typing import Dict, List, Optional

import pytest
import structlog

from sixtofour_manager.errors import OperationalError
from sixtofour_manager.iproute import Addr, Link, Route6
from sixtofour_manager.main import Orchestrator
from sixtofour_manager.models import RunConfig, Settings
from sixtofour_manager.radvd import AdvertisementConfigurator, AdvertiserHandle
from sixtofour_manager.sysctl import Sysctl


class FakeNet:
    """In-memory stand-in for IpRoute2 that behaves like the kernel does."""

    def __init__(self) -> None:
        self.link_flags: Dict[str, tuple] = {}
        self.link_state: Dict[str, str] = {}
        self.tunnels: Dict[str, dict] = {}
        self.addrs: List[Addr] = []
        self.routes: List[Route6] = []
        self.calls: List[tuple] = []
        self.fail_on: set = set()
        self.add_link("lo", "127.0.0.1", prefixlen=8, flags=("LOOPBACK", "UP"))

    def add_link(self, name: str, ipv4: Optional[str] = None, prefixlen: int = 24, flags=("UP",)) -> None:
        self.link_flags[name] = tuple(flags)
        self.link_state[name] = "up"
        if ipv4:
            self.addrs.append(Addr(name, "inet", ipv4, prefixlen))

    def _op(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        if name in self.fail_on:
            raise OperationalError(["ip", name, *map(str, args)], 2, "injected failure")

    def _need(self, dev: str) -> None:
        if dev not in self.link_flags:
            raise OperationalError(["ip", "dev", dev], 1, f'Device "{dev}" does not exist.')

    # queries
    def links(self) -> List[Link]:
        return [Link(n, f) for n, f in self.link_flags.items()]

    def link_exists(self, name: str) -> bool:
        return name in self.link_flags

    def addresses(self, family: int, dev: Optional[str] = None) -> List[Addr]:
        if dev:
            self._need(dev)
        fam = "inet" if family == 4 else "inet6"
        return [a for a in self.addrs if a.family == fam and (dev is None or a.ifname == dev)]

    def routes6(self, dev: str) -> List[Route6]:
        self._need(dev)
        return [r for r in self.routes if r.dev == dev]

    # mutations
    def tunnel_add(self, name, local, ttl, remote="any", mode="sit") -> None:
        self._op("tunnel_add", name, local, ttl)
        if name in self.link_flags:
            raise OperationalError(["ip", "tunnel", "add", name], 1, "File exists")
        self.link_flags[name] = ("POINTOPOINT", "NOARP")
        self.link_state[name] = "down"
        self.tunnels[name] = {"local": local, "ttl": ttl, "remote": remote, "mode": mode}

    def tunnel_del(self, name) -> None:
        self._op("tunnel_del", name)
        self._need(name)
        del self.link_flags[name]
        del self.link_state[name]
        self.tunnels.pop(name, None)
        self.addrs = [a for a in self.addrs if a.ifname != name]
        self.routes = [r for r in self.routes if r.dev != name]

    def link_set(self, name, state) -> None:
        self._op("link_set", name, state)
        self._need(name)
        self.link_state[name] = state

    def addr_add(self, dev, cidr) -> None:
        self._op("addr_add", dev, cidr)
        self._need(dev)
        iface = ip_interface(cidr)
        a = Addr(dev, "inet6", str(iface.ip), iface.network.prefixlen)
        if a in self.addrs:
            raise OperationalError(["ip", "-6", "addr", "add", cidr], 2, "RTNETLINK answers: File exists")
        self.addrs.append(a)

    def addr_del(self, dev, cidr) -> None:
        self._op("addr_del", dev, cidr)
        iface = ip_interface(cidr)
        a = Addr(dev, "inet6", str(iface.ip), iface.network.prefixlen)
        if a not in self.addrs:
            raise OperationalError(["ip", "-6", "addr", "del", cidr], 2, "Cannot assign requested address")
        self.addrs.remove(a)

    def addr_flush(self, dev) -> None:
        self._op("addr_flush", dev)
        self.addrs = [a for a in self.addrs if not (a.ifname == dev and a.family == "inet6")]

    def route_add(self, dst, dev, via=None, metric=None) -> None:
        self._op("route_add", dst, dev, via, metric)
        self._need(dev)
        if any(r.dst == dst and r.dev == dev for r in self.routes):
            raise OperationalError(["ip", "-6", "route", "add", dst], 2, "File exists")
        self.routes.append(Route6(dst, dev, via, metric))

    def route_flush(self, dev) -> None:
        self._op("route_flush", dev)
        self.routes = [r for r in self.routes if r.dev != dev]

    def snapshot(self) -> dict:
        return {
            "links": dict(self.link_state),
            "tunnels": dict(self.tunnels),
            "addrs": sorted(self.addrs, key=lambda a: (a.ifname, a.local)),
            "routes": sorted(self.routes, key=lambda r: (r.dev, r.dst)),
        }


class FakeRadvd:
    """Records commands; launching radvd writes a pidfile, kill ends the process."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.calls: List[dict] = []
        self.alive: set = set()
        self.next_pid = 4242
        self.chowned: List[tuple] = []

    def run(self, cmd, check=True, user=None):
        cmd = [str(c) for c in cmd]
        self.calls.append({"cmd": cmd, "user": user})
        if cmd[0] == self.settings.radvd_binary:
            pid = self.next_pid
            self.next_pid += 1
            self.alive.add(pid)
            Path(self.settings.radvd_pidfile).write_text(f"{pid}\n")
        elif cmd[0] == "kill":
            pid = int(cmd[-1])
            self.alive.discard(pid)
            Path(self.settings.radvd_pidfile).unlink()
        return subprocess.CompletedProcess(cmd, 0, "", "")

    def probe(self, pid: int) -> bool:
        return pid in self.alive

    def chown(self, path, user=None, group=None) -> None:
        self.chowned.append((str(path), user))

    def commands(self, name: str) -> List[dict]:
        return [c for c in self.calls if Path(c["cmd"][0]).name == name]


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()


@pytest.fixture
def proc_root(tmp_path: Path) -> Path:
    root = tmp_path / "proc"
    (root / "net").mkdir(parents=True)
    (root / "net" / "if_inet6").write_text("")
    conf = root / "sys" / "net" / "ipv6" / "conf" / "all"
    conf.mkdir(parents=True)
    (conf / "forwarding").write_text("0\n")
    (conf / "accept_ra").write_text("1\n")
    return root


@pytest.fixture
def settings(tmp_path: Path, proc_root: Path) -> Settings:
    binary = tmp_path / "bin" / "radvd"
    binary.parent.mkdir()
    binary.write_text("#!/bin/sh\nexit 0\n")
    binary.chmod(0o755)
    return Settings(
        radvd_binary=str(binary),
        radvd_config_path=str(tmp_path / "run" / "radvd-6to4" / "radvd.conf"),
        radvd_pidfile=str(tmp_path / "run" / "radvd-6to4" / "radvd.pid"),
        lock_path=str(tmp_path / "run" / "sixtofour.lock"),
        proc_root=str(proc_root),
    )


@pytest.fixture
def net() -> FakeNet:
    n = FakeNet()
    n.add_link("eth0", "203.0.113.9")
    n.add_link("eth1", "192.168.1.1")
    return n


@pytest.fixture
def fake_radvd(settings: Settings) -> FakeRadvd:
    return FakeRadvd(settings)


@pytest.fixture
def make_orchestrator(settings, net, fake_radvd):
    def _make(**kwargs) -> Orchestrator:
        cfg = RunConfig(settings=settings, **kwargs)
        handle = AdvertiserHandle(settings, runner=fake_radvd.run, chown=fake_radvd.chown, probe=fake_radvd.probe)
        radvd = AdvertisementConfigurator(settings, chown=fake_radvd.chown, handle=handle)
        return Orchestrator(cfg, net=net, radvd=radvd, sysctl=Sysctl(settings.proc_root))

    return _make
