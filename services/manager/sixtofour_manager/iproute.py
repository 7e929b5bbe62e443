"""Typed wrapper over iproute2.

All queries use ``ip -j`` and return records, nothing here scrapes the
human-readable output. Mutations raise ``OperationalError`` on failure.
"""

from __future__ import annotations

import json
import subprocess
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from sixtofour_manager.errors import OperationalError
from sixtofour_manager.util import run as _default_run

Runner = Callable[..., subprocess.CompletedProcess]


@dataclass(frozen=True)
class Link:
    ifname: str
    flags: Tuple[str, ...] = ()
    link_type: str = ""

    @property
    def is_loopback(self) -> bool:
        return "LOOPBACK" in self.flags or self.link_type == "loopback"


@dataclass(frozen=True)
class Addr:
    ifname: str
    family: str  # "inet" | "inet6"
    local: str
    prefixlen: int

    @property
    def cidr(self) -> str:
        return f"{self.local}/{self.prefixlen}"


@dataclass(frozen=True)
class Route6:
    dst: str
    dev: str
    gateway: Optional[str] = None
    metric: Optional[int] = None


class IpRoute2:
    def __init__(self, binary: str = "ip", runner: Optional[Runner] = None) -> None:
        self._ip = binary
        self._run = runner or _default_run

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------
    def _json(self, *args: str) -> List[Dict]:
        cp = self._run([self._ip, "-j", *args])
        out = (getattr(cp, "stdout", "") or "").strip()
        if not out:
            return []
        try:
            data = json.loads(out)
        except json.JSONDecodeError as e:
            raise OperationalError([self._ip, "-j", *args], None, f"bad json: {e}") from e
        return data if isinstance(data, list) else []

    def links(self) -> List[Link]:
        res: List[Link] = []
        for it in self._json("link", "show"):
            name = it.get("ifname")
            if not name:
                continue
            res.append(Link(ifname=name, flags=tuple(it.get("flags") or ()), link_type=it.get("link_type", "")))
        return res

    def link_exists(self, name: str) -> bool:
        return any(l.ifname == name for l in self.links())

    def addresses(self, family: int, dev: Optional[str] = None) -> List[Addr]:
        """Адреса семейства 4 или 6, по всем интерфейсам или по одному."""
        args = [f"-{family}", "addr", "show"]
        if dev:
            args += ["dev", dev]
        want = "inet" if family == 4 else "inet6"
        res: List[Addr] = []
        for link in self._json(*args):
            name = link.get("ifname", dev or "")
            for ai in link.get("addr_info", []) or []:
                if ai.get("family") != want or not ai.get("local"):
                    continue
                res.append(
                    Addr(
                        ifname=name,
                        family=want,
                        local=ai["local"],
                        prefixlen=int(ai.get("prefixlen", 128 if family == 6 else 32)),
                    )
                )
        return res

    def routes6(self, dev: str) -> List[Route6]:
        res: List[Route6] = []
        for r in self._json("-6", "route", "show", "dev", dev):
            dst = r.get("dst")
            if not dst:
                continue
            metric = r.get("metric")
            res.append(
                Route6(
                    dst=dst,
                    dev=r.get("dev", dev),
                    gateway=r.get("gateway"),
                    metric=int(metric) if metric is not None else None,
                )
            )
        return res

    # ------------------------------------------------------------------
    # mutations
    # ------------------------------------------------------------------
    def tunnel_add(self, name: str, local: str, ttl: int, remote: str = "any", mode: str = "sit") -> None:
        self._run([self._ip, "tunnel", "add", name, "mode", mode, "ttl", str(ttl), "remote", remote, "local", local])

    def tunnel_del(self, name: str) -> None:
        self._run([self._ip, "tunnel", "del", name])

    def link_set(self, name: str, state: str) -> None:
        self._run([self._ip, "link", "set", "dev", name, state])

    def addr_add(self, dev: str, cidr: str) -> None:
        self._run([self._ip, "-6", "addr", "add", cidr, "dev", dev])

    def addr_del(self, dev: str, cidr: str) -> None:
        self._run([self._ip, "-6", "addr", "del", cidr, "dev", dev])

    def addr_flush(self, dev: str) -> None:
        self._run([self._ip, "-6", "addr", "flush", "dev", dev])

    def route_add(self, dst: str, dev: str, via: Optional[str] = None, metric: Optional[int] = None) -> None:
        cmd = [self._ip, "-6", "route", "add", dst]
        if via:
            cmd += ["via", via]
        cmd += ["dev", dev]
        if metric is not None:
            cmd += ["metric", str(metric)]
        self._run(cmd)

    def route_flush(self, dev: str) -> None:
        self._run([self._ip, "-6", "route", "flush", "dev", dev])
