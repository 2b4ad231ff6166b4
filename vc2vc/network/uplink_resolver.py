# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vc2vc/network/uplink_resolver.py

"""
Which physical adapters back a host's membership in a distributed switch?

vSphere exposes that binding in several places and none of them is reliably
populated across versions and adapter states, so the resolver walks an
ordered list of strategies and takes the first non-empty answer:

  1. port-binding    uplink DV ports whose connectee is a pnic on this host
  2. switch-backing  switch.config.host[] member -> backing.pnicSpec[]
  3. proxy-switch    host networkSystem proxySwitch[] for the switch UUID,
                     cross-referenced against pnic[] and the backing spec
  4. enumeration     host.config.network proxy switches filtered by name

Each strategy is a plain function (ResolverContext) -> List[PhysicalAdapter];
an empty list (or an exception) means "no data here, try the next one".

The reverse direction (restore) is match_uplinks(): map each recorded
UplinkBinding onto a live adapter by name, MAC, PCI address and finally a
numeric-suffix guess that is reported as low confidence.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..snapshot.model import PhysicalAdapter, UplinkBinding
from ..vmware.vmware_utils import numeric_suffix, same_managed_object
from .cache import ResolverCache


def host_cache_key(client: Any, host: Any) -> str:
    """Stable per-(server, host) key for cache entries."""
    ident = getattr(host, "_moId", None) or client.host_name(host)
    return f"{getattr(client, 'server', '')}/{ident}"


def _adapter_from_pnic(pnic: Any) -> PhysicalAdapter:
    speed = getattr(getattr(pnic, "linkSpeed", None), "speedMb", None)
    return PhysicalAdapter(
        name=str(pnic.device),
        mac=str(getattr(pnic, "mac", "") or ""),
        pci=str(getattr(pnic, "pci", "") or ""),
        driver=str(getattr(pnic, "driver", "") or ""),
        link_speed_mb=int(speed or 0),
    )


def enumerate_physical_adapters(client: Any, host: Any) -> List[PhysicalAdapter]:
    info = client.host_network_info(host)
    return [_adapter_from_pnic(p) for p in (getattr(info, "pnic", None) or [])]


@dataclass
class ResolverContext:
    client: Any
    host: Any
    switch: Any
    logger: logging.Logger
    uplink_portgroup: Optional[str] = None
    inventory: List[PhysicalAdapter] = field(default_factory=list)

    @property
    def switch_uuid(self) -> str:
        return str(getattr(self.switch, "uuid", "") or "")

    @property
    def switch_name(self) -> str:
        return str(getattr(self.switch, "name", "") or "")

    def adapters(self, devices: Iterable[str]) -> List[PhysicalAdapter]:
        """Device names -> inventory records, de-duplicated, order kept."""
        by_name = {a.name: a for a in self.inventory}
        out: List[PhysicalAdapter] = []
        seen = set()
        for d in devices:
            d = str(d or "")
            if not d or d in seen:
                continue
            seen.add(d)
            out.append(by_name.get(d) or PhysicalAdapter(name=d))
        return out


Strategy = Callable[[ResolverContext], List[PhysicalAdapter]]


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

def by_port_binding(ctx: ResolverContext) -> List[PhysicalAdapter]:
    ports = ctx.client.dvs_uplink_ports(ctx.switch, host=ctx.host, uplink_portgroup=ctx.uplink_portgroup)
    devices: List[str] = []
    for port in ports:
        conn = getattr(port, "connectee", None)
        if conn is None or str(getattr(conn, "type", "")) != "pnic":
            continue
        if not same_managed_object(getattr(conn, "connectedEntity", None), ctx.host):
            continue
        if str(getattr(port, "dvsUuid", "")) != ctx.switch_uuid:
            continue
        devices.append(str(conn.nicKey))
    return ctx.adapters(devices)


def by_switch_host_backing(ctx: ResolverContext) -> List[PhysicalAdapter]:
    member = ctx.client.dvs_member(ctx.switch, ctx.host)
    if member is None:
        return []
    backing = getattr(member.config, "backing", None)
    return ctx.adapters(s.pnicDevice for s in (getattr(backing, "pnicSpec", None) or []))


def by_proxy_switch(ctx: ResolverContext) -> List[PhysicalAdapter]:
    info = ctx.client.host_network_info(ctx.host)
    device_by_key = {str(p.key): str(p.device) for p in (getattr(info, "pnic", None) or [])}
    for ps in getattr(info, "proxySwitch", None) or []:
        if str(getattr(ps, "dvsUuid", "")) != ctx.switch_uuid:
            continue
        from_keys = [device_by_key[str(k)] for k in (getattr(ps, "pnic", None) or []) if str(k) in device_by_key]
        backing = getattr(getattr(ps, "spec", None), "backing", None)
        from_spec = [str(s.pnicDevice) for s in (getattr(backing, "pnicSpec", None) or [])]
        if from_keys and from_spec:
            # only adapters both views agree on
            agreed = [d for d in from_spec if d in from_keys]
            return ctx.adapters(agreed or from_keys)
        known = set(device_by_key.values())
        return ctx.adapters(d for d in (from_keys or from_spec) if d in known)
    return []


def by_filtered_enumeration(ctx: ResolverContext) -> List[PhysicalAdapter]:
    net = ctx.client.host_network_config(ctx.host)
    device_by_key = {str(p.key): str(p.device) for p in (getattr(net, "pnic", None) or [])}
    devices: List[str] = []
    for ps in getattr(net, "proxySwitch", None) or []:
        if str(getattr(ps, "dvsName", "")) != ctx.switch_name:
            continue
        devices.extend(device_by_key.get(str(k), "") for k in (getattr(ps, "pnic", None) or []))
    return ctx.adapters(devices)


DEFAULT_STRATEGIES: Tuple[Tuple[str, Strategy], ...] = (
    ("port-binding", by_port_binding),
    ("switch-backing", by_switch_host_backing),
    ("proxy-switch", by_proxy_switch),
    ("enumeration", by_filtered_enumeration),
)


@dataclass(frozen=True)
class Resolution:
    adapters: Tuple[PhysicalAdapter, ...]
    strategy: Optional[str]
    attempted: Tuple[str, ...]

    @property
    def found(self) -> bool:
        return bool(self.adapters)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(a.name for a in self.adapters)


class UplinkResolver:
    def __init__(
        self,
        logger: logging.Logger,
        client: Any,
        *,
        cache: Optional[ResolverCache] = None,
        strategies: Sequence[Tuple[str, Strategy]] = DEFAULT_STRATEGIES,
        uplink_portgroup: Optional[str] = None,
    ):
        self.logger = logger
        self.client = client
        self.cache = cache if cache is not None else ResolverCache()
        self.strategies = tuple(strategies)
        self.uplink_portgroup = uplink_portgroup

    def physical_adapters(self, host: Any) -> List[PhysicalAdapter]:
        key = ("pnics", host_cache_key(self.client, host))
        return list(self.cache.get_or_compute(key, lambda: tuple(enumerate_physical_adapters(self.client, host))))

    def resolve(self, host: Any, switch: Any) -> List[PhysicalAdapter]:
        return list(self.resolve_detailed(host, switch).adapters)

    def resolve_detailed(self, host: Any, switch: Any) -> Resolution:
        key = ("uplinks", host_cache_key(self.client, host), str(getattr(switch, "uuid", "")))
        hit = self.cache.get(key)
        if hit is not None:
            return hit

        ctx = ResolverContext(
            client=self.client,
            host=host,
            switch=switch,
            logger=self.logger,
            uplink_portgroup=self.uplink_portgroup,
            inventory=self.physical_adapters(host),
        )
        attempted: List[str] = []
        for name, strategy in self.strategies:
            attempted.append(name)
            try:
                found = strategy(ctx)
            except Exception as e:
                self.logger.debug("Uplink strategy %s failed for %s: %s", name, ctx.switch_name, e)
                found = []
            if found:
                res = Resolution(adapters=tuple(found), strategy=name, attempted=tuple(attempted))
                self.logger.debug(
                    "Uplinks of %s on %s via %s: %s", self.client.host_name(host), ctx.switch_name, name, list(res.names)
                )
                self.cache.put(key, res)
                return res

        self.logger.debug("No uplinks resolved for %s on %s (tried %s)", self.client.host_name(host), ctx.switch_name, attempted)
        # empty answers are not cached: the host may simply not be joined yet
        return Resolution(adapters=(), strategy=None, attempted=tuple(attempted))

    def forget(self, host: Any) -> None:
        self.cache.evict_host(host_cache_key(self.client, host))


# ---------------------------------------------------------------------------
# Restore direction
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class UplinkMatch:
    binding: UplinkBinding
    adapter: Optional[PhysicalAdapter]
    method: str = ""

    @property
    def matched(self) -> bool:
        return self.adapter is not None

    @property
    def low_confidence(self) -> bool:
        return self.method == "suffix"


def _norm_mac(mac: str) -> str:
    return (mac or "").strip().lower().replace("-", ":")


def _match_one(binding: UplinkBinding, pool: Sequence[PhysicalAdapter]) -> Tuple[Optional[PhysicalAdapter], str]:
    for a in pool:
        if a.name == binding.physical_adapter_ref:
            return a, "name"
    mac = _norm_mac(binding.mac_address)
    if mac:
        for a in pool:
            if _norm_mac(a.mac) == mac:
                return a, "mac"
    pci = (binding.pci_address or "").strip().lower()
    if pci:
        for a in pool:
            if (a.pci or "").strip().lower() == pci:
                return a, "pci"
    n = numeric_suffix(binding.physical_adapter_ref)
    if n is not None:
        for a in pool:
            if numeric_suffix(a.name) == n:
                return a, "suffix"
    return None, ""


def match_uplinks(
    bindings: Sequence[UplinkBinding],
    live: Sequence[PhysicalAdapter],
    logger: Optional[logging.Logger] = None,
) -> List[UplinkMatch]:
    """
    One UplinkMatch per binding, in order. An adapter claimed by an earlier
    binding is never offered to a later one.
    """
    claimed: Dict[str, str] = {}
    out: List[UplinkMatch] = []
    for b in bindings:
        pool = [a for a in live if a.name not in claimed]
        adapter, method = _match_one(b, pool)
        if adapter is None:
            if logger:
                logger.error("No physical adapter matches uplink %s (recorded %s)", b.uplink_name, b.physical_adapter_ref)
            out.append(UplinkMatch(binding=b, adapter=None))
            continue
        claimed[adapter.name] = b.uplink_name
        if method == "suffix" and logger:
            logger.warning(
                "Low-confidence uplink match: %s -> %s (numeric suffix of %s only)",
                b.uplink_name,
                adapter.name,
                b.physical_adapter_ref,
            )
        out.append(UplinkMatch(binding=b, adapter=adapter, method=method))
    return out
