# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vc2vc/capture/capture.py

"""
Read a host's configuration into a Snapshot.

Each facet is collected on its own: if one reader fails the error is logged,
recorded in HostCapture.warnings and the facet keeps its default value. The
only fatal case is a host that cannot be resolved at all.

The capture_* readers are public and raise on failure; HostRestore calls them
to read live state before deciding whether to mutate anything.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from .. import __version__
from ..core.exceptions import CaptureError
from ..core.logger import Log
from ..core.utils import U
from ..network.uplink_resolver import UplinkResolver
from ..snapshot.model import (
    AdvancedSetting,
    Datastore,
    DistributedSwitchConfig,
    DnsConfig,
    FirewallRuleset,
    HostInfo,
    NetworkConfig,
    PhysicalAdapter,
    PortGroup,
    PowerConfig,
    ServiceConfig,
    Snapshot,
    SnapshotMetadata,
    StandardSwitchConfig,
    StorageAdapter,
    StorageConfig,
    SyslogConfig,
    TimeConfig,
    UplinkBinding,
    VmkernelAdapter,
)
from ..vmware.vmware_utils import same_managed_object, vim_type_name

T = TypeVar("T")

SYSLOG_HOST_KEY = "Syslog.global.logHost"
SYSLOG_DIR_KEY = "Syslog.global.logDir"

_GIB = 1024 ** 3


def _s(v: Any) -> str:
    return "" if v is None else str(v)


def _gb(n: Any) -> float:
    return round(float(n or 0) / _GIB, 2)


def advanced_value(v: Any) -> Any:
    """Normalize an OptionValue.value to bool/int/float/str (None for anything else)."""
    if isinstance(v, bool):
        return v
    if isinstance(v, int):
        return int(v)
    if isinstance(v, float):
        return float(v)
    if isinstance(v, str):
        return v
    return None


def dvpg_vlan_id(pg: Any) -> int:
    vlan = getattr(getattr(getattr(pg, "config", None), "defaultPortConfig", None), "vlan", None)
    vid = getattr(vlan, "vlanId", 0)
    # trunk port groups carry a list of ranges; record them as untagged
    return int(vid) if isinstance(vid, int) else 0


def is_uplink_portgroup(dvs: Any, pg: Any) -> bool:
    if bool(getattr(getattr(pg, "config", None), "uplink", False)):
        return True
    uplink_keys = {_s(getattr(u, "key", "")) for u in (getattr(dvs.config, "uplinkPortgroup", None) or [])}
    return _s(getattr(pg, "key", "")) in uplink_keys


def dvs_port_groups(dvs: Any) -> Tuple[PortGroup, ...]:
    return tuple(
        PortGroup(name=_s(pg.name), switch_name=_s(dvs.name), vlan_id=dvpg_vlan_id(pg), key=_s(pg.key))
        for pg in (getattr(dvs, "portgroup", None) or [])
        if not is_uplink_portgroup(dvs, pg)
    )


def standard_switches_from(info: Any) -> Tuple[StandardSwitchConfig, ...]:
    """Standard switches (with their port groups) from a HostNetworkInfo."""
    port_groups = [
        PortGroup(
            name=_s(pg.spec.name),
            switch_name=_s(pg.spec.vswitchName),
            vlan_id=int(pg.spec.vlanId or 0),
            key=_s(getattr(pg, "key", "")),
        )
        for pg in (getattr(info, "portgroup", None) or [])
    ]
    device_by_key = {_s(p.key): _s(p.device) for p in (getattr(info, "pnic", None) or [])}
    out: List[StandardSwitchConfig] = []
    for vs in getattr(info, "vswitch", None) or []:
        spec = getattr(vs, "spec", None)
        bridge_nics = list(getattr(getattr(spec, "bridge", None), "nicDevice", None) or [])
        nics = bridge_nics or [device_by_key.get(_s(k), _s(k)) for k in (getattr(vs, "pnic", None) or [])]
        out.append(
            StandardSwitchConfig(
                name=_s(vs.name),
                num_ports=int(getattr(spec, "numPorts", None) or getattr(vs, "numPorts", 0) or 0),
                mtu=int(getattr(vs, "mtu", None) or getattr(spec, "mtu", None) or 1500),
                nics=tuple(_s(n) for n in nics),
                port_groups=tuple(p for p in port_groups if p.switch_name == _s(vs.name)),
            )
        )
    return tuple(out)


class HostCapture:
    def __init__(
        self,
        logger: logging.Logger,
        client: Any,
        *,
        source_domain: Optional[str] = None,
        resolver: Optional[UplinkResolver] = None,
    ):
        self.logger = logger
        self.client = client
        self.source_domain = source_domain if source_domain is not None else _s(getattr(client, "server", ""))
        self.resolver = resolver or UplinkResolver(logger, client)
        self.warnings: List[str] = []

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def resolve_host(self, host: Any) -> Any:
        if isinstance(host, str):
            obj = self.client.find_host(host)
            if obj is None:
                raise CaptureError(msg=f"Host {host!r} not found on {self.source_domain}", context={"host": host})
            return obj
        if host is None:
            raise CaptureError(msg="No host given to capture")
        return host

    def capture(self, host: Any) -> Snapshot:
        self.warnings = []
        host_obj = self.resolve_host(host)
        name = self.client.host_name(host_obj) or _s(host)
        Log.step(self.logger, f"Capturing configuration of {name}", domain=self.source_domain)

        network = self._facet("network", lambda: self.capture_network(host_obj), NetworkConfig())
        snap = Snapshot(
            metadata=SnapshotMetadata(
                captured_at=U.now_iso(),
                tool_version=__version__,
                host_name=name,
                source_domain=self.source_domain,
                captured_by=U.current_user(),
                host_info=self._facet("host_info", lambda: self.capture_host_info(host_obj), HostInfo()),
            ),
            network=network,
            storage=self._facet("storage", lambda: self.capture_storage(host_obj), StorageConfig()),
            services=self._facet("services", lambda: self.capture_services(host_obj), ()),
            firewall=self._facet("firewall", lambda: self.capture_firewall(host_obj), ()),
            advanced_settings=self._facet("advanced_settings", lambda: self.capture_advanced_settings(host_obj), ()),
            time=self._facet("time", lambda: self.capture_time(host_obj), TimeConfig()),
            dns=self._facet("dns", lambda: self.capture_dns(host_obj), DnsConfig()),
            syslog=self._facet("syslog", lambda: self.capture_syslog(host_obj), SyslogConfig()),
            power=self._facet("power", lambda: self.capture_power(host_obj), PowerConfig()),
        )
        n = snap.network
        Log.ok(
            self.logger,
            f"Captured {name}: {len(n.standard_switches)} vSwitch, {len(n.distributed_switches)} dvSwitch, "
            f"{len(n.vmkernel_adapters)} vmk, {len(snap.services)} services, {len(snap.advanced_settings)} settings"
            + (f", {len(self.warnings)} warning(s)" if self.warnings else ""),
        )
        return snap

    def _facet(self, facet: str, read: Callable[[], T], default: T) -> T:
        try:
            return read()
        except Exception as e:
            msg = f"{facet}: {e}"
            self.warnings.append(msg)
            Log.warn(self.logger, f"Could not capture {msg}")
            self.logger.debug("capture %s failed", facet, exc_info=True)
            return default

    # ------------------------------------------------------------------
    # Host info
    # ------------------------------------------------------------------

    def capture_host_info(self, host: Any) -> HostInfo:
        s = self.client.host_summary(host)
        product = getattr(getattr(s, "config", None), "product", None)
        hw = getattr(s, "hardware", None)
        rt = getattr(s, "runtime", None)
        return HostInfo(
            version=_s(getattr(product, "version", "")),
            build=_s(getattr(product, "build", "")),
            vendor=_s(getattr(hw, "vendor", "")),
            model=_s(getattr(hw, "model", "")),
            cpu_cores=int(getattr(hw, "numCpuCores", 0) or 0),
            cpu_mhz=int(getattr(hw, "cpuMhz", 0) or 0),
            memory_gb=_gb(getattr(hw, "memorySize", 0)),
            connection_state=_s(getattr(rt, "connectionState", "")),
            power_state=_s(getattr(rt, "powerState", "")),
        )

    # ------------------------------------------------------------------
    # Network
    # ------------------------------------------------------------------

    def domain_switches(self) -> Dict[str, Any]:
        """uuid -> distributed switch object of the connected domain."""
        return {_s(d.uuid): d for d in self.client.list_distributed_switches()}

    def capture_network(self, host: Any) -> NetworkConfig:
        info = self.client.host_network_info(host)
        adapters = tuple(self.resolver.physical_adapters(host))
        standard = standard_switches_from(info)

        proxies = list(getattr(info, "proxySwitch", None) or [])
        domain: Dict[str, Any] = {}
        if proxies:
            try:
                domain = self.domain_switches()
            except Exception as e:
                # keep the host-side view of the switches
                self.warnings.append(f"network: distributed switch list unavailable: {e}")
                Log.warn(self.logger, f"Distributed switch list unavailable on {self.source_domain}: {e}")

        distributed = [self._distributed_switch(host, ps, domain.get(_s(ps.dvsUuid)), adapters) for ps in proxies]
        dvs_name_by_uuid = {d.uuid: d.name for d in distributed}
        pg_name_by_key = {p.key: p.name for d in distributed for p in d.port_groups}

        services: Dict[str, List[str]] = {}
        try:
            services = self.client.host_vnic_services(host)
        except Exception as e:
            self.warnings.append(f"network: VMkernel service tags unavailable: {e}")
            Log.warn(self.logger, f"VMkernel service tags unavailable: {e}")

        vmks: List[VmkernelAdapter] = []
        for v in getattr(info, "vnic", None) or []:
            spec = v.spec
            ip = getattr(spec, "ip", None)
            dvp = getattr(spec, "distributedVirtualPort", None)
            dvs_uuid = _s(getattr(dvp, "switchUuid", "")) if dvp is not None else ""
            if dvs_uuid:
                pg_key = _s(getattr(dvp, "portgroupKey", ""))
                port_group = pg_name_by_key.get(pg_key, pg_key)
                dvs_name: Optional[str] = dvs_name_by_uuid.get(dvs_uuid, dvs_uuid)
            else:
                port_group = _s(getattr(v, "portgroup", ""))
                dvs_name = None
            vmks.append(
                VmkernelAdapter(
                    device=_s(v.device),
                    port_group=port_group,
                    distributed_switch=dvs_name,
                    ip=_s(getattr(ip, "ipAddress", "")),
                    netmask=_s(getattr(ip, "subnetMask", "")),
                    dhcp=bool(getattr(ip, "dhcp", False)),
                    mtu=int(getattr(spec, "mtu", None) or 1500),
                    mac=_s(getattr(spec, "mac", "")),
                    services=tuple(sorted(services.get(_s(v.device), []))),
                )
            )

        return NetworkConfig(
            vmkernel_adapters=tuple(vmks),
            physical_adapters=adapters,
            standard_switches=tuple(standard),
            distributed_switches=tuple(distributed),
        )

    def _distributed_switch(
        self,
        host: Any,
        proxy: Any,
        dvs: Any,
        inventory: Tuple[PhysicalAdapter, ...],
    ) -> DistributedSwitchConfig:
        backing = getattr(getattr(proxy, "spec", None), "backing", None)
        port_key_by_device = {_s(s.pnicDevice): _s(getattr(s, "uplinkPortKey", "")) for s in (getattr(backing, "pnicSpec", None) or [])}
        uplink_name_by_port = {_s(kv.key): _s(kv.value) for kv in (getattr(proxy, "uplinkPort", None) or [])}

        if dvs is not None:
            adapters = self.resolver.resolve(host, dvs)
            fallback_names = list(getattr(getattr(dvs.config, "uplinkPortPolicy", None), "uplinkPortName", None) or [])
            port_groups = dvs_port_groups(dvs)
            mtu = int(getattr(proxy, "mtu", None) or getattr(dvs.config, "maxMtu", None) or 1500)
        else:
            by_name = {a.name: a for a in inventory}
            adapters = [by_name.get(d) or PhysicalAdapter(name=d) for d in port_key_by_device]
            fallback_names = []
            port_groups = ()
            mtu = int(getattr(proxy, "mtu", None) or 1500)

        uplinks = []
        for i, a in enumerate(adapters):
            name = uplink_name_by_port.get(port_key_by_device.get(a.name, ""), "")
            if not name:
                name = fallback_names[i] if i < len(fallback_names) else f"uplink{i + 1}"
            uplinks.append(UplinkBinding(uplink_name=name, physical_adapter_ref=a.name, mac_address=a.mac, pci_address=a.pci))

        return DistributedSwitchConfig(
            name=_s(proxy.dvsName),
            uuid=_s(proxy.dvsUuid),
            mtu=mtu,
            port_groups=port_groups,
            uplinks=tuple(uplinks),
        )

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def capture_storage(self, host: Any) -> StorageConfig:
        datastores = []
        for ds in self.client.host_datastores(host):
            s = ds.summary
            nas = getattr(getattr(ds, "info", None), "nas", None)
            access = "readWrite"
            for m in getattr(ds, "host", None) or []:
                if same_managed_object(getattr(m, "key", None), host):
                    access = _s(getattr(m.mountInfo, "accessMode", "")) or access
            datastores.append(
                Datastore(
                    name=_s(s.name),
                    type=_s(s.type),
                    capacity_gb=_gb(s.capacity),
                    free_gb=_gb(s.freeSpace),
                    accessible=bool(s.accessible),
                    url=_s(getattr(s, "url", "")),
                    remote_host=_s(getattr(nas, "remoteHost", "")),
                    remote_path=_s(getattr(nas, "remotePath", "")),
                    access_mode=access,
                )
            )
        adapters = []
        for hba in self.client.host_storage_adapters(host):
            kind = vim_type_name(hba)
            if kind.startswith("Host") and kind.endswith("Hba"):
                kind = kind[4:-3]
            adapters.append(
                StorageAdapter(
                    device=_s(hba.device),
                    type=kind,
                    model=_s(getattr(hba, "model", "")),
                    driver=_s(getattr(hba, "driver", "")),
                    status=_s(getattr(hba, "status", "")),
                )
            )
        return StorageConfig(
            datastores=tuple(datastores),
            adapters=tuple(adapters),
            software_iscsi_enabled=self.client.software_iscsi_enabled(host),
        )

    # ------------------------------------------------------------------
    # Services / firewall / settings
    # ------------------------------------------------------------------

    def capture_services(self, host: Any) -> Tuple[ServiceConfig, ...]:
        return tuple(
            ServiceConfig(
                key=_s(s.key),
                label=_s(getattr(s, "label", "")),
                running=bool(s.running),
                policy=_s(s.policy) or "off",
                required=bool(getattr(s, "required", False)),
            )
            for s in self.client.host_services(host)
        )

    def capture_firewall(self, host: Any) -> Tuple[FirewallRuleset, ...]:
        out = []
        for rs in self.client.host_firewall_rulesets(host):
            allowed = getattr(rs, "allowedHosts", None)
            ips = [_s(ip) for ip in (getattr(allowed, "ipAddress", None) or [])]
            ips += [f"{n.network}/{n.prefixLength}" for n in (getattr(allowed, "ipNetwork", None) or [])]
            out.append(
                FirewallRuleset(
                    key=_s(rs.key),
                    label=_s(getattr(rs, "label", "")),
                    enabled=bool(rs.enabled),
                    allowed_all=bool(getattr(allowed, "allIp", True)) if allowed is not None else True,
                    allowed_ips=tuple(ips),
                )
            )
        return tuple(out)

    def capture_advanced_settings(self, host: Any) -> Tuple[AdvancedSetting, ...]:
        out = []
        for opt in self.client.host_advanced_settings(host):
            v = advanced_value(getattr(opt, "value", None))
            if v is None:
                continue
            out.append(AdvancedSetting(key=_s(opt.key), value=v))
        return tuple(out)

    def capture_time(self, host: Any) -> TimeConfig:
        info = self.client.host_datetime_info(host)
        ntp = getattr(info, "ntpConfig", None)
        return TimeConfig(
            ntp_servers=tuple(_s(x) for x in (getattr(ntp, "server", None) or [])),
            timezone=_s(getattr(getattr(info, "timeZone", None), "name", "")),
        )

    def capture_dns(self, host: Any) -> DnsConfig:
        dns = self.client.host_network_info(host).dnsConfig
        return DnsConfig(
            host_name=_s(getattr(dns, "hostName", "")),
            domain_name=_s(getattr(dns, "domainName", "")),
            dhcp=bool(getattr(dns, "dhcp", False)),
            addresses=tuple(_s(a) for a in (getattr(dns, "address", None) or [])),
            search_domains=tuple(_s(a) for a in (getattr(dns, "searchDomain", None) or [])),
        )

    def capture_syslog(self, host: Any) -> SyslogConfig:
        values = {_s(o.key): getattr(o, "value", None) for o in self.client.host_advanced_settings(host)}
        return SyslogConfig(log_host=_s(values.get(SYSLOG_HOST_KEY)), log_dir=_s(values.get(SYSLOG_DIR_KEY)))

    def capture_power(self, host: Any) -> PowerConfig:
        info = self.client.host_power_info(host)
        return PowerConfig(policy=_s(getattr(getattr(info, "currentPolicy", None), "shortName", "")))
