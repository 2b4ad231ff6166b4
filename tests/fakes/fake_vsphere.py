# SPDX-License-Identifier: LGPL-3.0-or-later
"""
In-memory vSphere for tests.

FakeWorld holds the physical hosts (FakeHost) and the vCenters (FakeDomain)
that may manage them. FakeVsphereClient exposes the same public methods as
vc2vc.vmware.VMwareClient, FakeHostClient the same as HostClient; both hand
back SimpleNamespace objects shaped like the pyVmomi attributes vc2vc reads.

Every mutating call is recorded on its domain (or host) and any method can be
made to raise with .fail(name).
"""
from __future__ import annotations

import functools
from dataclasses import dataclass, field
from types import SimpleNamespace as NS
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from vc2vc.vmware.identity import DomainEndpoint, HostIdentity
from vc2vc.vmware.vmware_utils import short_host_name

MUTATORS = {
    "add_virtual_switch",
    "update_virtual_switch",
    "add_port_group",
    "update_port_group",
    "add_vmkernel_adapter",
    "update_vmkernel_adapter",
    "select_vnic_service",
    "deselect_vnic_service",
    "dvs_add_host",
    "dvs_set_host_uplinks",
    "remove_proxy_switch",
    "update_dns_config",
    "set_service_policy",
    "start_service",
    "stop_service",
    "set_ruleset_enabled",
    "set_ruleset_allowed_ips",
    "update_advanced_setting",
    "update_ntp_servers",
    "set_power_policy",
    "mount_nfs_datastore",
    "enable_software_iscsi",
    "change_lockdown_mode",
    "disconnect_host",
    "reconnect_host",
    "add_host",
    "remove_host",
}


def pnic_key(device: str) -> str:
    return f"key-vim.host.PhysicalNic-{device}"


# ---------------------------------------------------------------------------
# Host-side state
# ---------------------------------------------------------------------------

@dataclass
class FakeVnic:
    device: str
    portgroup: str = ""
    ip: str = ""
    netmask: str = ""
    dhcp: bool = False
    mtu: int = 1500
    mac: str = ""
    dvs_uuid: str = ""
    pg_key: str = ""


@dataclass
class FakeProxy:
    uuid: str
    name: str
    mtu: int = 1500
    pnics: Dict[str, str] = field(default_factory=dict)  # device -> uplink port key
    uplink_names: Dict[str, str] = field(default_factory=dict)  # port key -> uplink name


@dataclass(eq=False)
class FakeHost:
    name: str
    pnics: List[Dict[str, Any]] = field(default_factory=list)
    vswitches: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    portgroups: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    vnics: Dict[str, FakeVnic] = field(default_factory=dict)
    proxies: Dict[str, FakeProxy] = field(default_factory=dict)
    vnic_services: Dict[str, Set[str]] = field(default_factory=dict)
    services: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    rulesets: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    options: Dict[str, Any] = field(default_factory=dict)
    ntp: List[str] = field(default_factory=list)
    timezone: str = "UTC"
    dns: Dict[str, Any] = field(default_factory=dict)
    power_policy: str = "dynamic"
    power_policies: Tuple[str, ...] = ("static", "dynamic", "low", "custom")
    datastores: List[Dict[str, Any]] = field(default_factory=list)
    software_iscsi: bool = False
    lockdown: str = "lockdownDisabled"
    maintenance: bool = True
    failures: Dict[str, BaseException] = field(default_factory=dict)
    calls: List[Tuple[str, Tuple[Any, ...]]] = field(default_factory=list)

    def pnic_devices(self) -> List[str]:
        return [p["device"] for p in self.pnics]

    def release_pnic(self, device: str, keep_uuid: str = "") -> None:
        """A pnic backs exactly one switch."""
        for uuid, ps in self.proxies.items():
            if uuid != keep_uuid:
                ps.pnics.pop(device, None)
        for vs in self.vswitches.values():
            if device in vs["nics"]:
                vs["nics"].remove(device)

    def next_vmk(self) -> str:
        n = 0
        while f"vmk{n}" in self.vnics:
            n += 1
        return f"vmk{n}"

    # pyVmomi-shaped views

    def network_info(self) -> Any:
        return NS(
            pnic=[
                NS(
                    key=pnic_key(p["device"]),
                    device=p["device"],
                    mac=p.get("mac", ""),
                    pci=p.get("pci", ""),
                    driver=p.get("driver", "ixgben"),
                    linkSpeed=NS(speedMb=p.get("speed_mb", 10000)),
                )
                for p in self.pnics
            ],
            vswitch=[
                NS(
                    name=name,
                    mtu=vs["mtu"],
                    numPorts=vs["num_ports"],
                    pnic=[pnic_key(d) for d in vs["nics"]],
                    spec=NS(numPorts=vs["num_ports"], mtu=vs["mtu"], bridge=NS(nicDevice=list(vs["nics"])) if vs["nics"] else None),
                )
                for name, vs in self.vswitches.items()
            ],
            portgroup=[
                NS(key=f"key-vim.host.PortGroup-{name}", spec=NS(name=name, vswitchName=pg["switch"], vlanId=pg["vlan"]))
                for name, pg in self.portgroups.items()
            ],
            vnic=[self._vnic_view(v) for v in self.vnics.values()],
            proxySwitch=[self._proxy_view(ps) for ps in self.proxies.values()],
            dnsConfig=NS(
                hostName=self.dns.get("host_name", short_host_name(self.name)),
                domainName=self.dns.get("domain_name", ""),
                dhcp=self.dns.get("dhcp", False),
                address=list(self.dns.get("addresses", [])),
                searchDomain=list(self.dns.get("search_domains", [])),
            ),
        )

    @staticmethod
    def _vnic_view(v: FakeVnic) -> Any:
        dvp = NS(switchUuid=v.dvs_uuid, portgroupKey=v.pg_key) if v.dvs_uuid else None
        return NS(
            device=v.device,
            portgroup="" if v.dvs_uuid else v.portgroup,
            spec=NS(
                ip=NS(ipAddress=v.ip, subnetMask=v.netmask, dhcp=v.dhcp),
                mtu=v.mtu,
                mac=v.mac,
                distributedVirtualPort=dvp,
            ),
        )

    @staticmethod
    def _proxy_view(ps: FakeProxy) -> Any:
        return NS(
            dvsUuid=ps.uuid,
            dvsName=ps.name,
            mtu=ps.mtu,
            pnic=[pnic_key(d) for d in ps.pnics],
            uplinkPort=[NS(key=k, value=n) for k, n in ps.uplink_names.items()],
            spec=NS(backing=NS(pnicSpec=[NS(pnicDevice=d, uplinkPortKey=k) for d, k in ps.pnics.items()])),
        )


# ---------------------------------------------------------------------------
# Domain-side state
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class HostRef:
    """A HostSystem managed object as one vCenter sees it."""

    name: str
    _moId: str
    host: FakeHost


@dataclass
class FakeEntry:
    ref: HostRef
    state: str = "connected"
    managed: bool = True
    cluster: Optional[str] = None
    datacenter: str = ""


@dataclass
class FakeDvs:
    name: str
    uuid: str
    portgroups: Dict[str, str] = field(default_factory=dict)  # name -> key
    uplink_names: Tuple[str, ...] = ("uplink1", "uplink2")
    uplink_pg_key: str = ""
    uplink_pg_name: str = ""
    mtu: int = 1500
    members: Dict[str, Dict[str, str]] = field(default_factory=dict)  # host -> device -> port key
    ports: Dict[str, List[Tuple[str, str]]] = field(default_factory=dict)  # host -> [(port key, uplink)]

    def __post_init__(self) -> None:
        self.uplink_pg_key = self.uplink_pg_key or f"{self.uuid}-uplinks"
        self.uplink_pg_name = self.uplink_pg_name or f"{self.name}-DVUplinks"

    def view(self) -> Any:
        pgs = [
            NS(name=n, key=k, config=NS(uplink=False, defaultPortConfig=NS(vlan=NS(vlanId=0))))
            for n, k in self.portgroups.items()
        ]
        pgs.append(NS(name=self.uplink_pg_name, key=self.uplink_pg_key, config=NS(uplink=True, defaultPortConfig=None)))
        return NS(
            name=self.name,
            uuid=self.uuid,
            portgroup=pgs,
            config=NS(
                uplinkPortgroup=[NS(key=self.uplink_pg_key, name=self.uplink_pg_name)],
                uplinkPortPolicy=NS(uplinkPortName=list(self.uplink_names)),
                maxMtu=self.mtu,
                configVersion="1",
            ),
        )


class FakeDomain:
    def __init__(self, world: "FakeWorld", server: str, datacenters: Optional[Dict[str, Sequence[str]]] = None):
        self.world = world
        self.server = server
        self.datacenters: Dict[str, Set[str]] = {k: set(v) for k, v in (datacenters or {"DC1": ()}).items()}
        self.entries: Dict[str, FakeEntry] = {}
        self.switches: Dict[str, FakeDvs] = {}
        self.failures: Dict[str, BaseException] = {}
        self.calls: List[Tuple[str, str]] = []
        self._next_moid = 10

    def fail(self, method: str, exc: Optional[BaseException] = None) -> None:
        self.failures[method] = exc or RuntimeError(f"{method} failed on {self.server}")

    def mutations(self) -> List[str]:
        return [m for m, _h in self.calls]

    def add_switch(self, dvs: FakeDvs) -> FakeDvs:
        self.switches[dvs.uuid] = dvs
        return dvs

    def register(self, host: FakeHost, *, state: str = "connected", cluster: Optional[str] = None, datacenter: str = "") -> HostRef:
        self._next_moid += 1
        ref = HostRef(name=host.name, _moId=f"host-{self._next_moid}", host=host)
        self.entries[host.name] = FakeEntry(ref=ref, state=state, cluster=cluster, datacenter=datacenter or next(iter(self.datacenters)))
        if state == "connected":
            self.world.take_ownership(self, host)
        return ref

    def entry(self, ref: Any) -> FakeEntry:
        e = self.entries.get(ref.name)
        if e is None:
            raise RuntimeError(f"ManagedObjectNotFound: {ref._moId}")
        return e

    def join(self, dvs: FakeDvs, host: FakeHost) -> None:
        dvs.members.setdefault(host.name, {})
        dvs.ports[host.name] = [(f"{dvs.uuid}-{host.name}-{i}", n) for i, n in enumerate(dvs.uplink_names)]
        host.proxies[dvs.uuid] = FakeProxy(
            uuid=dvs.uuid,
            name=dvs.name,
            mtu=dvs.mtu,
            uplink_names={k: n for k, n in dvs.ports[host.name]},
        )

    def set_uplinks(self, dvs: FakeDvs, host: FakeHost, pnics: Sequence[Tuple[str, Optional[str]]]) -> None:
        free = [k for k, _n in dvs.ports[host.name]]
        assigned: Dict[str, str] = {}
        for device, key in pnics:
            if device not in host.pnic_devices():
                raise RuntimeError(f"NotFound: {device}")
            if key is None:
                key = next(k for k in free if k not in assigned.values())
            assigned[device] = key
        for device in assigned:
            host.release_pnic(device, keep_uuid=dvs.uuid)
        dvs.members[host.name] = dict(assigned)
        host.proxies[dvs.uuid].pnics = dict(assigned)


class FakeWorld:
    def __init__(self) -> None:
        self.hosts: Dict[str, FakeHost] = {}
        self.domains: Dict[str, FakeDomain] = {}
        self.open_domain_sessions = 0
        self.max_domain_sessions = 0
        self.open_host_sessions = 0
        self.max_host_sessions = 0

    def add_host(self, host: FakeHost) -> FakeHost:
        self.hosts[host.name] = host
        return host

    def add_domain(self, server: str, datacenters: Optional[Dict[str, Sequence[str]]] = None) -> FakeDomain:
        d = FakeDomain(self, server, datacenters)
        self.domains[server] = d
        return d

    def take_ownership(self, owner: FakeDomain, host: FakeHost) -> None:
        """An ESXi host answers to one vCenter; everyone else loses it."""
        for d in self.domains.values():
            if d is owner:
                continue
            e = d.entries.get(host.name)
            if e is not None and e.state == "connected":
                e.state = "disconnected"

    def owner_of(self, host_name: str) -> Optional[str]:
        for d in self.domains.values():
            e = d.entries.get(host_name)
            if e is not None and e.state == "connected":
                return d.server
        return None

    # factories, shaped like the ones MigrationOrchestrator/Orchestrator accept

    def client_factory(self, ep: Any) -> "FakeVsphereClient":
        return FakeVsphereClient(self.domains[ep.host])

    def host_client_factory(self, identity: Any) -> "FakeHostClient":
        return FakeHostClient(self, self.hosts[identity.host])


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------

def _op(fn):
    name = fn.__name__

    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        self._hit(name, args)
        return fn(self, *args, **kwargs)

    return wrapper


class _HostOps:
    """Everything that talks to one host's managers."""

    def _host_of(self, ref: Any) -> FakeHost:
        raise NotImplementedError

    def _hit(self, name: str, args: Tuple[Any, ...]) -> None:
        raise NotImplementedError

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        return False

    def host_name(self, host: Any) -> str:
        return str(host.name)

    # network reads

    @_op
    def host_network_info(self, host: Any) -> Any:
        return self._host_of(host).network_info()

    @_op
    def host_network_config(self, host: Any) -> Any:
        info = self._host_of(host).network_info()
        return NS(pnic=info.pnic, proxySwitch=info.proxySwitch)

    @_op
    def host_vnic_services(self, host: Any) -> Dict[str, List[str]]:
        h = self._host_of(host)
        return {dev: sorted(types) for dev, types in h.vnic_services.items() if types}

    # standard switching

    @_op
    def add_virtual_switch(self, host: Any, name: str, *, num_ports: int, mtu: int, nics: Sequence[str] = ()) -> None:
        h = self._host_of(host)
        if name in h.vswitches:
            raise RuntimeError(f"AlreadyExists: {name}")
        for n in nics:
            h.release_pnic(n)
        h.vswitches[name] = {"num_ports": num_ports, "mtu": mtu, "nics": list(nics)}

    @_op
    def update_virtual_switch(self, host: Any, name: str, *, num_ports: int, mtu: int, nics: Sequence[str] = ()) -> None:
        h = self._host_of(host)
        if name not in h.vswitches:
            raise RuntimeError(f"NotFound: {name}")
        for n in nics:
            h.release_pnic(n)
        h.vswitches[name] = {"num_ports": num_ports, "mtu": mtu, "nics": list(nics)}

    @_op
    def add_port_group(self, host: Any, name: str, switch_name: str, vlan_id: int = 0) -> None:
        h = self._host_of(host)
        if switch_name not in h.vswitches:
            raise RuntimeError(f"NotFound: vSwitch {switch_name}")
        if name in h.portgroups:
            raise RuntimeError(f"AlreadyExists: {name}")
        h.portgroups[name] = {"switch": switch_name, "vlan": vlan_id}

    @_op
    def update_port_group(self, host: Any, name: str, switch_name: str, vlan_id: int = 0) -> None:
        h = self._host_of(host)
        if name not in h.portgroups:
            raise RuntimeError(f"NotFound: {name}")
        h.portgroups[name] = {"switch": switch_name, "vlan": vlan_id}

    # VMkernel

    def _check_vmk_target(self, h: FakeHost, port_group: Optional[str], dvs_uuid: Optional[str]) -> None:
        if dvs_uuid:
            if dvs_uuid not in h.proxies:
                raise RuntimeError(f"host is not a member of switch {dvs_uuid}")
        elif port_group and port_group not in h.portgroups:
            raise RuntimeError(f"NotFound: port group {port_group}")

    @_op
    def add_vmkernel_adapter(
        self,
        host: Any,
        *,
        port_group: str,
        ip: str,
        netmask: str,
        dhcp: bool,
        mtu: int,
        dvs_uuid: Optional[str] = None,
        portgroup_key: Optional[str] = None,
    ) -> str:
        h = self._host_of(host)
        self._check_vmk_target(h, port_group, dvs_uuid)
        dev = h.next_vmk()
        h.vnics[dev] = FakeVnic(
            device=dev,
            portgroup="" if dvs_uuid else port_group,
            ip=ip,
            netmask=netmask,
            dhcp=dhcp,
            mtu=mtu,
            mac=f"00:50:56:6{len(h.vnics)}:00:01",
            dvs_uuid=dvs_uuid or "",
            pg_key=portgroup_key or "",
        )
        return dev

    @_op
    def update_vmkernel_adapter(
        self,
        host: Any,
        device: str,
        *,
        ip: str,
        netmask: str,
        dhcp: bool,
        mtu: int,
        port_group: Optional[str] = None,
        dvs_uuid: Optional[str] = None,
        portgroup_key: Optional[str] = None,
    ) -> None:
        h = self._host_of(host)
        v = h.vnics.get(device)
        if v is None:
            raise RuntimeError(f"NotFound: {device}")
        self._check_vmk_target(h, port_group, dvs_uuid)
        v.ip, v.netmask, v.dhcp, v.mtu = ip, netmask, dhcp, mtu
        if dvs_uuid:
            v.dvs_uuid, v.pg_key, v.portgroup = dvs_uuid, portgroup_key or "", ""
        elif port_group:
            v.dvs_uuid, v.pg_key, v.portgroup = "", "", port_group

    @_op
    def select_vnic_service(self, host: Any, nic_type: str, device: str) -> None:
        h = self._host_of(host)
        if device not in h.vnics:
            raise RuntimeError(f"NotFound: {device}")
        h.vnic_services.setdefault(device, set()).add(nic_type)

    @_op
    def deselect_vnic_service(self, host: Any, nic_type: str, device: str) -> None:
        self._host_of(host).vnic_services.get(device, set()).discard(nic_type)

    @_op
    def remove_proxy_switch(self, host: Any, dvs_uuid: str) -> None:
        h = self._host_of(host)
        if dvs_uuid not in h.proxies:
            raise RuntimeError(f"NotFound: proxy switch {dvs_uuid}")
        if any(v.dvs_uuid == dvs_uuid for v in h.vnics.values()):
            raise RuntimeError("ResourceInUse: VMkernel adapters attached")
        del h.proxies[dvs_uuid]

    @_op
    def update_dns_config(
        self,
        host: Any,
        *,
        host_name: str,
        domain_name: str,
        dhcp: bool,
        addresses: Sequence[str],
        search_domains: Sequence[str],
    ) -> None:
        self._host_of(host).dns = {
            "host_name": host_name,
            "domain_name": domain_name,
            "dhcp": dhcp,
            "addresses": list(addresses),
            "search_domains": list(search_domains),
        }

    # services / firewall / options / time / power

    @_op
    def host_services(self, host: Any) -> List[Any]:
        return [NS(key=k, label=s.get("label", k), running=s["running"], policy=s["policy"], required=False) for k, s in self._host_of(host).services.items()]

    @_op
    def set_service_policy(self, host: Any, key: str, policy: str) -> None:
        self._host_of(host).services[key]["policy"] = policy

    @_op
    def start_service(self, host: Any, key: str) -> None:
        self._host_of(host).services[key]["running"] = True

    @_op
    def stop_service(self, host: Any, key: str) -> None:
        self._host_of(host).services[key]["running"] = False

    @_op
    def host_firewall_rulesets(self, host: Any) -> List[Any]:
        return [
            NS(key=k, label=k, enabled=r["enabled"], allowedHosts=NS(allIp=r["all_ip"], ipAddress=list(r["ips"]), ipNetwork=[]))
            for k, r in self._host_of(host).rulesets.items()
        ]

    @_op
    def set_ruleset_enabled(self, host: Any, key: str, enabled: bool) -> None:
        self._host_of(host).rulesets[key]["enabled"] = enabled

    @_op
    def set_ruleset_allowed_ips(self, host: Any, key: str, *, allowed_all: bool, allowed_ips: Sequence[str]) -> None:
        r = self._host_of(host).rulesets[key]
        r["all_ip"], r["ips"] = allowed_all, list(allowed_ips)

    @_op
    def host_advanced_settings(self, host: Any) -> List[Any]:
        return [NS(key=k, value=v) for k, v in self._host_of(host).options.items()]

    @_op
    def update_advanced_setting(self, host: Any, key: str, value: Any) -> None:
        h = self._host_of(host)
        if key not in h.options:
            raise RuntimeError(f"InvalidName: {key}")
        h.options[key] = value

    @_op
    def host_datetime_info(self, host: Any) -> Any:
        h = self._host_of(host)
        return NS(ntpConfig=NS(server=list(h.ntp)), timeZone=NS(name=h.timezone))

    @_op
    def update_ntp_servers(self, host: Any, servers: Sequence[str]) -> None:
        self._host_of(host).ntp = list(servers)

    @_op
    def host_power_info(self, host: Any) -> Any:
        return NS(currentPolicy=NS(shortName=self._host_of(host).power_policy))

    @_op
    def set_power_policy(self, host: Any, short_name: str) -> None:
        h = self._host_of(host)
        if short_name not in h.power_policies:
            raise ValueError(f"power policy {short_name!r} not offered")
        h.power_policy = short_name

    # storage

    @_op
    def host_datastores(self, host: Any) -> List[Any]:
        out = []
        for ds in self._host_of(host).datastores:
            out.append(
                NS(
                    summary=NS(
                        name=ds["name"],
                        type=ds["type"],
                        capacity=ds.get("capacity", 100 * 1024 ** 3),
                        freeSpace=ds.get("free", 50 * 1024 ** 3),
                        accessible=True,
                        url=f"ds:///vmfs/volumes/{ds['name']}/",
                    ),
                    info=NS(nas=NS(remoteHost=ds.get("remote_host", ""), remotePath=ds.get("remote_path", ""))) if ds["type"].startswith("NFS") else NS(),
                    host=[NS(key=host, mountInfo=NS(accessMode=ds.get("access_mode", "readWrite")))],
                )
            )
        return out

    @_op
    def mount_nfs_datastore(self, host: Any, *, name: str, remote_host: str, remote_path: str, access_mode: str, nfs_type: str) -> None:
        self._host_of(host).datastores.append(
            {"name": name, "type": nfs_type, "remote_host": remote_host, "remote_path": remote_path, "access_mode": access_mode}
        )

    @_op
    def host_storage_adapters(self, host: Any) -> List[Any]:
        adapters = [NS(_wsdlName="HostBlockHba", device="vmhba0", model="PERC H730", driver="lsi_mr3", status="online")]
        if self._host_of(host).software_iscsi:
            adapters.append(NS(_wsdlName="HostInternetScsiHba", device="vmhba64", model="iSCSI Software Adapter", driver="iscsi_vmk", status="online"))
        return adapters

    @_op
    def software_iscsi_enabled(self, host: Any) -> bool:
        return self._host_of(host).software_iscsi

    @_op
    def enable_software_iscsi(self, host: Any) -> None:
        self._host_of(host).software_iscsi = True

    # lockdown

    @_op
    def host_lockdown_mode(self, host: Any) -> str:
        return self._host_of(host).lockdown

    @_op
    def change_lockdown_mode(self, host: Any, mode: str) -> None:
        self._host_of(host).lockdown = mode


class FakeVsphereClient(_HostOps):
    """A session against one FakeDomain."""

    def __init__(self, domain: FakeDomain):
        self.domain = domain
        self.world = domain.world

    @property
    def server(self) -> str:
        return self.domain.server

    def __enter__(self):
        w = self.world
        w.open_domain_sessions += 1
        w.max_domain_sessions = max(w.max_domain_sessions, w.open_domain_sessions)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.world.open_domain_sessions -= 1
        return False

    def _hit(self, name: str, args: Tuple[Any, ...]) -> None:
        exc = self.domain.failures.get(name)
        if exc is not None:
            raise exc
        if name in MUTATORS:
            target = next((a for a in args if isinstance(a, (HostRef, HostIdentity))), None)
            self.domain.calls.append((name, getattr(target, "name", None) or getattr(target, "host", "")))

    def _host_of(self, ref: Any) -> FakeHost:
        e = self.domain.entry(ref)
        if e.state != "connected":
            raise RuntimeError(f"HostNotConnected: {ref.name}")
        return e.ref.host

    def _dvs(self, view: Any) -> FakeDvs:
        return self.domain.switches[str(view.uuid)]

    # inventory

    @_op
    def get_datacenter_by_name(self, name: str) -> Any:
        return NS(name=name) if name in self.domain.datacenters else None

    @_op
    def find_cluster(self, datacenter: Any, name: str) -> Any:
        if datacenter is None or name not in self.domain.datacenters.get(datacenter.name, set()):
            return None
        return NS(name=name, datacenter=datacenter.name)

    @_op
    def find_host(self, name: str) -> Any:
        n = (name or "").strip().lower()
        for e in self.domain.entries.values():
            if e.ref.name.lower() == n or short_host_name(e.ref.name).lower() == short_host_name(n).lower():
                return e.ref
        return None

    @_op
    def host_summary(self, host: Any) -> Any:
        e = self.domain.entry(host)
        return NS(
            config=NS(product=NS(version="8.0.2", build="22380479")),
            hardware=NS(vendor="Dell Inc.", model="PowerEdge R650", numCpuCores=32, cpuMhz=2900, memorySize=512 * 1024 ** 3),
            runtime=NS(connectionState=e.state, powerState="poweredOn"),
        )

    @_op
    def host_connection_state(self, host: Any) -> str:
        return self.domain.entry(host).state

    @_op
    def host_in_maintenance(self, host: Any) -> bool:
        return self._host_of(host).maintenance

    @_op
    def host_is_managed(self, host: Any) -> bool:
        e = self.domain.entries.get(host.name)
        return bool(e is not None and e.state == "connected" and e.managed)

    # host lifecycle

    @_op
    def disconnect_host(self, host: Any) -> None:
        self.domain.entry(host).state = "disconnected"

    @_op
    def reconnect_host(self, host: Any, identity: Any = None) -> None:
        e = self.domain.entry(host)
        e.state = "connected"
        self.world.take_ownership(self.domain, e.ref.host)

    @_op
    def add_host(self, identity: Any, *, datacenter: Any, cluster: Any = None) -> Any:
        if identity.host in self.domain.entries:
            raise RuntimeError(f"DuplicateName: {identity.host}")
        host = self.world.hosts[identity.host]
        return self.domain.register(
            host,
            cluster=getattr(cluster, "name", None),
            datacenter=getattr(datacenter, "name", ""),
        )

    @_op
    def remove_host(self, host: Any) -> None:
        self.domain.entries.pop(host.name, None)

    # distributed switching

    @_op
    def list_distributed_switches(self, *, refresh: bool = False) -> List[Any]:
        return [d.view() for d in self.domain.switches.values()]

    @_op
    def find_distributed_switch(self, name: str) -> Any:
        for d in self.domain.switches.values():
            if d.name == name:
                return d.view()
        return None

    @_op
    def dvs_member(self, dvs: Any, host: Any) -> Any:
        d = self._dvs(dvs)
        pnics = d.members.get(host.name)
        if pnics is None:
            return None
        specs = [NS(pnicDevice=dev, uplinkPortKey=k, uplinkPortgroupKey=d.uplink_pg_key) for dev, k in pnics.items()]
        return NS(config=NS(host=host, backing=NS(pnicSpec=specs)))

    @_op
    def dvs_uplink_ports(self, dvs: Any, *, host: Any = None, uplink_portgroup: Optional[str] = None) -> List[Any]:
        d = self._dvs(dvs)
        if uplink_portgroup and uplink_portgroup not in (d.uplink_pg_key, d.uplink_pg_name):
            return []
        hosts = [host.name] if host is not None else list(d.ports)
        out = []
        for hn in hosts:
            bound = {k: dev for dev, k in d.members.get(hn, {}).items()}
            e = self.domain.entries.get(hn)
            for key, uplink in d.ports.get(hn, []):
                dev = bound.get(key)
                conn = NS(type="pnic", connectedEntity=e.ref if e else None, nicKey=dev) if dev else None
                out.append(NS(key=key, dvsUuid=d.uuid, config=NS(name=uplink), connectee=conn))
        return out

    @_op
    def dvs_add_host(self, dvs: Any, host: Any, pnics: Sequence[Tuple[str, Optional[str]]] = ()) -> None:
        d = self._dvs(dvs)
        h = self._host_of(host)
        if host.name in d.members:
            raise RuntimeError(f"AlreadyExists: {host.name} in {d.name}")
        self.domain.join(d, h)
        if pnics:
            self.domain.set_uplinks(d, h, pnics)

    @_op
    def dvs_set_host_uplinks(self, dvs: Any, host: Any, pnics: Sequence[Tuple[str, Optional[str]]]) -> None:
        d = self._dvs(dvs)
        h = self._host_of(host)
        if host.name not in d.members:
            raise RuntimeError(f"NotFound: {host.name} is not a member of {d.name}")
        self.domain.set_uplinks(d, h, pnics)


class FakeHostClient(_HostOps):
    """Direct ESXi session (HostClient)."""

    def __init__(self, world: FakeWorld, host: FakeHost):
        self.world = world
        self.host = host

    @property
    def server(self) -> str:
        return self.host.name

    def __enter__(self):
        exc = self.host.failures.get("__enter__")
        if exc is not None:
            raise exc
        w = self.world
        w.open_host_sessions += 1
        w.max_host_sessions = max(w.max_host_sessions, w.open_host_sessions)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.world.open_host_sessions -= 1
        return False

    def _hit(self, name: str, args: Tuple[Any, ...]) -> None:
        exc = self.host.failures.get(name)
        if exc is not None:
            raise exc
        if name in MUTATORS:
            self.host.calls.append((name, args[1:]))

    def _host_of(self, ref: Any) -> FakeHost:
        return self.host

    def the_host(self) -> Any:
        return HostRef(name=self.host.name, _moId="ha-host", host=self.host)


# ---------------------------------------------------------------------------
# A ready-made two-vCenter world
# ---------------------------------------------------------------------------

HOST = "esx01.lab.local"
SOURCE = "vc-old.lab.local"
TARGET = "vc-new.lab.local"


def make_host(name: str = HOST) -> FakeHost:
    h = FakeHost(
        name=name,
        pnics=[
            {"device": "vmnic0", "mac": "00:50:56:aa:00:00", "pci": "0000:3b:00.0"},
            {"device": "vmnic1", "mac": "00:50:56:aa:00:01", "pci": "0000:3b:00.1"},
            {"device": "vmnic2", "mac": "00:50:56:aa:00:02", "pci": "0000:5e:00.0"},
        ],
        vswitches={"vSwitch0": {"num_ports": 128, "mtu": 1500, "nics": ["vmnic0"]}},
        portgroups={
            "Management Network": {"switch": "vSwitch0", "vlan": 0},
            "VM Network": {"switch": "vSwitch0", "vlan": 20},
        },
        vnics={
            "vmk0": FakeVnic("vmk0", portgroup="Management Network", ip="10.0.0.11", netmask="255.255.255.0", mac="00:50:56:60:00:01"),
        },
        vnic_services={"vmk0": {"management"}},
        services={
            "TSM-SSH": {"label": "SSH", "running": False, "policy": "off"},
            "ntpd": {"label": "NTP Daemon", "running": True, "policy": "on"},
        },
        rulesets={
            "sshServer": {"enabled": True, "all_ip": False, "ips": ["10.0.0.0/24"]},
            "ntpClient": {"enabled": True, "all_ip": True, "ips": []},
        },
        options={
            "Syslog.global.logHost": "udp://syslog.lab.local:514",
            "Syslog.global.logDir": "[datastore1] logs",
            "UserVars.SuppressShellWarning": 1,
            "Net.TcpipHeapSize": 32,
        },
        ntp=["0.pool.ntp.org", "1.pool.ntp.org"],
        dns={
            "host_name": "esx01",
            "domain_name": "lab.local",
            "dhcp": False,
            "addresses": ["10.0.0.2", "10.0.0.3"],
            "search_domains": ["lab.local"],
        },
        datastores=[
            {"name": "datastore1", "type": "VMFS"},
            {"name": "iso", "type": "NFS", "remote_host": "nas.lab.local", "remote_path": "/export/iso"},
        ],
        lockdown="lockdownNormal",
    )
    return h


def make_world(*, with_dvs: bool = True) -> FakeWorld:
    """
    esx01 managed by vc-old (DSwitch uuid src-dvs, vmnic1 on uplink1, vmk1 on
    DPG-vMotion); vc-new has an empty DSwitch of the same name (uuid tgt-dvs).
    """
    w = FakeWorld()
    host = w.add_host(make_host())
    src = w.add_domain(SOURCE, {"DC-Old": ["Cluster-A"]})
    tgt = w.add_domain(TARGET, {"DC-New": ["Cluster-B"]})
    ref = src.register(host, cluster="Cluster-A", datacenter="DC-Old")

    if with_dvs:
        sdvs = src.add_switch(FakeDvs(name="DSwitch", uuid="src-dvs", portgroups={"DPG-vMotion": "dvportgroup-11"}))
        tgt.add_switch(FakeDvs(name="DSwitch", uuid="tgt-dvs", portgroups={"DPG-vMotion": "dvportgroup-21"}))
        src.join(sdvs, host)
        src.set_uplinks(sdvs, host, [("vmnic1", None)])
        host.vnics["vmk1"] = FakeVnic(
            "vmk1",
            ip="10.0.1.11",
            netmask="255.255.255.0",
            mtu=9000,
            mac="00:50:56:60:00:02",
            dvs_uuid="src-dvs",
            pg_key="dvportgroup-11",
        )
        host.vnic_services["vmk1"] = {"vmotion"}
    assert ref.host is host
    return w


def endpoints(world: FakeWorld) -> Tuple[HostIdentity, DomainEndpoint, DomainEndpoint]:
    return (
        HostIdentity(host=HOST, user="root", password="esx-secret", insecure=True),
        DomainEndpoint(host=SOURCE, user="administrator@vsphere.local", password="vc-secret", insecure=True),
        DomainEndpoint(host=TARGET, user="administrator@vsphere.local", password="vc-secret", insecure=True),
    )
