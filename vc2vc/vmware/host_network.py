# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vc2vc/vmware/host_network.py

"""
Host networking calls for VMwareClient: standard switches, port groups,
VMkernel adapters, distributed-switch membership and proxy switches.

Reads return pyVmomi objects as-is (callers duck-type them); mutations take
plain values and build the vim specs here so nothing above this layer needs
to know vim constructors.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

from pyVmomi import vim

from .vmware_utils import same_managed_object

# (pnic device, uplink port key or None)
PnicAssignment = Tuple[str, Optional[str]]


def _network_system(host: Any) -> Any:
    return host.configManager.networkSystem


def _vswitch_spec(num_ports: int, mtu: int, nics: Sequence[str]) -> Any:
    spec = vim.host.VirtualSwitch.Specification()
    spec.numPorts = int(num_ports)
    spec.mtu = int(mtu)
    if nics:
        spec.bridge = vim.host.VirtualSwitch.BondBridge(nicDevice=list(nics))
    return spec


def _portgroup_spec(name: str, switch_name: str, vlan_id: int) -> Any:
    return vim.host.PortGroup.Specification(
        name=name,
        vswitchName=switch_name,
        vlanId=int(vlan_id),
        policy=vim.host.NetworkPolicy(),
    )


def _vnic_spec(
    *,
    ip: str,
    netmask: str,
    dhcp: bool,
    mtu: int,
    mac: str = "",
    dvs_uuid: Optional[str] = None,
    portgroup_key: Optional[str] = None,
) -> Any:
    spec = vim.host.VirtualNic.Specification()
    spec.ip = vim.host.IpConfig(dhcp=bool(dhcp))
    if not dhcp:
        spec.ip.ipAddress = ip
        spec.ip.subnetMask = netmask
    spec.mtu = int(mtu)
    if mac:
        spec.mac = mac
    if dvs_uuid:
        spec.distributedVirtualPort = vim.dvs.PortConnection(switchUuid=dvs_uuid, portgroupKey=portgroup_key)
    return spec


def _pnic_backing(pnics: Sequence[PnicAssignment], uplink_portgroup_key: Optional[str]) -> Any:
    specs = []
    for device, port_key in pnics:
        s = vim.dvs.HostMember.PnicSpec(pnicDevice=device)
        if port_key:
            s.uplinkPortKey = port_key
        if uplink_portgroup_key:
            s.uplinkPortgroupKey = uplink_portgroup_key
        specs.append(s)
    return vim.dvs.HostMember.PnicBacking(pnicSpec=specs)


class HostNetworkMixin:
    """Mixed into VMwareClient; relies on _mutate/_run_task/_view/logger."""

    # ---------------------------------------------------------------------
    # Reads
    # ---------------------------------------------------------------------

    def host_network_info(self, host: Any) -> Any:
        return _network_system(host).networkInfo

    def host_network_config(self, host: Any) -> Any:
        """host.config.network: the inventory view of the host's networking."""
        return host.config.network

    def host_vnic_services(self, host: Any) -> Dict[str, List[str]]:
        """device -> selected nic types (management, vmotion, vsan, ...)."""
        out: Dict[str, List[str]] = {}
        info = host.configManager.virtualNicManager.info
        for nc in getattr(info, "netConfig", None) or []:
            by_key = {str(v.key): str(v.device) for v in (getattr(nc, "candidateVnic", None) or [])}
            for key in getattr(nc, "selectedVnic", None) or []:
                dev = by_key.get(str(key))
                if not dev:
                    # selectedVnic keys end with the device name
                    dev = str(key).rsplit("-", 1)[-1]
                out.setdefault(dev, []).append(str(nc.nicType))
        return out

    # ---------------------------------------------------------------------
    # Standard switches / port groups
    # ---------------------------------------------------------------------

    def add_virtual_switch(self, host: Any, name: str, *, num_ports: int, mtu: int, nics: Sequence[str] = ()) -> None:
        ns = _network_system(host)
        self._mutate(f"add vSwitch {name}", lambda: ns.AddVirtualSwitch(vswitchName=name, spec=_vswitch_spec(num_ports, mtu, nics)))

    def update_virtual_switch(self, host: Any, name: str, *, num_ports: int, mtu: int, nics: Sequence[str] = ()) -> None:
        ns = _network_system(host)
        self._mutate(f"update vSwitch {name}", lambda: ns.UpdateVirtualSwitch(vswitchName=name, spec=_vswitch_spec(num_ports, mtu, nics)))

    def add_port_group(self, host: Any, name: str, switch_name: str, vlan_id: int = 0) -> None:
        ns = _network_system(host)
        self._mutate(f"add port group {name}", lambda: ns.AddPortGroup(portgrp=_portgroup_spec(name, switch_name, vlan_id)))

    def update_port_group(self, host: Any, name: str, switch_name: str, vlan_id: int = 0) -> None:
        ns = _network_system(host)
        self._mutate(
            f"update port group {name}",
            lambda: ns.UpdatePortGroup(pgName=name, portgrp=_portgroup_spec(name, switch_name, vlan_id)),
        )

    # ---------------------------------------------------------------------
    # VMkernel adapters
    # ---------------------------------------------------------------------

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
        """Returns the new device name (vmkN)."""
        ns = _network_system(host)
        spec = _vnic_spec(ip=ip, netmask=netmask, dhcp=dhcp, mtu=mtu, dvs_uuid=dvs_uuid, portgroup_key=portgroup_key)
        pg = "" if dvs_uuid else port_group
        return str(self._mutate(f"add VMkernel adapter on {port_group}", lambda: ns.AddVirtualNic(portgroup=pg, nic=spec)))

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
        ns = _network_system(host)
        spec = _vnic_spec(ip=ip, netmask=netmask, dhcp=dhcp, mtu=mtu, dvs_uuid=dvs_uuid, portgroup_key=portgroup_key)
        if port_group and not dvs_uuid:
            spec.portgroup = port_group
        self._mutate(f"update VMkernel adapter {device}", lambda: ns.UpdateVirtualNic(device=device, nic=spec))

    def select_vnic_service(self, host: Any, nic_type: str, device: str) -> None:
        vnm = host.configManager.virtualNicManager
        self._mutate(f"enable {nic_type} on {device}", lambda: vnm.SelectVnicForNicType(nicType=nic_type, device=device))

    def deselect_vnic_service(self, host: Any, nic_type: str, device: str) -> None:
        vnm = host.configManager.virtualNicManager
        self._mutate(f"disable {nic_type} on {device}", lambda: vnm.DeselectVnicForNicType(nicType=nic_type, device=device))

    # ---------------------------------------------------------------------
    # Distributed switches
    # ---------------------------------------------------------------------

    def list_distributed_switches(self, *, refresh: bool = False) -> List[Any]:
        if refresh or self._dvs_cache is None:
            self._dvs_cache = self._view(vim.DistributedVirtualSwitch)
        return list(self._dvs_cache)

    def find_distributed_switch(self, name: str) -> Any:
        for dvs in self.list_distributed_switches():
            if str(getattr(dvs, "name", "")) == name:
                return dvs
        return None

    def dvs_member(self, dvs: Any, host: Any) -> Any:
        """dvs.config.host[] entry for this host, or None."""
        for m in getattr(dvs.config, "host", None) or []:
            if same_managed_object(getattr(m.config, "host", None), host):
                return m
        return None

    def dvs_uplink_ports(self, dvs: Any, *, host: Any = None, uplink_portgroup: Optional[str] = None) -> List[Any]:
        """
        Uplink DV ports of the switch. uplink_portgroup restricts the fetch
        to one uplink port group (by name or key).
        """
        criteria = vim.dvs.PortCriteria(uplinkPort=True)
        if host is not None:
            criteria.host = [host]
        if uplink_portgroup:
            keys = [
                str(pg.key)
                for pg in (getattr(dvs.config, "uplinkPortgroup", None) or [])
                if uplink_portgroup in (str(pg.key), str(getattr(pg, "name", "")))
            ]
            criteria.portgroupKey = keys or [uplink_portgroup]
        return list(dvs.FetchDVPorts(criteria) or [])

    def _reconfigure_host_member(self, dvs: Any, host: Any, pnics: Sequence[PnicAssignment], what: str) -> None:
        uplink_pgs = list(getattr(dvs.config, "uplinkPortgroup", None) or [])
        uplink_pg_key = str(uplink_pgs[0].key) if uplink_pgs else None
        member = vim.dvs.HostMember.ConfigSpec(
            operation="edit" if self.dvs_member(dvs, host) is not None else "add",
            host=host,
            backing=_pnic_backing(pnics, uplink_pg_key),
        )

        def start() -> Any:
            spec = vim.DistributedVirtualSwitch.ConfigSpec(configVersion=dvs.config.configVersion, host=[member])
            return dvs.ReconfigureDvs_Task(spec=spec)

        self._run_task(f"{what} on {dvs.name}", start)
        self._dvs_cache = None

    def dvs_add_host(self, dvs: Any, host: Any, pnics: Sequence[PnicAssignment] = ()) -> None:
        self._reconfigure_host_member(dvs, host, pnics, "join host")

    def dvs_set_host_uplinks(self, dvs: Any, host: Any, pnics: Sequence[PnicAssignment]) -> None:
        self._reconfigure_host_member(dvs, host, pnics, "assign uplinks")

    def remove_proxy_switch(self, host: Any, dvs_uuid: str) -> None:
        """Drop a host-side proxy switch (orphaned distributed switch config)."""
        ns = _network_system(host)
        cfg = vim.host.NetworkConfig(
            proxySwitch=[vim.host.HostProxySwitch.Config(changeOperation="remove", uuid=dvs_uuid)]
        )
        self._mutate(f"remove proxy switch {dvs_uuid}", lambda: ns.UpdateNetworkConfig(config=cfg, changeMode="modify"))

    # ---------------------------------------------------------------------
    # DNS (lives on the network system)
    # ---------------------------------------------------------------------

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
        ns = _network_system(host)
        cfg = vim.host.DnsConfig(
            hostName=host_name,
            domainName=domain_name,
            dhcp=bool(dhcp),
            address=list(addresses),
            searchDomain=list(search_domains),
        )
        self._mutate("update DNS config", lambda: ns.UpdateDnsConfig(config=cfg))
