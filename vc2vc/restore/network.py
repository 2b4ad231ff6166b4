# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vc2vc/restore/network.py

"""
Network half of HostRestore.

Steps run in a fixed order because each one needs the previous to exist:

  standard switches -> port groups -> VMkernel adapters (standard)
  -> distributed switch membership -> uplinks -> VMkernel adapters
  (distributed) -> stale proxy switches -> VMkernel service tags

Reads that a whole step depends on (host network info, the domain's
distributed switch list) are not guarded here: if they fail the step cannot
be evaluated at all and the error propagates to the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple

from ..capture.capture import is_uplink_portgroup, standard_switches_from
from ..core.exceptions import PhaseError
from ..core.logger import Log
from ..network.uplink_resolver import UplinkResolver, match_uplinks
from ..snapshot.model import DistributedSwitchConfig, NetworkConfig, VmkernelAdapter
from .report import RestoreReport

FACET = "network"


def _vnic_ip(v: Any) -> Tuple[str, str, bool]:
    ip = getattr(v.spec, "ip", None)
    return str(getattr(ip, "ipAddress", "") or ""), str(getattr(ip, "subnetMask", "") or ""), bool(getattr(ip, "dhcp", False))


def _vnic_dvport(v: Any) -> Tuple[str, str]:
    dvp = getattr(v.spec, "distributedVirtualPort", None)
    if dvp is None:
        return "", ""
    return str(getattr(dvp, "switchUuid", "") or ""), str(getattr(dvp, "portgroupKey", "") or "")


def _ip_matches(v: Any, want: VmkernelAdapter) -> bool:
    ip, mask, dhcp = _vnic_ip(v)
    if want.dhcp or dhcp:
        return dhcp == want.dhcp
    return (ip, mask) == (want.ip, want.netmask)


class NetworkRestorer:
    def __init__(
        self,
        logger: logging.Logger,
        client: Any,
        report: RestoreReport,
        *,
        resolver: UplinkResolver,
        dry_run: bool = False,
        uplink_portgroup: Optional[str] = None,
        strict: bool = False,
    ):
        self.logger = logger
        self.client = client
        self.report = report
        self.strict = strict
        self.resolver = resolver
        self.dry_run = dry_run
        self.uplink_portgroup = uplink_portgroup
        # snapshot dvSwitch name -> switch object in the connected domain
        self._targets: Dict[str, Any] = {}
        # recorded vmk device -> live device
        self._vmk_devices: Dict[str, str] = {}
        self._host: Any = None

    # ------------------------------------------------------------------

    def _apply(self, item: str, action: str, detail: str, op: Callable[[], Any]) -> bool:
        """
        Run one mutation. Returns True if it succeeded (or was planned). A failure
        is a report warning, or a PhaseError when strict (migration restores).
        """
        if self.dry_run:
            self.report.add_change(FACET, item, action, detail)
            self.logger.info("📝 [dry-run] %s %s %s", action, item, detail)
            return True
        try:
            op()
        except Exception as e:
            msg = f"{FACET}: {action} {item} failed: {e}"
            self.report.warn(msg)
            Log.warn(self.logger, msg)
            self.logger.debug("%s", msg, exc_info=True)
            if self.strict:
                raise PhaseError(msg=msg, cause=e)
            return False
        self.report.add_change(FACET, item, action, detail)
        self.logger.info("🔧 %s %s %s", action, item, detail)
        if self._host is not None:
            self.resolver.forget(self._host)
        return True

    def restore(self, host: Any, desired: NetworkConfig) -> None:
        self._host = host
        self.resolver.forget(host)
        self.restore_standard_switches(host, desired)
        self.restore_port_groups(host, desired)
        self.restore_vmkernel_adapters(host, desired, distributed=False)
        self.restore_distributed_membership(host, desired)
        self.restore_uplinks(host, desired)
        self.restore_vmkernel_adapters(host, desired, distributed=True)
        self.remove_stale_proxy_switches(host, desired)
        self.restore_vmkernel_services(host, desired)

    # ------------------------------------------------------------------
    # Standard switching
    # ------------------------------------------------------------------

    def restore_standard_switches(self, host: Any, desired: NetworkConfig) -> None:
        dvs_names = set(desired.distributed_switch_names())
        info = self.client.host_network_info(host)
        live = {s.name: s for s in standard_switches_from(info)}
        present_nics = {str(p.device) for p in (getattr(info, "pnic", None) or [])}

        for sw in desired.standard_switches:
            item = f"vSwitch {sw.name}"
            if sw.name in dvs_names:
                msg = f"{FACET}: {item} skipped: name belongs to a distributed switch"
                self.report.warn(msg)
                self.report.skip(item)
                Log.warn(self.logger, msg)
                continue
            nics = tuple(n for n in sw.nics if n in present_nics)
            missing = [n for n in sw.nics if n not in present_nics]
            if missing:
                self.report.warn(f"{FACET}: {item}: adapters not present on host: {', '.join(missing)}")
            cur = live.get(sw.name)
            if cur is None:
                self._apply(
                    item,
                    "add",
                    f"mtu={sw.mtu} nics={list(nics)}",
                    lambda: self.client.add_virtual_switch(host, sw.name, num_ports=sw.num_ports, mtu=sw.mtu, nics=nics),
                )
            elif (cur.mtu, cur.num_ports, tuple(cur.nics)) != (sw.mtu, sw.num_ports, nics):
                self._apply(
                    item,
                    "update",
                    f"mtu {cur.mtu}->{sw.mtu} nics {list(cur.nics)}->{list(nics)}",
                    lambda: self.client.update_virtual_switch(host, sw.name, num_ports=sw.num_ports, mtu=sw.mtu, nics=nics),
                )

    def restore_port_groups(self, host: Any, desired: NetworkConfig) -> None:
        dvs_names = set(desired.distributed_switch_names())
        live = {pg.name: pg for sw in standard_switches_from(self.client.host_network_info(host)) for pg in sw.port_groups}
        for sw in desired.standard_switches:
            if sw.name in dvs_names:
                continue
            for pg in sw.port_groups:
                item = f"port group {pg.name}"
                cur = live.get(pg.name)
                if cur is None:
                    self._apply(
                        item,
                        "add",
                        f"on {pg.switch_name} vlan={pg.vlan_id}",
                        lambda: self.client.add_port_group(host, pg.name, pg.switch_name, pg.vlan_id),
                    )
                elif (cur.switch_name, cur.vlan_id) != (pg.switch_name, pg.vlan_id):
                    self._apply(
                        item,
                        "update",
                        f"{cur.switch_name}/vlan {cur.vlan_id} -> {pg.switch_name}/vlan {pg.vlan_id}",
                        lambda: self.client.update_port_group(host, pg.name, pg.switch_name, pg.vlan_id),
                    )

    # ------------------------------------------------------------------
    # VMkernel adapters
    # ------------------------------------------------------------------

    def _live_vnic_for(self, want: VmkernelAdapter, vnics: Sequence[Any], claimed: Set[str], pg_key: str = "") -> Any:
        by_device = {str(v.device): v for v in vnics}
        v = by_device.get(want.device)
        if v is not None and str(v.device) not in claimed:
            return v
        # re-created adapters may have come back under another vmkN
        for v in vnics:
            if str(v.device) in claimed:
                continue
            if want.is_distributed:
                if pg_key and _vnic_dvport(v)[1] == pg_key:
                    return v
            elif str(getattr(v, "portgroup", "") or "") == want.port_group:
                return v
        return None

    def restore_vmkernel_adapters(self, host: Any, desired: NetworkConfig, *, distributed: bool) -> None:
        wanted = [v for v in desired.vmkernel_adapters if v.is_distributed == distributed]
        if not wanted:
            return
        vnics = list(getattr(self.client.host_network_info(host), "vnic", None) or [])
        claimed: Set[str] = set(self._vmk_devices.values())

        for want in wanted:
            item = f"VMkernel adapter {want.device}"
            dvs_uuid: Optional[str] = None
            pg_key: Optional[str] = None
            if distributed:
                target = self._targets.get(want.distributed_switch or "")
                if target is None:
                    msg = f"{FACET}: {item} skipped: distributed switch {want.distributed_switch} not available"
                    self.report.warn(msg)
                    Log.warn(self.logger, msg)
                    continue
                dvs_uuid = str(target.uuid)
                pg_key = self._dvs_portgroup_key(target, want.port_group)
                if pg_key is None:
                    msg = f"{FACET}: {item} skipped: port group {want.port_group} not found on {target.name}"
                    self.report.warn(msg)
                    Log.warn(self.logger, msg)
                    continue

            cur = self._live_vnic_for(want, vnics, claimed, pg_key or "")
            if cur is None:
                added: List[str] = []

                def add() -> None:
                    added.append(
                        self.client.add_vmkernel_adapter(
                            host,
                            port_group=want.port_group,
                            ip=want.ip,
                            netmask=want.netmask,
                            dhcp=want.dhcp,
                            mtu=want.mtu,
                            dvs_uuid=dvs_uuid,
                            portgroup_key=pg_key,
                        )
                    )

                if self._apply(item, "add", f"on {want.port_group} ip={want.ip or 'dhcp'}", add):
                    self._vmk_devices[want.device] = added[0] if added else want.device
                    claimed.add(self._vmk_devices[want.device])
                continue

            device = str(cur.device)
            self._vmk_devices[want.device] = device
            claimed.add(device)

            if distributed:
                placed = _vnic_dvport(cur) == (dvs_uuid, pg_key)
            else:
                placed = not _vnic_dvport(cur)[0] and str(getattr(cur, "portgroup", "") or "") == want.port_group
            same_mtu = int(getattr(cur.spec, "mtu", None) or 1500) == want.mtu
            if placed and same_mtu and _ip_matches(cur, want):
                continue
            self._apply(
                f"VMkernel adapter {device}",
                "update",
                f"on {want.port_group} ip={want.ip or 'dhcp'} mtu={want.mtu}",
                lambda: self.client.update_vmkernel_adapter(
                    host,
                    device,
                    ip=want.ip,
                    netmask=want.netmask,
                    dhcp=want.dhcp,
                    mtu=want.mtu,
                    port_group=None if distributed else want.port_group,
                    dvs_uuid=dvs_uuid,
                    portgroup_key=pg_key,
                ),
            )

    def restore_vmkernel_services(self, host: Any, desired: NetworkConfig) -> None:
        try:
            live = self.client.host_vnic_services(host)
        except Exception as e:
            msg = f"{FACET}: VMkernel service tags unavailable: {e}"
            self.report.warn(msg)
            Log.warn(self.logger, msg)
            return
        for want in desired.vmkernel_adapters:
            device = self._vmk_devices.get(want.device)
            if device is None:
                continue
            have = set(live.get(device, []))
            need = set(want.services)
            for nic_type in sorted(need - have):
                self._apply(f"{nic_type} on {device}", "enable", "", lambda t=nic_type: self.client.select_vnic_service(host, t, device))
            for nic_type in sorted(have - need):
                self._apply(f"{nic_type} on {device}", "disable", "", lambda t=nic_type: self.client.deselect_vnic_service(host, t, device))

    # ------------------------------------------------------------------
    # Distributed switching
    # ------------------------------------------------------------------

    @staticmethod
    def _dvs_portgroup_key(dvs: Any, name: str) -> Optional[str]:
        for pg in getattr(dvs, "portgroup", None) or []:
            if str(pg.name) == name and not is_uplink_portgroup(dvs, pg):
                return str(pg.key)
        return None

    def restore_distributed_membership(self, host: Any, desired: NetworkConfig) -> None:
        if not desired.distributed_switches:
            return
        # switch UUIDs differ between domains: look them up by name
        by_name = {str(d.name): d for d in self.client.list_distributed_switches(refresh=True)}
        joined = {str(ps.dvsUuid) for ps in (getattr(self.client.host_network_info(host), "proxySwitch", None) or [])}

        for d in desired.distributed_switches:
            item = f"dvSwitch {d.name}"
            target = by_name.get(d.name)
            if target is None:
                msg = f"{FACET}: {item} not found in {getattr(self.client, 'server', 'domain')}; its uplinks and adapters are skipped"
                self.report.warn(msg)
                Log.warn(self.logger, msg)
                continue
            self._targets[d.name] = target
            if str(target.uuid) in joined:
                continue
            self._apply(item, "join", f"uuid={target.uuid}", lambda: self.client.dvs_add_host(target, host))

    def _restore_switch_uplinks(self, host: Any, d: DistributedSwitchConfig, target: Any) -> None:
        item = f"uplinks of {d.name}"
        matches = match_uplinks(d.uplinks, self.resolver.physical_adapters(host), self.logger)
        for m in matches:
            if not m.matched:
                self.report.warn(f"{FACET}: {d.name}/{m.binding.uplink_name}: no adapter matches {m.binding.physical_adapter_ref}")
            elif m.low_confidence:
                self.report.warn(
                    f"{FACET}: {d.name}/{m.binding.uplink_name}: low-confidence match {m.adapter.name} "  # type: ignore[union-attr]
                    f"for {m.binding.physical_adapter_ref}"
                )
        wanted = [(m.adapter.name, m.binding.uplink_name) for m in matches if m.adapter is not None]
        if not wanted:
            return

        if self.dry_run and str(target.uuid) not in {
            str(ps.dvsUuid) for ps in (getattr(self.client.host_network_info(host), "proxySwitch", None) or [])
        }:
            # not joined yet: nothing live to compare against
            self.report.add_change(FACET, item, "assign", ", ".join(f"{dev}->{up}" for dev, up in wanted))
            return

        ports = self.client.dvs_uplink_ports(target, host=host, uplink_portgroup=self.uplink_portgroup)
        key_by_name = {str(p.config.name): str(p.key) for p in ports if getattr(p, "config", None) is not None}
        name_by_key = {v: k for k, v in key_by_name.items()}

        desired_pairs = {(dev, up if up in key_by_name else None) for dev, up in wanted}
        member = self.client.dvs_member(target, host)
        backing = getattr(getattr(member, "config", None), "backing", None) if member is not None else None
        pnic_specs = list(getattr(backing, "pnicSpec", None) or [])
        if pnic_specs:
            current_pairs = {(str(s.pnicDevice), name_by_key.get(str(getattr(s, "uplinkPortKey", "") or ""))) for s in pnic_specs}
        else:
            current_pairs = {(a.name, None) for a in self.resolver.resolve(host, target)}
        if current_pairs == desired_pairs:
            return

        assignments = [(dev, key_by_name.get(up)) for dev, up in wanted]
        self._apply(
            item,
            "assign",
            ", ".join(f"{dev}->{up}" for dev, up in wanted),
            lambda: self.client.dvs_set_host_uplinks(target, host, assignments),
        )

    def restore_uplinks(self, host: Any, desired: NetworkConfig) -> None:
        for d in desired.distributed_switches:
            target = self._targets.get(d.name)
            if target is None or not d.uplinks:
                continue
            try:
                self._restore_switch_uplinks(host, d, target)
            except PhaseError:
                # strict mode
                raise
            except Exception as e:
                msg = f"{FACET}: uplinks of {d.name} failed: {e}"
                self.report.warn(msg)
                Log.fail(self.logger, msg)
                self.logger.debug("%s", msg, exc_info=True)

    def remove_stale_proxy_switches(self, host: Any, desired: NetworkConfig) -> None:
        """
        After a domain move the host can keep the old switch's proxy (same
        name, old UUID) while its adapters sit on the new one; drop it once
        nothing is attached.
        """
        if not self._targets:
            return
        info = self.client.host_network_info(host)
        busy = {_vnic_dvport(v)[0] for v in (getattr(info, "vnic", None) or [])}
        for ps in getattr(info, "proxySwitch", None) or []:
            target = self._targets.get(str(ps.dvsName))
            uuid = str(ps.dvsUuid)
            if target is None or uuid == str(target.uuid) or uuid in busy:
                continue
            self._apply(f"proxy switch {ps.dvsName}", "remove", f"stale uuid={uuid}", lambda u=uuid: self.client.remove_proxy_switch(host, u))
