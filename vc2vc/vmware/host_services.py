# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vc2vc/vmware/host_services.py

"""
Host services, firewall, advanced options, time, power, storage and lockdown
calls for VMwareClient.
"""

from __future__ import annotations

from typing import Any, List, Sequence, Union

from pyVmomi import VmomiSupport, vim

OptionValue = Union[bool, int, float, str]


class HostServicesMixin:
    """Mixed into VMwareClient; relies on _mutate/_run_task/logger."""

    # ---------------------------------------------------------------------
    # Services
    # ---------------------------------------------------------------------

    def host_services(self, host: Any) -> List[Any]:
        return list(host.configManager.serviceSystem.serviceInfo.service or [])

    def set_service_policy(self, host: Any, key: str, policy: str) -> None:
        ss = host.configManager.serviceSystem
        self._mutate(f"service {key} policy={policy}", lambda: ss.UpdateServicePolicy(id=key, policy=policy))

    def start_service(self, host: Any, key: str) -> None:
        ss = host.configManager.serviceSystem
        self._mutate(f"start service {key}", lambda: ss.StartService(id=key))

    def stop_service(self, host: Any, key: str) -> None:
        ss = host.configManager.serviceSystem
        self._mutate(f"stop service {key}", lambda: ss.StopService(id=key))

    # ---------------------------------------------------------------------
    # Firewall
    # ---------------------------------------------------------------------

    def host_firewall_rulesets(self, host: Any) -> List[Any]:
        return list(host.configManager.firewallSystem.firewallInfo.ruleset or [])

    def set_ruleset_enabled(self, host: Any, key: str, enabled: bool) -> None:
        fw = host.configManager.firewallSystem
        if enabled:
            self._mutate(f"enable ruleset {key}", lambda: fw.EnableRuleset(id=key))
        else:
            self._mutate(f"disable ruleset {key}", lambda: fw.DisableRuleset(id=key))

    def set_ruleset_allowed_ips(self, host: Any, key: str, *, allowed_all: bool, allowed_ips: Sequence[str]) -> None:
        fw = host.configManager.firewallSystem
        addresses = [ip for ip in allowed_ips if "/" not in ip]
        networks = []
        for net in allowed_ips:
            if "/" in net:
                addr, prefix = net.split("/", 1)
                networks.append(vim.host.Ruleset.IpNetwork(network=addr, prefixLength=int(prefix)))
        spec = vim.host.Ruleset.RulesetSpec(
            allowedHosts=vim.host.Ruleset.IpList(allIp=bool(allowed_all), ipAddress=addresses, ipNetwork=networks)
        )
        self._mutate(f"ruleset {key} allowed hosts", lambda: fw.UpdateRuleset(id=key, spec=spec))

    # ---------------------------------------------------------------------
    # Advanced options
    # ---------------------------------------------------------------------

    def host_advanced_settings(self, host: Any) -> List[Any]:
        return list(host.configManager.advancedOption.setting or [])

    def update_advanced_setting(self, host: Any, key: str, value: OptionValue) -> None:
        om = host.configManager.advancedOption
        v: Any = value
        if isinstance(value, int) and not isinstance(value, bool):
            # integer options are declared xsd:long on the host
            v = VmomiSupport.GetVmodlType("long")(value)
        opt = vim.option.OptionValue(key=key, value=v)
        self._mutate(f"advanced setting {key}", lambda: om.UpdateOptions(changedValue=[opt]))

    # ---------------------------------------------------------------------
    # Time / power
    # ---------------------------------------------------------------------

    def host_datetime_info(self, host: Any) -> Any:
        return host.configManager.dateTimeSystem.dateTimeInfo

    def update_ntp_servers(self, host: Any, servers: Sequence[str]) -> None:
        dts = host.configManager.dateTimeSystem
        cfg = vim.host.DateTimeConfig(ntpConfig=vim.host.NtpConfig(server=list(servers)))
        self._mutate("update NTP servers", lambda: dts.UpdateDateTimeConfig(config=cfg))

    def host_power_info(self, host: Any) -> Any:
        return host.config.powerSystemInfo

    def set_power_policy(self, host: Any, short_name: str) -> None:
        available = list(getattr(host.config.powerSystemCapability, "availablePolicy", None) or [])
        match = [p for p in available if str(p.shortName) == short_name]
        if not match:
            raise ValueError(f"power policy {short_name!r} not offered by host (have: {[p.shortName for p in available]})")
        ps = host.configManager.powerSystem
        self._mutate(f"power policy {short_name}", lambda: ps.ConfigurePowerPolicy(key=match[0].key))

    # ---------------------------------------------------------------------
    # Storage
    # ---------------------------------------------------------------------

    def host_datastores(self, host: Any) -> List[Any]:
        return list(host.datastore or [])

    def mount_nfs_datastore(
        self,
        host: Any,
        *,
        name: str,
        remote_host: str,
        remote_path: str,
        access_mode: str = "readWrite",
        nfs_type: str = "NFS",
    ) -> None:
        dss = host.configManager.datastoreSystem
        spec = vim.host.NasVolume.Specification(
            remoteHost=remote_host,
            remotePath=remote_path,
            localPath=name,
            accessMode=access_mode,
            type=nfs_type,
        )
        self._mutate(f"mount NFS datastore {name}", lambda: dss.CreateNasDatastore(spec=spec))

    def host_storage_adapters(self, host: Any) -> List[Any]:
        return list(host.config.storageDevice.hostBusAdapter or [])

    def software_iscsi_enabled(self, host: Any) -> bool:
        return bool(host.config.storageDevice.softwareInternetScsiEnabled)

    def enable_software_iscsi(self, host: Any) -> None:
        ss = host.configManager.storageSystem
        self._mutate("enable software iSCSI", lambda: ss.UpdateSoftwareInternetScsiEnabled(enabled=True))

    # ---------------------------------------------------------------------
    # Lockdown
    # ---------------------------------------------------------------------

    def host_lockdown_mode(self, host: Any) -> str:
        """
        lockdownDisabled / lockdownNormal / lockdownStrict. Hosts without a
        host access manager only know adminDisabled (normal or disabled).
        """
        ham = getattr(host.configManager, "hostAccessManager", None)
        if ham is not None:
            return str(ham.lockdownMode)
        return "lockdownNormal" if bool(host.config.adminDisabled) else "lockdownDisabled"

    def change_lockdown_mode(self, host: Any, mode: str) -> None:
        ham = getattr(host.configManager, "hostAccessManager", None)
        if ham is not None:
            self._mutate(f"lockdown mode {mode}", lambda: ham.ChangeLockdownMode(mode=mode))
            return
        if mode == "lockdownStrict":
            raise ValueError("strict lockdown needs a host access manager")
        if mode == "lockdownNormal":
            self._mutate("enter lockdown mode", host.EnterLockdownMode)
        else:
            self._mutate("exit lockdown mode", host.ExitLockdownMode)
