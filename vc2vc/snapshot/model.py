# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vc2vc/snapshot/model.py
"""
Typed host configuration snapshot.

Every facet is a frozen dataclass holding tuples, so a captured Snapshot can
be passed around without defensive copies. Deserialization is strict:
unknown keys, missing required keys and wrongly typed scalars are rejected
with SnapshotFormatError instead of being silently defaulted.
"""
from __future__ import annotations

import dataclasses
import typing
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Type, TypeVar, Union

from ..core.exceptions import SnapshotFormatError

SCHEMA_VERSION = 1

AdvancedValue = Union[bool, int, float, str]

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HostInfo:
    version: str = ""
    build: str = ""
    vendor: str = ""
    model: str = ""
    cpu_cores: int = 0
    cpu_mhz: int = 0
    memory_gb: float = 0.0
    connection_state: str = ""
    power_state: str = ""


@dataclass(frozen=True)
class SnapshotMetadata:
    captured_at: str
    tool_version: str
    host_name: str
    source_domain: str
    captured_by: str = ""
    host_info: HostInfo = field(default_factory=HostInfo)


# ---------------------------------------------------------------------------
# Network
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PhysicalAdapter:
    name: str
    mac: str = ""
    pci: str = ""
    driver: str = ""
    link_speed_mb: int = 0


@dataclass(frozen=True)
class PortGroup:
    name: str
    switch_name: str
    vlan_id: int = 0
    key: str = ""


@dataclass(frozen=True)
class StandardSwitchConfig:
    name: str
    num_ports: int = 0
    mtu: int = 1500
    nics: Tuple[str, ...] = ()
    port_groups: Tuple[PortGroup, ...] = ()


@dataclass(frozen=True)
class UplinkBinding:
    uplink_name: str
    # lookup key into NetworkConfig.physical_adapters, never an owning reference
    physical_adapter_ref: str
    mac_address: str = ""
    pci_address: str = ""


@dataclass(frozen=True)
class DistributedSwitchConfig:
    name: str
    uuid: str = ""
    mtu: int = 1500
    port_groups: Tuple[PortGroup, ...] = ()
    uplinks: Tuple[UplinkBinding, ...] = ()


@dataclass(frozen=True)
class VmkernelAdapter:
    device: str
    port_group: str
    distributed_switch: Optional[str] = None
    ip: str = ""
    netmask: str = ""
    dhcp: bool = False
    mtu: int = 1500
    mac: str = ""
    services: Tuple[str, ...] = ()

    @property
    def is_distributed(self) -> bool:
        return bool(self.distributed_switch)


@dataclass(frozen=True)
class NetworkConfig:
    vmkernel_adapters: Tuple[VmkernelAdapter, ...] = ()
    physical_adapters: Tuple[PhysicalAdapter, ...] = ()
    standard_switches: Tuple[StandardSwitchConfig, ...] = ()
    distributed_switches: Tuple[DistributedSwitchConfig, ...] = ()

    def adapter(self, name: str) -> Optional[PhysicalAdapter]:
        for a in self.physical_adapters:
            if a.name == name:
                return a
        return None

    def distributed_switch_names(self) -> Tuple[str, ...]:
        return tuple(d.name for d in self.distributed_switches)


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Datastore:
    name: str
    type: str = ""
    capacity_gb: float = 0.0
    free_gb: float = 0.0
    accessible: bool = True
    url: str = ""
    remote_host: str = ""
    remote_path: str = ""
    access_mode: str = "readWrite"

    @property
    def is_nfs(self) -> bool:
        return self.type.upper() in ("NFS", "NFS41")


@dataclass(frozen=True)
class StorageAdapter:
    device: str
    type: str = ""
    model: str = ""
    driver: str = ""
    status: str = ""


@dataclass(frozen=True)
class StorageConfig:
    datastores: Tuple[Datastore, ...] = ()
    adapters: Tuple[StorageAdapter, ...] = ()
    software_iscsi_enabled: bool = False


# ---------------------------------------------------------------------------
# Host services and settings
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ServiceConfig:
    key: str
    label: str = ""
    running: bool = False
    policy: str = "off"
    required: bool = False


@dataclass(frozen=True)
class FirewallRuleset:
    key: str
    label: str = ""
    enabled: bool = False
    allowed_all: bool = True
    allowed_ips: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AdvancedSetting:
    key: str
    value: AdvancedValue


@dataclass(frozen=True)
class TimeConfig:
    ntp_servers: Tuple[str, ...] = ()
    timezone: str = ""


@dataclass(frozen=True)
class DnsConfig:
    host_name: str = ""
    domain_name: str = ""
    dhcp: bool = False
    addresses: Tuple[str, ...] = ()
    search_domains: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SyslogConfig:
    log_host: str = ""
    log_dir: str = ""


@dataclass(frozen=True)
class PowerConfig:
    policy: str = ""


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------

FACETS: Tuple[str, ...] = (
    "network",
    "storage",
    "services",
    "firewall",
    "advanced_settings",
    "time",
    "dns",
    "syslog",
    "power",
)


@dataclass(frozen=True)
class Snapshot:
    metadata: SnapshotMetadata
    network: NetworkConfig = field(default_factory=NetworkConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    services: Tuple[ServiceConfig, ...] = ()
    firewall: Tuple[FirewallRuleset, ...] = ()
    advanced_settings: Tuple[AdvancedSetting, ...] = ()
    time: TimeConfig = field(default_factory=TimeConfig)
    dns: DnsConfig = field(default_factory=DnsConfig)
    syslog: SyslogConfig = field(default_factory=SyslogConfig)
    power: PowerConfig = field(default_factory=PowerConfig)
    schema_version: int = SCHEMA_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return _to_plain(self)

    @classmethod
    def from_dict(cls, data: Any) -> "Snapshot":
        if not isinstance(data, dict):
            raise SnapshotFormatError(msg="snapshot: top-level JSON must be an object")
        version = data.get("schema_version", SCHEMA_VERSION)
        if version != SCHEMA_VERSION:
            raise SnapshotFormatError(
                msg=f"snapshot: unsupported schema_version {version!r} (expected {SCHEMA_VERSION})"
            )
        return _from_dict(cls, data, "snapshot")

    def facet(self, name: str) -> Any:
        if name not in FACETS:
            raise KeyError(name)
        return getattr(self, name)


# ---------------------------------------------------------------------------
# (de)serialization helpers
# ---------------------------------------------------------------------------

def _to_plain(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj):
        return {f.name: _to_plain(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
    if isinstance(obj, (tuple, list)):
        return [_to_plain(x) for x in obj]
    return obj


_HINTS_CACHE: Dict[type, Dict[str, Any]] = {}


def _hints(cls: type) -> Dict[str, Any]:
    h = _HINTS_CACHE.get(cls)
    if h is None:
        h = typing.get_type_hints(cls)
        _HINTS_CACHE[cls] = h
    return h


def _fail(path: str, why: str) -> SnapshotFormatError:
    return SnapshotFormatError(msg=f"snapshot: {path}: {why}")


def _convert(tp: Any, value: Any, path: str) -> Any:
    origin = typing.get_origin(tp)
    args = typing.get_args(tp)

    if dataclasses.is_dataclass(tp):
        return _from_dict(tp, value, path)

    if origin is tuple:
        if not isinstance(value, (list, tuple)):
            raise _fail(path, f"expected a list, got {type(value).__name__}")
        item_tp = args[0]
        return tuple(_convert(item_tp, v, f"{path}[{i}]") for i, v in enumerate(value))

    if origin is Union:
        if value is None:
            if type(None) in args:
                return None
            raise _fail(path, "must not be null")
        for a in args:
            if a is type(None):
                continue
            try:
                return _convert(a, value, path)
            except SnapshotFormatError:
                continue
        raise _fail(path, f"unexpected value {value!r}")

    if tp is bool:
        if isinstance(value, bool):
            return value
        raise _fail(path, f"expected bool, got {type(value).__name__}")
    if tp is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        raise _fail(path, f"expected int, got {type(value).__name__}")
    if tp is float:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        raise _fail(path, f"expected number, got {type(value).__name__}")
    if tp is str:
        if isinstance(value, str):
            return value
        raise _fail(path, f"expected string, got {type(value).__name__}")

    raise _fail(path, f"unsupported field type {tp!r}")


def _from_dict(cls: Type[T], data: Any, path: str) -> T:
    if not isinstance(data, dict):
        raise _fail(path, f"expected an object, got {type(data).__name__}")

    fields = {f.name: f for f in dataclasses.fields(cls)}  # type: ignore[arg-type]
    unknown = sorted(set(data) - set(fields))
    if unknown:
        raise _fail(path, f"unknown key(s) {unknown}")

    hints = _hints(cls)
    kwargs: Dict[str, Any] = {}
    for name, f in fields.items():
        if name not in data:
            if f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:  # type: ignore[misc]
                raise _fail(path, f"missing required key {name!r}")
            continue
        kwargs[name] = _convert(hints[name], data[name], f"{path}.{name}")
    return cls(**kwargs)  # type: ignore[call-arg]
