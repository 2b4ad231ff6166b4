# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vc2vc/restore/restore.py

"""
Diff-apply a Snapshot onto a live host.

For every item: read live, compare, mutate only when different. Running the
same Snapshot twice therefore performs no mutation the second time.
Per-item failures land in RestoreReport.warnings and never stop the run;
failures of reads a whole network step depends on escape as PhaseError.
With strict_network (migration) a failed network mutation escapes too.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, Optional, Sequence, Tuple

from ..capture.capture import SYSLOG_DIR_KEY, SYSLOG_HOST_KEY, HostCapture, advanced_value
from ..core.exceptions import PhaseError
from ..core.logger import Log
from ..network.uplink_resolver import UplinkResolver
from ..snapshot.model import FACETS, Snapshot
from .network import NetworkRestorer
from .report import RestoreReport


def normalize_facets(facets: Optional[Iterable[str]]) -> Tuple[str, ...]:
    """Requested facets in canonical (restore) order; None means all."""
    if facets is None:
        return FACETS
    wanted = [f.strip() for f in facets if f and f.strip()]
    unknown = sorted(set(wanted) - set(FACETS))
    if unknown:
        raise ValueError(f"Unknown facet(s) {unknown}; choose from {list(FACETS)}")
    return tuple(f for f in FACETS if f in wanted)


class HostRestore:
    def __init__(
        self,
        logger: logging.Logger,
        client: Any,
        *,
        facets: Optional[Sequence[str]] = None,
        dry_run: bool = False,
        resolver: Optional[UplinkResolver] = None,
        uplink_portgroup: Optional[str] = None,
        strict_network: bool = False,
    ):
        self.logger = logger
        self.client = client
        self.facets = normalize_facets(facets)
        # a failed network mutation aborts the restore instead of becoming a warning
        self.strict_network = bool(strict_network)
        self.dry_run = bool(dry_run)
        self.resolver = resolver or UplinkResolver(logger, client, uplink_portgroup=uplink_portgroup)
        self.uplink_portgroup = uplink_portgroup
        # live reads go through the same readers Capture uses
        self.reader = HostCapture(logger, client, resolver=self.resolver)
        self.report = RestoreReport()

    def restore(self, host: Any, snapshot: Snapshot) -> RestoreReport:
        if isinstance(host, str):
            obj = self.client.find_host(host)
            if obj is None:
                raise PhaseError(msg=f"Host {host!r} not found on {getattr(self.client, 'server', '')}")
            host = obj
        name = self.client.host_name(host) or snapshot.metadata.host_name
        self.report = RestoreReport(host_name=name, dry_run=self.dry_run)
        Log.step(
            self.logger,
            f"Restoring {', '.join(self.facets)} on {name}" + (" (dry run)" if self.dry_run else ""),
            snapshot=snapshot.metadata.captured_at,
        )

        steps: Dict[str, Callable[[Any, Snapshot], None]] = {
            "network": self.restore_network,
            "storage": self.restore_storage,
            "services": self.restore_services,
            "firewall": self.restore_firewall,
            "advanced_settings": self.restore_advanced_settings,
            "time": self.restore_time,
            "dns": self.restore_dns,
            "syslog": self.restore_syslog,
            "power": self.restore_power,
        }
        for facet in self.facets:
            steps[facet](host, snapshot)

        if self.report.is_empty:
            Log.ok(self.logger, f"{name} already matches the snapshot; nothing to do")
        else:
            Log.ok(self.logger, f"Restore of {name}: {self.report.summary()}")
        return self.report

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _read(self, facet: str, read: Callable[[], Any]) -> Any:
        """Live read for a non-network facet; a failure is a warning, not fatal."""
        try:
            return read()
        except Exception as e:
            msg = f"{facet}: cannot read live state: {e}"
            self.report.warn(msg)
            Log.warn(self.logger, msg)
            return None

    def _apply(self, facet: str, item: str, action: str, detail: str, op: Callable[[], Any]) -> None:
        if self.dry_run:
            self.report.add_change(facet, item, action, detail)
            self.logger.info("📝 [dry-run] %s %s %s", action, item, detail)
            return
        try:
            op()
        except Exception as e:
            msg = f"{facet}: {action} {item} failed: {e}"
            self.report.warn(msg)
            Log.warn(self.logger, msg)
            self.logger.debug("%s", msg, exc_info=True)
            return
        self.report.add_change(facet, item, action, detail)
        self.logger.info("🔧 %s %s %s", action, item, detail)

    # ------------------------------------------------------------------
    # facets
    # ------------------------------------------------------------------

    def restore_network(self, host: Any, snapshot: Snapshot) -> None:
        net = NetworkRestorer(
            self.logger,
            self.client,
            self.report,
            resolver=self.resolver,
            dry_run=self.dry_run,
            uplink_portgroup=self.uplink_portgroup,
            strict=self.strict_network,
        )
        try:
            net.restore(host, snapshot.network)
        except Exception as e:
            raise PhaseError(msg=f"network restore on {self.report.host_name} failed: {e}", cause=e)

    def restore_storage(self, host: Any, snapshot: Snapshot) -> None:
        live = self._read("storage", lambda: self.reader.capture_storage(host))
        if live is None:
            return
        present = {d.name for d in live.datastores}
        for ds in snapshot.storage.datastores:
            if ds.name in present:
                continue
            if not ds.is_nfs:
                self.report.skip(f"datastore {ds.name} ({ds.type}) is not recreated")
                continue
            self._apply(
                "storage",
                f"datastore {ds.name}",
                "mount",
                f"{ds.remote_host}:{ds.remote_path}",
                lambda: self.client.mount_nfs_datastore(
                    host,
                    name=ds.name,
                    remote_host=ds.remote_host,
                    remote_path=ds.remote_path,
                    access_mode=ds.access_mode,
                    nfs_type=ds.type.upper(),
                ),
            )
        if snapshot.storage.software_iscsi_enabled and not live.software_iscsi_enabled:
            self._apply("storage", "software iSCSI", "enable", "", lambda: self.client.enable_software_iscsi(host))

    def restore_services(self, host: Any, snapshot: Snapshot) -> None:
        live = self._read("services", lambda: self.reader.capture_services(host))
        if live is None:
            return
        by_key = {s.key: s for s in live}
        for want in snapshot.services:
            cur = by_key.get(want.key)
            if cur is None:
                self.report.skip(f"service {want.key} not present on host")
                continue
            if cur.policy != want.policy:
                self._apply(
                    "services",
                    f"service {want.key}",
                    "policy",
                    f"{cur.policy}->{want.policy}",
                    lambda: self.client.set_service_policy(host, want.key, want.policy),
                )
            if cur.running != want.running:
                if want.running:
                    self._apply("services", f"service {want.key}", "start", "", lambda: self.client.start_service(host, want.key))
                else:
                    self._apply("services", f"service {want.key}", "stop", "", lambda: self.client.stop_service(host, want.key))

    def restore_firewall(self, host: Any, snapshot: Snapshot) -> None:
        live = self._read("firewall", lambda: self.reader.capture_firewall(host))
        if live is None:
            return
        by_key = {r.key: r for r in live}
        for want in snapshot.firewall:
            cur = by_key.get(want.key)
            if cur is None:
                self.report.skip(f"firewall ruleset {want.key} not present on host")
                continue
            if cur.enabled != want.enabled:
                self._apply(
                    "firewall",
                    f"ruleset {want.key}",
                    "enable" if want.enabled else "disable",
                    "",
                    lambda: self.client.set_ruleset_enabled(host, want.key, want.enabled),
                )
            if (cur.allowed_all, sorted(cur.allowed_ips)) != (want.allowed_all, sorted(want.allowed_ips)):
                self._apply(
                    "firewall",
                    f"ruleset {want.key}",
                    "allowed-hosts",
                    "all" if want.allowed_all else ",".join(want.allowed_ips),
                    lambda: self.client.set_ruleset_allowed_ips(
                        host, want.key, allowed_all=want.allowed_all, allowed_ips=want.allowed_ips
                    ),
                )

    def _restore_options(self, facet: str, host: Any, wanted: Sequence[Tuple[str, Any]]) -> None:
        live = self._read(facet, lambda: self.client.host_advanced_settings(host))
        if live is None:
            return
        current = {str(o.key): advanced_value(getattr(o, "value", None)) for o in live}
        for key, value in wanted:
            if key not in current:
                self.report.skip(f"advanced setting {key} not present on host")
                continue
            if current[key] == value and type(current[key]) is type(value):
                continue
            self._apply(
                facet,
                key,
                "set",
                f"{current[key]!r}->{value!r}",
                lambda: self.client.update_advanced_setting(host, key, value),
            )

    def restore_advanced_settings(self, host: Any, snapshot: Snapshot) -> None:
        self._restore_options("advanced_settings", host, [(s.key, s.value) for s in snapshot.advanced_settings])

    def restore_syslog(self, host: Any, snapshot: Snapshot) -> None:
        self._restore_options(
            "syslog",
            host,
            [(SYSLOG_HOST_KEY, snapshot.syslog.log_host), (SYSLOG_DIR_KEY, snapshot.syslog.log_dir)],
        )

    def restore_time(self, host: Any, snapshot: Snapshot) -> None:
        live = self._read("time", lambda: self.reader.capture_time(host))
        if live is None:
            return
        if list(live.ntp_servers) != list(snapshot.time.ntp_servers):
            self._apply(
                "time",
                "NTP servers",
                "set",
                ", ".join(snapshot.time.ntp_servers) or "(none)",
                lambda: self.client.update_ntp_servers(host, snapshot.time.ntp_servers),
            )
        if snapshot.time.timezone and live.timezone != snapshot.time.timezone:
            self.report.skip(f"time zone {snapshot.time.timezone} (host reports {live.timezone}; not settable through the API)")

    def restore_dns(self, host: Any, snapshot: Snapshot) -> None:
        live = self._read("dns", lambda: self.reader.capture_dns(host))
        if live is None:
            return
        want = snapshot.dns
        if live == want:
            return
        self._apply(
            "dns",
            "DNS config",
            "set",
            f"{want.host_name}.{want.domain_name} servers={list(want.addresses)}",
            lambda: self.client.update_dns_config(
                host,
                host_name=want.host_name,
                domain_name=want.domain_name,
                dhcp=want.dhcp,
                addresses=want.addresses,
                search_domains=want.search_domains,
            ),
        )

    def restore_power(self, host: Any, snapshot: Snapshot) -> None:
        want = snapshot.power.policy
        if not want:
            return
        live = self._read("power", lambda: self.reader.capture_power(host))
        if live is None or live.policy == want:
            return
        self._apply("power", "power policy", "set", f"{live.policy}->{want}", lambda: self.client.set_power_policy(host, want))
