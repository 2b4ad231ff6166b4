# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vc2vc/orchestrator/migration.py

"""
Move one ESXi host from a source vCenter to a target vCenter.

  1 preflight         host resolvable, in maintenance mode, target location exists
  2 lockdown          remember the original mode, disable it
  3 backup            capture + persist the rollback anchor
  4 disconnect        leave the source; clean orphaned proxy switches on the host
  5 connect           register in the target (or reuse / reconnect an entry)
  6 restore           re-apply the snapshot to the new host object
  7 lockdown restore  put the original mode back
  8 completed         delete the rollback anchor (never a regular backup)

Step 4 refuses to start unless the anchor is on disk. A failure from step 4
on, the disconnect call itself included, triggers Rollback in a finally
block; rollback problems are logged, and the original error is what the
caller sees. Network changes that fail during step 6 are errors, not
warnings.
Only one vCenter session and one direct host session are open at a time.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple

from ..capture.capture import HostCapture
from ..core.exceptions import PhaseError, PreconditionError, Vc2VcError
from ..core.logger import Log
from ..core.retry import RetryPolicy
from ..core.utils import U
from ..lockdown.lockdown import LockdownController, LockdownMode
from ..network.cache import ResolverCache
from ..network.uplink_resolver import UplinkResolver
from ..restore.report import RestoreReport
from ..restore.restore import HostRestore
from ..snapshot.model import Snapshot
from ..snapshot.store import SnapshotStore
from ..vmware.clients.client import VMwareClient
from ..vmware.clients.host_client import HostClient
from ..vmware.identity import DomainEndpoint, Endpoint, HostIdentity
from .rollback import Rollback
from .state import MigrationState, MigrationTracker, Transition

ClientFactory = Callable[[Endpoint], Any]
HostClientFactory = Callable[[HostIdentity], Any]


@dataclass(frozen=True)
class MigrationPlan:
    host: HostIdentity
    source: DomainEndpoint
    target: DomainEndpoint
    target_datacenter: str
    backup_dir: Path
    target_cluster: Optional[str] = None
    timeout_s: float = 300.0
    poll_s: float = 5.0
    settle_s: float = 10.0
    remove_from_source: bool = False
    uplink_portgroup: Optional[str] = None


@dataclass
class MigrationResult:
    host_name: str
    state: MigrationState = MigrationState.NOT_STARTED
    history: List[Transition] = field(default_factory=list)
    restore_report: Optional[RestoreReport] = None
    rollback_report: Optional[RestoreReport] = None
    original_lockdown: Optional[LockdownMode] = None
    final_lockdown: Optional[LockdownMode] = None
    snapshot_path: Optional[Path] = None
    resumed: bool = False
    warnings: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.state == MigrationState.COMPLETED


class MigrationOrchestrator:
    def __init__(
        self,
        logger: logging.Logger,
        plan: MigrationPlan,
        *,
        client_factory: Optional[ClientFactory] = None,
        host_client_factory: Optional[HostClientFactory] = None,
        lockdown: Optional[LockdownController] = None,
        retry: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.logger = logger
        self.plan = plan
        self.retry = retry or RetryPolicy()
        self._client_factory = client_factory or self._default_client
        self._host_client_factory = host_client_factory or self._default_host_client
        self.lockdown = lockdown or LockdownController(logger, client_factory=self._host_client_factory)
        self.sleep = sleep
        self.clock = clock or time.monotonic
        self.store = SnapshotStore(logger, plan.backup_dir)
        self.cache = ResolverCache()
        self.tracker = MigrationTracker()
        self.result = MigrationResult(host_name=plan.host.host)
        self.snapshot: Optional[Snapshot] = None
        self._resume = False
        self._lockdown_changed = False
        # false when the anchor is a regular backup that must outlive the run
        self._anchor_disposable = True

    # ------------------------------------------------------------------
    # sessions
    # ------------------------------------------------------------------

    def _default_client(self, ep: Endpoint) -> VMwareClient:
        return VMwareClient.from_endpoint(self.logger, ep, timeout=self.plan.timeout_s, retry=self.retry)

    def _default_host_client(self, identity: HostIdentity) -> HostClient:
        return HostClient.for_identity(self.logger, identity, timeout=self.plan.timeout_s, retry=self.retry)

    def _source(self) -> Any:
        return self._client_factory(self.plan.source)

    def _target(self) -> Any:
        return self._client_factory(self.plan.target)

    def _advance(self, to: MigrationState, note: str = "") -> None:
        self.tracker.advance(to, note)
        self.logger.info("📍 %s%s", to, f" ({note})" if note else "")

    # ------------------------------------------------------------------
    # entry point
    # ------------------------------------------------------------------

    def run(self) -> MigrationResult:
        """
        Run every step. Returns the result on success; on failure re-raises
        the original error after compensation (self.result stays readable).
        """
        p = self.plan
        Log.banner(self.logger, f"MIGRATE {p.host.host}: {p.source.host} -> {p.target.host}")
        error: Optional[BaseException] = None
        try:
            self.preflight()
            self.handle_lockdown()
            self.backup()
            self.disconnect_from_source()
            self.clean_orphans()
            self.connect_and_restore()
            self.restore_lockdown()
            self.complete()
            return self.result
        except BaseException as e:
            error = e
            raise
        finally:
            if error is not None:
                self._on_failure(error)
            self.result.state = self.tracker.state
            self.result.history = list(self.tracker.history)

    def _on_failure(self, error: BaseException) -> None:
        self.result.error = str(error) or type(error).__name__
        if isinstance(error, Vc2VcError):
            error.with_context(migration_state=str(self.tracker.state))
        Log.fail(self.logger, f"Migration of {self.plan.host.host} failed in {self.tracker.state}: {error}")

        if self.tracker.past_point_of_no_return:
            self._rollback()
        elif self._lockdown_changed and self.result.original_lockdown is not None:
            # nothing else was touched yet
            self.lockdown.set_mode(self.plan.host, self.result.original_lockdown)
        try:
            self.tracker.fail(self.result.error)
        except Exception as e:
            self.logger.error("State tracker refused the failure transition: %s", e)

    def _rollback(self) -> None:
        if self.snapshot is None:
            Log.fail(self.logger, "No pre-migration snapshot in memory; rollback skipped")
            return
        rb = Rollback(self.logger, uplink_portgroup=self.plan.uplink_portgroup)
        try:
            with self._source() as src:
                self.result.rollback_report = rb.run_safely(src, self.plan.host, self.snapshot)
        except Exception as e:
            Log.fail(self.logger, f"Rollback could not reach {self.plan.source.host}: {e}")
            self.logger.debug("rollback session failure", exc_info=True)
        if self._lockdown_changed and self.result.original_lockdown is not None:
            self.lockdown.set_mode(self.plan.host, self.result.original_lockdown)
        if self.tracker.snapshot_path is not None:
            self.logger.info("Pre-migration snapshot kept: %s", self.tracker.snapshot_path)

    # ------------------------------------------------------------------
    # 1. preflight
    # ------------------------------------------------------------------

    def preflight(self) -> None:
        p = self.plan
        Log.step(self.logger, "Preflight checks")
        if not p.host.has_creds():
            raise PreconditionError(msg="direct host credentials are required for migration")

        try:
            U.check_writable_dir(Path(p.backup_dir))
        except OSError as e:
            raise PreconditionError(msg=f"backup directory {p.backup_dir} is not writable: {e}", cause=e)

        with self._source() as src:
            host = src.find_host(p.host.host)
            src_managed = host is not None and src.host_is_managed(host)
            src_maint = bool(host is not None and src_managed and src.host_in_maintenance(host))

        with self._target() as tgt:
            dc = tgt.get_datacenter_by_name(p.target_datacenter)
            if dc is None:
                raise PreconditionError(msg=f"datacenter {p.target_datacenter!r} not found on {p.target.host}")
            if p.target_cluster and tgt.find_cluster(dc, p.target_cluster) is None:
                raise PreconditionError(msg=f"cluster {p.target_cluster!r} not found in {p.target_datacenter}")
            existing = tgt.find_host(p.host.host)
            tgt_managed = existing is not None and tgt.host_is_managed(existing)
            tgt_maint = bool(tgt_managed and tgt.host_in_maintenance(existing))

        if tgt_managed and not src_managed:
            if not tgt_maint:
                raise PreconditionError(msg=f"{p.host.host} is in {p.target.host} but not in maintenance mode")
            self._resume = True
            self.result.resumed = True
            Log.warn(self.logger, f"{p.host.host} is already managed by {p.target.host}; resuming at restore")
        elif host is None:
            raise PreconditionError(msg=f"host {p.host.host} not found in {p.source.host}")
        elif not src_managed:
            raise PreconditionError(msg=f"host {p.host.host} is not connected to {p.source.host}")
        elif not src_maint:
            raise PreconditionError(
                msg=f"host {p.host.host} is not in maintenance mode; enter maintenance mode and retry",
            )
        self._advance(MigrationState.PREFLIGHT_VALIDATED, "resume" if self._resume else "")

    # ------------------------------------------------------------------
    # 2. lockdown
    # ------------------------------------------------------------------

    def handle_lockdown(self) -> None:
        Log.step(self.logger, "Lockdown mode")
        mode = self.lockdown.get_mode(self.plan.host)
        self.result.original_lockdown = mode
        if mode != LockdownMode.DISABLED:
            if not self.lockdown.set_mode(self.plan.host, LockdownMode.DISABLED):
                raise PreconditionError(msg=f"cannot disable lockdown mode ({mode.label}) on {self.plan.host.host}")
            self._lockdown_changed = True
        self._advance(MigrationState.LOCKDOWN_HANDLED, f"original={mode.label}")

    # ------------------------------------------------------------------
    # 3. backup
    # ------------------------------------------------------------------

    def backup(self) -> None:
        if self._resume:
            path, note = self._resume_anchor()
        else:
            Log.step(self.logger, "Pre-migration backup")
            with self._source() as src:
                self.snapshot = self._capture(src)
            path = self.store.save(self.snapshot, self.store.path_for(self.snapshot, premigration=True))
            note = path.name
        self.tracker.snapshot_persisted(path)
        self.result.snapshot_path = path
        self._advance(MigrationState.PRE_MIGRATION_BACKED_UP, note)

    def _capture(self, client: Any) -> Snapshot:
        cap = HostCapture(
            self.logger,
            client,
            resolver=UplinkResolver(self.logger, client, cache=self.cache, uplink_portgroup=self.plan.uplink_portgroup),
        )
        snapshot = cap.capture(self.plan.host.host)
        self.result.warnings.extend(cap.warnings)
        return snapshot

    def _resume_anchor(self) -> Tuple[Path, str]:
        """
        Snapshot for a host the target already manages, in order of preference:
        the pre-migration file of an interrupted run, the newest regular
        backup, or a fresh capture from the target when the host's network no
        longer references switches of another domain (a completed migration).
        """
        p = self.plan
        path = self.store.latest_for(p.host.host, premigration=True)
        if path is not None:
            self.snapshot = self.store.load(path)
            return path, f"reused {path.name}"

        path = self.store.latest_for(p.host.host)
        if path is not None:
            self.snapshot = self.store.load(path)
            self._anchor_disposable = False
            Log.warn(self.logger, f"No pre-migration snapshot for {p.host.host}; using backup {path.name}")
            return path, f"reused backup {path.name}"

        with self._target() as tgt:
            snapshot = self._capture(tgt)
            known = {str(d.uuid) for d in tgt.list_distributed_switches()}
        foreign = [d.name for d in snapshot.network.distributed_switches if d.uuid not in known]
        if foreign:
            raise PreconditionError(
                msg=(
                    f"{p.host.host} is already in {p.target.host} but no pre-migration snapshot was found in "
                    f"{p.backup_dir} and its network still uses switches unknown to {p.target.host}: "
                    f"{', '.join(foreign)}"
                )
            )
        self.snapshot = snapshot
        path = self.store.save(snapshot, self.store.path_for(snapshot, premigration=True))
        Log.warn(self.logger, f"No backup of {p.host.host} found; captured its current configuration from {p.target.host}")
        return path, f"captured from target {path.name}"

    # ------------------------------------------------------------------
    # 4. disconnect + orphan cleanup
    # ------------------------------------------------------------------

    def _wait_for_state(self, client: Any, host: Any, wanted: str) -> None:
        deadline = self.clock() + self.plan.timeout_s
        while True:
            state = client.host_connection_state(host)
            if state == wanted:
                return
            if self.clock() >= deadline:
                raise PhaseError(msg=f"{self.plan.host.host} still {state} after {self.plan.timeout_s:.0f}s (waiting for {wanted})")
            self.sleep(self.plan.poll_s)

    def disconnect_from_source(self) -> None:
        p = self.plan
        if self._resume:
            self._advance(MigrationState.DISCONNECTED_FROM_SOURCE, "already out of source")
            return
        Log.step(self.logger, f"Disconnecting {p.host.host} from {p.source.host}")
        with self._source() as src:
            host = src.find_host(p.host.host)
            if host is None:
                raise PhaseError(msg=f"{p.host.host} disappeared from {p.source.host}")
            # refuses unless the rollback anchor is on disk; nothing has been touched yet
            self.tracker.require_snapshot()
            # past the point of no return: a failed or half-applied disconnect is rolled back
            self._advance(MigrationState.DISCONNECTED_FROM_SOURCE)
            try:
                src.disconnect_host(host)
            except Exception as e:
                raise PhaseError(msg=f"disconnect of {p.host.host} failed: {e}", cause=e)
            self._wait_for_state(src, host, "disconnected")
        if p.settle_s > 0:
            self.sleep(p.settle_s)

    def clean_orphans(self) -> None:
        """Drop proxy switches the source left on the host, unless VMkernel adapters still sit on them."""
        if self._resume:
            self._advance(MigrationState.ORPHANS_CLEANED, "skipped on resume")
            return
        Log.step(self.logger, "Cleaning orphaned proxy switches")
        removed = kept = 0
        with self._host_client_factory(self.plan.host) as hc:
            host = hc.the_host()
            info = hc.host_network_info(host)
            busy = set()
            for v in getattr(info, "vnic", None) or []:
                dvp = getattr(v.spec, "distributedVirtualPort", None)
                if dvp is not None and getattr(dvp, "switchUuid", None):
                    busy.add(str(dvp.switchUuid))
            for ps in getattr(info, "proxySwitch", None) or []:
                uuid = str(ps.dvsUuid)
                if uuid in busy:
                    kept += 1
                    self.logger.info("Keeping proxy switch %s: VMkernel adapters attached", ps.dvsName)
                    continue
                try:
                    hc.remove_proxy_switch(host, uuid)
                    removed += 1
                except Exception as e:
                    msg = f"orphan cleanup: proxy switch {ps.dvsName} not removed: {e}"
                    self.result.warnings.append(msg)
                    Log.warn(self.logger, msg)
        self._advance(MigrationState.ORPHANS_CLEANED, f"removed={removed} kept={kept}")

    # ------------------------------------------------------------------
    # 5 + 6. connect to target, restore
    # ------------------------------------------------------------------

    def _register(self, tgt: Any) -> Any:
        p = self.plan
        existing = tgt.find_host(p.host.host)
        if existing is not None:
            state = tgt.host_connection_state(existing)
            if state == "connected":
                if not tgt.host_is_managed(existing):
                    raise PhaseError(msg=f"{p.host.host} is listed in {p.target.host} but its configuration is not readable")
                Log.ok(self.logger, f"{p.host.host} already connected to {p.target.host}; registration skipped")
                return existing
            Log.step(self.logger, f"Reconnecting existing {state} entry of {p.host.host} in {p.target.host}")
            try:
                tgt.reconnect_host(existing, p.host)
            except Exception as e:
                raise PhaseError(msg=f"reconnect of {p.host.host} to {p.target.host} failed: {e}", cause=e)
            return existing

        dc = tgt.get_datacenter_by_name(p.target_datacenter)
        cluster = tgt.find_cluster(dc, p.target_cluster) if p.target_cluster else None
        where = f"{p.target_datacenter}/{p.target_cluster}" if p.target_cluster else p.target_datacenter
        Log.step(self.logger, f"Adding {p.host.host} to {p.target.host}:{where}")
        try:
            host = tgt.add_host(p.host, datacenter=dc, cluster=cluster)
        except Exception as e:
            raise PhaseError(msg=f"registration of {p.host.host} in {p.target.host} failed: {e}", cause=e)
        if host is None:
            host = tgt.find_host(p.host.host)
        if host is None:
            raise PhaseError(msg=f"{p.host.host} not found in {p.target.host} after registration")
        return host

    def connect_and_restore(self) -> None:
        p = self.plan
        assert self.snapshot is not None
        with self._target() as tgt:
            host = self._register(tgt)
            self._wait_for_state(tgt, host, "connected")
            self._advance(MigrationState.CONNECTED_TO_TARGET, "existing entry" if self._resume else "")

            restorer = HostRestore(
                self.logger,
                tgt,
                resolver=UplinkResolver(self.logger, tgt, cache=self.cache, uplink_portgroup=p.uplink_portgroup),
                uplink_portgroup=p.uplink_portgroup,
                strict_network=True,
            )
            try:
                restorer.restore(host, self.snapshot)
            finally:
                self.result.restore_report = restorer.report
        report = self.result.restore_report
        self.result.warnings.extend(report.warnings)
        self._advance(MigrationState.CONFIG_RESTORED, report.summary())

    # ------------------------------------------------------------------
    # 7 + 8
    # ------------------------------------------------------------------

    def restore_lockdown(self) -> None:
        original = self.result.original_lockdown or LockdownMode.DISABLED
        if original == LockdownMode.DISABLED:
            self.result.final_lockdown = LockdownMode.DISABLED
            self._advance(MigrationState.LOCKDOWN_RESTORED, "was disabled")
            return
        Log.step(self.logger, f"Restoring lockdown mode {original.label}")
        if self.lockdown.set_mode(self.plan.host, original):
            self.result.final_lockdown = original
            self._lockdown_changed = False
        else:
            # the host is migrated and healthy; re-locking is a safe manual follow-up
            msg = f"lockdown mode {original.label} could not be re-applied on {self.plan.host.host}"
            self.result.warnings.append(msg)
            self.result.final_lockdown = LockdownMode.DISABLED
            Log.fail(self.logger, msg)
        self._advance(MigrationState.LOCKDOWN_RESTORED, str(self.result.final_lockdown.label))

    def complete(self) -> None:
        p = self.plan
        self._advance(MigrationState.COMPLETED)
        if self.tracker.snapshot_path is not None and self._anchor_disposable:
            self.store.delete(self.tracker.snapshot_path)
        if p.remove_from_source:
            self._remove_stale_source_entry()
        Log.ok(self.logger, f"{p.host.host} migrated to {p.target.host}")

    def _remove_stale_source_entry(self) -> None:
        p = self.plan
        try:
            with self._source() as src:
                host = src.find_host(p.host.host)
                if host is None:
                    return
                if src.host_connection_state(host) == "connected":
                    self.result.warnings.append(f"{p.host.host} is still connected in {p.source.host}; not removed")
                    return
                src.remove_host(host)
                Log.ok(self.logger, f"Removed stale entry of {p.host.host} from {p.source.host}")
        except Exception as e:
            msg = f"could not remove {p.host.host} from {p.source.host}: {e}"
            self.result.warnings.append(msg)
            Log.warn(self.logger, msg)
