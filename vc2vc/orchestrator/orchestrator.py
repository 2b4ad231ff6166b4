# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vc2vc/orchestrator/orchestrator.py

from __future__ import annotations

import argparse
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, List, Optional

from rich.console import Console

from ..capture.capture import HostCapture
from ..core.exceptions import Fatal, Vc2VcError, format_exception_for_cli
from ..core.logger import Log
from ..core.retry import RetryPolicy
from ..core.utils import U
from ..network.cache import ResolverCache
from ..network.uplink_resolver import UplinkResolver
from ..restore.restore import HostRestore
from ..snapshot.store import SnapshotStore
from ..vmware.clients.client import VMwareClient
from ..vmware.identity import DomainEndpoint, Endpoint, HostIdentity
from .migration import MigrationOrchestrator, MigrationPlan

ACTIONS = ("backup", "restore", "migrate")


@dataclass
class RunResult:
    success: bool
    message: str
    detail: Any = None

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1


def _facet_list(raw: Any) -> Optional[List[str]]:
    if raw is None:
        return None
    if isinstance(raw, str):
        raw = raw.split(",")
    out = [str(f).strip() for f in raw if str(f).strip()]
    return out or None


class Orchestrator:
    """
    Action dispatcher: one of backup / restore / migrate per run.

    Every error is logged here and folded into RunResult(success=False);
    nothing below this layer decides the exit status.
    """

    def __init__(
        self,
        logger: logging.Logger,
        args: argparse.Namespace,
        *,
        client_factory: Optional[Callable[[Endpoint], Any]] = None,
        host_client_factory: Optional[Callable[[HostIdentity], Any]] = None,
        sleep: Callable[[float], None] = time.sleep,
        console: Optional[Console] = None,
    ):
        self.logger = logger
        self.args = args
        self.retry = RetryPolicy.from_config(vars(args))
        self._client_factory = client_factory or self._default_client
        self._host_client_factory = host_client_factory
        self._sleep = sleep
        self.console = console or Console(stderr=True)
        self.store = SnapshotStore(logger, Path(getattr(args, "backup_dir", None) or "./backups"))

        Log.trace(
            self.logger,
            "🧠 Orchestrator init: action=%r host=%r backup_dir=%r",
            getattr(args, "action", None),
            getattr(args, "host", None),
            str(self.store.directory),
        )

    # ------------------------------------------------------------------
    # identities
    # ------------------------------------------------------------------

    def _default_client(self, ep: Endpoint) -> VMwareClient:
        return VMwareClient.from_endpoint(self.logger, ep, timeout=self._timeout, retry=self.retry)

    @property
    def _timeout(self) -> float:
        return float(getattr(self.args, "timeout", None) or 300)

    def _source(self) -> DomainEndpoint:
        a = self.args
        return DomainEndpoint(
            host=a.vcenter,
            user=a.vc_user,
            password=a.vc_password,
            port=int(getattr(a, "vc_port", None) or 443),
            insecure=bool(getattr(a, "vc_insecure", False)),
        )

    def _target(self) -> DomainEndpoint:
        a = self.args
        return DomainEndpoint(
            host=a.target_vcenter,
            user=a.target_vc_user or a.vc_user,
            password=a.target_vc_password or a.vc_password,
            port=int(getattr(a, "target_vc_port", None) or getattr(a, "vc_port", None) or 443),
            insecure=bool(getattr(a, "vc_insecure", False)),
        )

    def _host_identity(self) -> HostIdentity:
        a = self.args
        return HostIdentity(
            host=a.host,
            user=getattr(a, "host_user", None) or "root",
            password=getattr(a, "host_password", None),
            insecure=bool(getattr(a, "vc_insecure", False)),
        )

    # ------------------------------------------------------------------
    # actions
    # ------------------------------------------------------------------

    def backup(self) -> RunResult:
        a = self.args
        U.check_writable_dir(self.store.directory)
        with self._client_factory(self._source()) as client:
            cap = HostCapture(
                self.logger,
                client,
                resolver=UplinkResolver(self.logger, client, cache=ResolverCache(), uplink_portgroup=a.uplink_portgroup),
            )
            snapshot = cap.capture(a.host)
        path = self.store.save(snapshot)
        msg = f"Backup of {snapshot.metadata.host_name} saved to {path}"
        if cap.warnings:
            msg += f" ({len(cap.warnings)} facet warning(s))"
        return RunResult(True, msg, detail=path)

    def _pick_backup(self) -> Path:
        explicit = getattr(self.args, "backup_file", None)
        if explicit:
            p = Path(explicit).expanduser()
            if not p.is_file():
                raise Fatal(2, f"Backup file not found: {p}")
            return p
        latest = self.store.latest_for(self.args.host)
        if latest is None:
            raise Fatal(2, f"No backup of {self.args.host} in {self.store.directory}")
        self.logger.info("📂 Using newest backup %s", latest.name)
        return latest

    def restore(self) -> RunResult:
        a = self.args
        snapshot = self.store.load(self._pick_backup())
        with self._client_factory(self._source()) as client:
            report = HostRestore(
                self.logger,
                client,
                facets=_facet_list(getattr(a, "facets", None)),
                dry_run=bool(getattr(a, "dry_run", False)),
                uplink_portgroup=a.uplink_portgroup,
            ).restore(a.host, snapshot)
        if report.changes:
            self.console.print(report.as_table())
        verb = "Dry run of restore" if report.dry_run else "Restore"
        return RunResult(True, f"{verb} on {report.host_name}: {report.summary()}", detail=report)

    def migrate(self) -> RunResult:
        a = self.args
        plan = MigrationPlan(
            host=self._host_identity(),
            source=self._source(),
            target=self._target(),
            target_datacenter=a.target_datacenter,
            target_cluster=getattr(a, "target_cluster", None),
            backup_dir=self.store.directory,
            timeout_s=self._timeout,
            settle_s=10.0 if getattr(a, "settle_s", None) is None else float(a.settle_s),
            remove_from_source=bool(getattr(a, "remove_from_source", False)),
            uplink_portgroup=a.uplink_portgroup,
        )
        mig = MigrationOrchestrator(
            self.logger,
            plan,
            client_factory=self._client_factory,
            host_client_factory=self._host_client_factory,
            retry=self.retry,
            sleep=self._sleep,
        )
        try:
            result = mig.run()
        except Exception:
            r = mig.result
            self.logger.info("🧾 State history: %s", " -> ".join(str(t.state) for t in r.history))
            raise
        for w in result.warnings:
            Log.warn(self.logger, w)
        msg = f"{result.host_name} migrated from {plan.source.host} to {plan.target.host}"
        if result.resumed:
            msg += " (resumed)"
        if result.warnings:
            msg += f" with {len(result.warnings)} warning(s)"
        return RunResult(True, msg, detail=result)

    # ------------------------------------------------------------------

    def run(self) -> RunResult:
        action = (getattr(self.args, "action", None) or "").strip().lower()
        U.banner(self.logger, f"Action: {action or '?'}")
        handler = {"backup": self.backup, "restore": self.restore, "migrate": self.migrate}.get(action)
        if handler is None:
            result = RunResult(False, f"Unknown action {action!r}; choose one of {', '.join(ACTIONS)}")
        else:
            try:
                result = handler()
            except Vc2VcError as e:
                result = RunResult(False, format_exception_for_cli(e, verbose=int(getattr(self.args, "verbose", 0) or 0)), detail=e)
            except ValueError as e:
                result = RunResult(False, str(e), detail=e)
            except OSError as e:
                result = RunResult(False, f"{type(e).__name__}: {e}", detail=e)

        if result.success:
            Log.ok(self.logger, result.message)
        else:
            Log.fail(self.logger, result.message)
        return result
