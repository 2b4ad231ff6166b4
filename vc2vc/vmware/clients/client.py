# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vc2vc/vmware/clients/client.py
"""
vSphere / vCenter client for vc2vc.

This is the management-API collaborator: connect/query/mutate against one
named server. Host network and host services calls live in the mixins in
host_network.py / host_services.py; this module owns the session, inventory
lookups and host lifecycle (disconnect / reconnect / register / remove).
"""

from __future__ import annotations

import logging
import socket
import ssl
import time
from typing import Any, Callable, List, Optional, TypeVar

from pyVim.connect import Disconnect, SmartConnect
from pyVmomi import vim
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from ...core.exceptions import VMwareError
from ...core.retry import RetryPolicy, retry_operation
from ..host_network import HostNetworkMixin
from ..host_services import HostServicesMixin
from ..identity import Endpoint, HostIdentity
from ..vmware_utils import same_managed_object, short_host_name

T = TypeVar("T")

_TASK_POLL_S = 1.0


class VMwareClient(HostNetworkMixin, HostServicesMixin):
    """
    vSphere API session against one server (vCenter, or an ESXi host directly).
    """

    def __init__(
        self,
        logger: logging.Logger,
        host: str,
        user: str,
        password: str,
        *,
        port: int = 443,
        insecure: bool = False,
        timeout: Optional[float] = None,
        retry: Optional[RetryPolicy] = None,
    ) -> None:
        self.logger = logger
        self.host = (host or "").strip()
        self.user = (user or "").strip()
        self.password = password or ""
        self.port = int(port or 443)
        self.insecure = bool(insecure)
        self.timeout = timeout
        self.retry = retry or RetryPolicy()

        self.si: Any = None
        self._rich_console = Console(stderr=True)

        # caches (dropped on disconnect)
        self._dc_cache: Optional[List[Any]] = None
        self._dvs_cache: Optional[List[Any]] = None

    @classmethod
    def from_endpoint(
        cls,
        logger: logging.Logger,
        ep: Endpoint,
        *,
        timeout: Optional[float] = None,
        retry: Optional[RetryPolicy] = None,
    ) -> "VMwareClient":
        return cls(logger, ep.host, ep.user, ep.password, port=ep.port, insecure=ep.insecure, timeout=timeout, retry=retry)

    @property
    def server(self) -> str:
        return self.host

    def has_creds(self) -> bool:
        return bool(self.host and self.user and self.password)

    # Context managers

    def __enter__(self) -> "VMwareClient":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        try:
            self.disconnect()
        finally:
            if exc_type is not None:
                self.logger.debug("Exception in %s session: %s: %s", self.host, getattr(exc_type, "__name__", exc_type), exc_val)
        return False

    # Connection

    def _ssl_context(self) -> ssl.SSLContext:
        """
        Create SSL context for vSphere connections.

        SECURITY WARNING: When insecure=True, TLS certificate verification is
        disabled. Only use it against lab hosts with self-signed certificates.
        """
        if self.insecure:
            self.logger.warning("TLS certificate verification is DISABLED for %s (insecure=True)", self.host)
            ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
            ctx.check_hostname = False
            ctx.verify_mode = ssl.CERT_NONE
            return ctx
        return ssl.create_default_context()

    def connect(self) -> None:
        ctx = self._ssl_context()
        old_timeout = socket.getdefaulttimeout()
        try:
            if self.timeout is not None:
                socket.setdefaulttimeout(self.timeout)
            self.si = SmartConnect(
                host=self.host,
                user=self.user,
                pwd=self.password,
                port=self.port,
                sslContext=ctx,
            )
        except Exception as e:
            self.si = None
            raise VMwareError(msg=f"Failed to connect to vSphere {self.host}:{self.port}: {e}", cause=e)
        finally:
            socket.setdefaulttimeout(old_timeout)
        self.logger.info("🔌 Connected to vSphere: %s:%s", self.host, self.port)

    def disconnect(self) -> None:
        try:
            if self.si is not None:
                Disconnect(self.si)
                self.logger.debug("Disconnected from %s", self.host)
        except Exception as e:
            self.logger.warning("Error during disconnect from %s: %s", self.host, e)
        finally:
            self.si = None
            self._dc_cache = None
            self._dvs_cache = None

    @property
    def is_connected(self) -> bool:
        return self.si is not None

    def _content(self) -> Any:
        if not self.si:
            raise VMwareError(msg=f"Not connected to {self.host}")
        try:
            return self.si.RetrieveContent()
        except Exception as e:
            raise VMwareError(msg=f"Failed to retrieve content from {self.host}: {e}", cause=e)

    def _view(self, vim_type: Any) -> List[Any]:
        content = self._content()
        view = content.viewManager.CreateContainerView(content.rootFolder, [vim_type], True)
        try:
            return list(view.view)
        finally:
            try:
                view.Destroy()
            except Exception:
                pass

    # Tasks / retries

    def _use_rich_progress(self) -> bool:
        return bool(self._rich_console is not None and self._rich_console.is_terminal)

    def _poll_task(self, task: Any, timeout_s: Optional[float], on_tick: Optional[Callable[[], None]] = None) -> None:
        t0 = time.monotonic()
        while task.info.state not in (vim.TaskInfo.State.success, vim.TaskInfo.State.error):
            if timeout_s is not None and (time.monotonic() - t0) > timeout_s:
                raise VMwareError(msg=f"Task {getattr(task.info, 'descriptionId', 'task')} timed out after {timeout_s:.0f}s")
            if on_tick is not None:
                on_tick()
            time.sleep(_TASK_POLL_S)

    def wait_for_task(self, task: Any, *, timeout_s: Optional[float] = None) -> Any:
        if self._use_rich_progress():
            what = str(getattr(task.info, "descriptionId", None) or "task")
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                TimeElapsedColumn(),
                console=self._rich_console,
                transient=True,
            ) as progress:
                tid = progress.add_task(f"{what} on {self.host}…", total=None)
                self._poll_task(
                    task,
                    timeout_s,
                    lambda: progress.update(tid, description=f"{what} on {self.host}… {getattr(task.info, 'progress', None) or 0}%"),
                )
        else:
            self._poll_task(task, timeout_s)
        if task.info.state == vim.TaskInfo.State.error:
            err = task.info.error
            raise VMwareError(msg=str(getattr(err, "msg", None) or err), cause=err)
        return task.info.result

    def _mutate(self, name: str, op: Callable[[], T]) -> T:
        return retry_operation(op, policy=self.retry, operation_name=f"{name} [{self.host}]", logger=self.logger)

    def _run_task(self, name: str, start: Callable[[], Any]) -> Any:
        return self._mutate(name, lambda: self.wait_for_task(start(), timeout_s=self.timeout))

    # Inventory

    def list_datacenters(self, *, refresh: bool = False) -> List[Any]:
        if refresh or self._dc_cache is None:
            self._dc_cache = self._view(vim.Datacenter)
        return list(self._dc_cache)

    def get_datacenter_by_name(self, name: str) -> Any:
        target = (name or "").strip()
        for dc in self.list_datacenters():
            if str(getattr(dc, "name", "")).strip() == target:
                return dc
        return None

    def find_cluster(self, datacenter: Any, name: str) -> Any:
        target = (name or "").strip()
        for cl in self._view(vim.ClusterComputeResource):
            if str(getattr(cl, "name", "")) != target:
                continue
            if datacenter is None or same_managed_object(self.datacenter_of(cl), datacenter):
                return cl
        return None

    def datacenter_of(self, obj: Any) -> Any:
        for _ in range(64):
            if obj is None:
                break
            if isinstance(obj, vim.Datacenter):
                return obj
            obj = getattr(obj, "parent", None)
        return None

    def find_host(self, name: str) -> Any:
        """
        Resolve a HostSystem by DNS name, falling back to an inventory scan that
        also accepts the short name ("esx01" for "esx01.lab.local").
        """
        n = (name or "").strip()
        if not n:
            return None
        content = self._content()
        try:
            h = content.searchIndex.FindByDnsName(dnsName=n, vmSearch=False)
            if h is not None:
                return h
        except Exception as e:
            self.logger.debug("FindByDnsName(%s) failed: %s", n, e)
        short = short_host_name(n)
        for h in self._view(vim.HostSystem):
            hn = str(getattr(h, "name", ""))
            if hn.lower() == n.lower() or short_host_name(hn).lower() == short.lower():
                return h
        return None

    def host_name(self, host: Any) -> str:
        return str(getattr(host, "name", ""))

    def host_summary(self, host: Any) -> Any:
        return host.summary

    def host_connection_state(self, host: Any) -> str:
        return str(host.runtime.connectionState)

    def host_in_maintenance(self, host: Any) -> bool:
        return bool(host.runtime.inMaintenanceMode)

    def host_is_managed(self, host: Any) -> bool:
        """
        True when this server genuinely owns the host: connected and its
        configuration is readable (stale inventory entries have no config).
        """
        try:
            return self.host_connection_state(host) == "connected" and host.config is not None
        except Exception as e:
            self.logger.debug("host_is_managed(%s): %s", self.host_name(host), e)
            return False

    # Host lifecycle

    def _connect_spec(self, identity: HostIdentity, thumbprint: Optional[str] = None) -> Any:
        return vim.host.ConnectSpec(
            hostName=identity.host,
            port=identity.port,
            userName=identity.user,
            password=identity.password,
            sslThumbprint=thumbprint,
            force=True,
        )

    def _with_thumbprint(self, name: str, identity: HostIdentity, start: Callable[[Any], Any]) -> Any:
        """Run a connect-style task, learning the host's SSL thumbprint from the first SSLVerifyFault."""
        try:
            return self._run_task(name, lambda: start(self._connect_spec(identity)))
        except VMwareError as e:
            thumb = getattr(e.cause, "thumbprint", None) if isinstance(e.cause, vim.fault.SSLVerifyFault) else None
            if not thumb:
                raise
            self.logger.info("🔐 Accepting SSL thumbprint for %s: %s", identity.host, thumb)
            return self._run_task(name, lambda: start(self._connect_spec(identity, thumb)))

    def disconnect_host(self, host: Any) -> None:
        self._run_task("disconnect host", host.DisconnectHost_Task)

    def reconnect_host(self, host: Any, identity: Optional[HostIdentity] = None) -> None:
        if identity is None:
            self._run_task("reconnect host", lambda: host.ReconnectHost_Task())
            return
        self._with_thumbprint("reconnect host", identity, lambda spec: host.ReconnectHost_Task(cnxSpec=spec))

    def add_host(self, identity: HostIdentity, *, datacenter: Any, cluster: Any = None) -> Any:
        """Register a host under a cluster, or standalone in the datacenter's host folder."""
        if cluster is not None:
            return self._with_thumbprint(
                "add host", identity, lambda spec: cluster.AddHost_Task(spec=spec, asConnected=True)
            )
        compute = self._with_thumbprint(
            "add standalone host",
            identity,
            lambda spec: datacenter.hostFolder.AddStandaloneHost_Task(spec=spec, addConnected=True),
        )
        hosts = list(getattr(compute, "host", None) or [])
        return hosts[0] if hosts else self.find_host(identity.host)

    def remove_host(self, host: Any) -> None:
        parent = getattr(host, "parent", None)
        if isinstance(parent, vim.ClusterComputeResource) or parent is None:
            self._run_task("remove host", host.Destroy_Task)
        else:
            self._run_task("remove host", parent.Destroy_Task)
