# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vc2vc/vmware/identity.py
"""
Who we talk to.

A host is reachable through at most one management domain (a vCenter) at a
time, but always directly through its own HostIdentity. That duality is what
lets lockdown inspection and orphan cleanup work while the host is unmanaged.
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Endpoint:
    """Credentials for one vSphere API endpoint (a vCenter or an ESXi host)."""

    host: str
    user: str
    password: str
    port: int = 443
    insecure: bool = False

    def __repr__(self) -> str:
        # keep passwords out of logs and tracebacks
        return f"{type(self).__name__}(host={self.host!r}, user={self.user!r}, port={self.port}, insecure={self.insecure})"

    def has_creds(self) -> bool:
        return bool(self.host and self.user and self.password)


@dataclass(frozen=True, repr=False)
class HostIdentity(Endpoint):
    """Hostname + direct-connect (root) credential of an ESXi host."""

    @property
    def host_name(self) -> str:
        return self.host


@dataclass(frozen=True, repr=False)
class DomainEndpoint(Endpoint):
    """A management server (vCenter) owning a pool of hosts."""
