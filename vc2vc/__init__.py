# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vc2vc/__init__.py
"""
vc2vc - move ESXi hosts between vCenter servers

Backup captures a host's configuration to a JSON snapshot, Restore diff-applies
a snapshot onto a host, and Migrate relocates the host from one vCenter to
another with a compensating rollback.

Usage as a library:

    from vc2vc import HostCapture, VMwareClient

    with VMwareClient(logger, "vc01.example.com", "administrator@vsphere.local", pw) as client:
        snapshot = HostCapture(logger, client).capture("esx01.example.com")
"""
from __future__ import annotations

__version__ = "0.1.0"

from .capture import HostCapture
from .lockdown import LockdownController, LockdownMode
from .orchestrator import MigrationOrchestrator, MigrationPlan, MigrationState, Orchestrator, RunResult
from .restore import HostRestore, RestoreReport
from .snapshot import Snapshot, SnapshotStore
from .vmware import DomainEndpoint, HostIdentity, VMwareClient

__all__ = [
    "__version__",
    "DomainEndpoint",
    "HostCapture",
    "HostIdentity",
    "HostRestore",
    "LockdownController",
    "LockdownMode",
    "MigrationOrchestrator",
    "MigrationPlan",
    "MigrationState",
    "Orchestrator",
    "RestoreReport",
    "RunResult",
    "Snapshot",
    "SnapshotStore",
    "VMwareClient",
]
