# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vc2vc/orchestrator/rollback.py

"""
Compensation for a migration that failed after the host left its source
domain: put the host back and re-apply the pre-migration Snapshot's network
facet. This is HostRestore with a different target and a facet subset, not a
separate code path.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from ..core.exceptions import PhaseError
from ..core.logger import Log
from ..restore.report import RestoreReport
from ..restore.restore import HostRestore
from ..snapshot.model import Snapshot
from ..vmware.identity import HostIdentity

ROLLBACK_FACETS = ("network",)


class Rollback:
    def __init__(self, logger: logging.Logger, *, uplink_portgroup: Optional[str] = None):
        self.logger = logger
        self.uplink_portgroup = uplink_portgroup

    def run(self, source_client: Any, identity: HostIdentity, snapshot: Snapshot) -> RestoreReport:
        Log.banner(self.logger, f"ROLLBACK {identity.host}")
        host = source_client.find_host(identity.host)
        if host is None:
            raise PhaseError(msg=f"rollback: {identity.host} not found in {source_client.server}")

        state = source_client.host_connection_state(host)
        if state != "connected":
            Log.step(self.logger, f"Reconnecting {identity.host} to {source_client.server} (was {state})")
            source_client.reconnect_host(host, identity)

        report = HostRestore(
            self.logger,
            source_client,
            facets=ROLLBACK_FACETS,
            uplink_portgroup=self.uplink_portgroup,
        ).restore(host, snapshot)
        Log.ok(self.logger, f"Rollback of {identity.host}: {report.summary()}")
        return report

    def run_safely(self, source_client: Any, identity: HostIdentity, snapshot: Snapshot) -> Optional[RestoreReport]:
        """run(), but every failure is logged and swallowed."""
        try:
            return self.run(source_client, identity, snapshot)
        except Exception as e:
            Log.fail(self.logger, f"Rollback of {identity.host} failed: {e}")
            self.logger.debug("rollback failure", exc_info=True)
            return None
