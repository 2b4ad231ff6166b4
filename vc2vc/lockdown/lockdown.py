# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vc2vc/lockdown/lockdown.py

"""
Lockdown mode over a direct host session.

Every call opens its own session to the ESXi host, does one thing and closes
the session again, so it works while no vCenter owns the host (which is
exactly the mid-migration situation).
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Optional

from ..core.exceptions import PreconditionError
from ..core.logger import Log
from ..vmware.clients.host_client import HostClient
from ..vmware.identity import HostIdentity

HostClientFactory = Callable[[HostIdentity], Any]


class LockdownMode(str, Enum):
    DISABLED = "lockdownDisabled"
    NORMAL = "lockdownNormal"
    STRICT = "lockdownStrict"

    @classmethod
    def parse(cls, value: str) -> "LockdownMode":
        v = (value or "").strip()
        for m in cls:
            if v in (m.value, m.name, m.name.lower()):
                return m
        raise ValueError(f"Unknown lockdown mode {value!r}")

    @property
    def label(self) -> str:
        return self.name.capitalize()


class LockdownController:
    def __init__(
        self,
        logger: logging.Logger,
        *,
        client_factory: Optional[HostClientFactory] = None,
        timeout: Optional[float] = None,
    ):
        self.logger = logger
        self.timeout = timeout
        self._factory = client_factory or self._default_factory

    def _default_factory(self, identity: HostIdentity) -> HostClient:
        return HostClient.for_identity(self.logger, identity, timeout=self.timeout)

    def get_mode(self, identity: HostIdentity) -> LockdownMode:
        """Current mode; any failure to read it is a PreconditionError."""
        try:
            with self._factory(identity) as hc:
                raw = hc.host_lockdown_mode(hc.the_host())
            mode = LockdownMode.parse(raw)
        except Exception as e:
            raise PreconditionError(
                msg=f"Cannot read lockdown mode of {identity.host}: {e}",
                cause=e,
                context={"host": identity.host},
            )
        self.logger.info("🔒 Lockdown mode of %s: %s", identity.host, mode.label)
        return mode

    def set_mode(self, identity: HostIdentity, mode: LockdownMode) -> bool:
        """
        Put the host into mode. True when it is in that mode afterwards
        (including "already was"); False, logged, when the host refused.
        """
        try:
            with self._factory(identity) as hc:
                host = hc.the_host()
                current = LockdownMode.parse(hc.host_lockdown_mode(host))
                if current == mode:
                    self.logger.debug("Lockdown of %s already %s", identity.host, mode.label)
                    return True
                hc.change_lockdown_mode(host, mode.value)
        except Exception as e:
            Log.fail(self.logger, f"Could not set lockdown mode of {identity.host} to {mode.label}: {e}")
            self.logger.debug("set_mode failed", exc_info=True)
            return False
        Log.ok(self.logger, f"Lockdown mode of {identity.host}: {current.label} -> {mode.label}")
        return True
