# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vc2vc/vmware/clients/host_client.py
"""
Direct ESXi session. Same API as VMwareClient, addressed at the host itself;
used for lockdown mode and orphaned proxy-switch cleanup, both of which have
to work while no vCenter owns the host.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from pyVmomi import vim

from ...core.exceptions import VMwareError
from ...core.retry import RetryPolicy
from ..identity import HostIdentity
from .client import VMwareClient


class HostClient(VMwareClient):
    @classmethod
    def for_identity(
        cls,
        logger: logging.Logger,
        identity: HostIdentity,
        *,
        timeout: Optional[float] = None,
        retry: Optional[RetryPolicy] = None,
    ) -> "HostClient":
        return cls(
            logger,
            identity.host,
            identity.user,
            identity.password,
            port=identity.port,
            insecure=identity.insecure,
            timeout=timeout,
            retry=retry,
        )

    def the_host(self) -> Any:
        """An ESXi inventory holds exactly one HostSystem."""
        hosts = self._view(vim.HostSystem)
        if not hosts:
            raise VMwareError(msg=f"No HostSystem found on {self.host}")
        return hosts[0]
