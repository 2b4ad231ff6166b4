# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vc2vc/vmware/__init__.py
"""vSphere management-API collaborators (vCenter sessions and direct ESXi sessions)."""
from __future__ import annotations

from .clients.client import VMwareClient
from .clients.host_client import HostClient
from .identity import DomainEndpoint, Endpoint, HostIdentity

__all__ = ["VMwareClient", "HostClient", "Endpoint", "DomainEndpoint", "HostIdentity"]
