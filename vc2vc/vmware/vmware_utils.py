# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
"""
Shared utility functions for VMware operations.

Provides common helpers to avoid duplication across VMware modules.
"""
from __future__ import annotations

import ipaddress
import re
from typing import Any, Optional

_DIGITS_SUFFIX_RE = re.compile(r"(\d+)$")


def safe_host_name(name: Optional[str]) -> str:
    """
    Sanitize a host name for use in filenames and paths.

    Replaces non-alphanumeric characters (except _, ., -) with underscores.
    Returns "host" if the input is empty or None.

    Examples:
        >>> safe_host_name("esx 01 (lab)")
        'esx_01_lab_'
        >>> safe_host_name(None)
        'host'
    """
    return re.sub(r"[^A-Za-z0-9_.-]+", "_", (name or "host").strip()) or "host"


def short_host_name(name: Optional[str]) -> str:
    """
    First DNS label of a host name; IP addresses are kept whole.

        >>> short_host_name("esx01.lab.example.com")
        'esx01'
        >>> short_host_name("10.0.0.21")
        '10.0.0.21'
    """
    n = (name or "").strip()
    try:
        ipaddress.ip_address(n)
        return safe_host_name(n)
    except ValueError:
        pass
    return safe_host_name(n.split(".", 1)[0] if n else n)


def numeric_suffix(name: Optional[str]) -> Optional[int]:
    """Trailing integer of a device/uplink name ("vmnic3" -> 3, "Uplink 2" -> 2)."""
    m = _DIGITS_SUFFIX_RE.search((name or "").strip())
    return int(m.group(1)) if m else None


def vim_type_name(obj: Any) -> str:
    """WSDL type name of a pyVmomi data object ("HostInternetScsiHba"), or the class name."""
    return str(getattr(obj, "_wsdlName", None) or type(obj).__name__)


def same_managed_object(a: Any, b: Any) -> bool:
    """pyVmomi managed objects compare by moref; fall back to identity."""
    if a is b:
        return True
    ma, mb = getattr(a, "_moId", None), getattr(b, "_moId", None)
    return bool(ma and mb and ma == mb)
