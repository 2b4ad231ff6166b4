# SPDX-License-Identifier: LGPL-3.0-or-later
# vc2vc/restore/__init__.py
from __future__ import annotations

from .report import Change, RestoreReport
from .restore import HostRestore, normalize_facets

__all__ = ["Change", "RestoreReport", "HostRestore", "normalize_facets"]
