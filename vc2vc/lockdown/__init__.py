# SPDX-License-Identifier: LGPL-3.0-or-later
# vc2vc/lockdown/__init__.py
from __future__ import annotations

from .lockdown import LockdownController, LockdownMode

__all__ = ["LockdownController", "LockdownMode"]
