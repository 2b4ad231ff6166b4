# SPDX-License-Identifier: LGPL-3.0-or-later
# vc2vc/capture/__init__.py
from __future__ import annotations

from .capture import HostCapture

__all__ = ["HostCapture"]
