# SPDX-License-Identifier: LGPL-3.0-or-later
# vc2vc/config/__init__.py
from __future__ import annotations

from .config_loader import Config

__all__ = ["Config"]
