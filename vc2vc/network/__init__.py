# SPDX-License-Identifier: LGPL-3.0-or-later
# vc2vc/network/__init__.py
from __future__ import annotations

from .cache import ResolverCache
from .uplink_resolver import Resolution, UplinkMatch, UplinkResolver, match_uplinks

__all__ = ["ResolverCache", "Resolution", "UplinkMatch", "UplinkResolver", "match_uplinks"]
