# SPDX-License-Identifier: LGPL-3.0-or-later
# vc2vc/snapshot/__init__.py
from __future__ import annotations

from .model import FACETS, SCHEMA_VERSION, Snapshot
from .store import BackupInfo, SnapshotStore, snapshot_file_name

__all__ = ["FACETS", "SCHEMA_VERSION", "Snapshot", "SnapshotStore", "BackupInfo", "snapshot_file_name"]
