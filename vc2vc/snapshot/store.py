# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vc2vc/snapshot/store.py
"""
Snapshot files on local disk.

One JSON document per capture, named <hostShortName>_<yyyyMMdd_HHmmss>.json.
Files are written atomically (temp file + fsync + rename) so a crash can
never leave a half-written rollback anchor behind.
"""
from __future__ import annotations

import datetime as _dt
import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ..core.exceptions import SnapshotFormatError
from ..core.utils import U
from ..vmware.vmware_utils import short_host_name
from .model import Snapshot

_NAME_RE = re.compile(r"^(?P<host>.+)_(?P<ts>\d{8}_\d{6})(?:_\d+)?\.json$")


PREMIGRATION_TAG = "premigration"


def _stem(host_name: Optional[str], premigration: bool) -> str:
    s = short_host_name(host_name)
    return f"{s}_{PREMIGRATION_TAG}" if premigration else s


def snapshot_file_name(host_name: str, when: Optional[_dt.datetime] = None, *, premigration: bool = False) -> str:
    ts = (when or _dt.datetime.now()).strftime("%Y%m%d_%H%M%S")
    return f"{_stem(host_name, premigration)}_{ts}.json"


@dataclass(frozen=True)
class BackupInfo:
    path: Path
    host_name: str
    captured_at: str
    source_domain: str
    size_bytes: int

    @property
    def display_name(self) -> str:
        return f"{self.host_name} - {self.captured_at}"

    @property
    def size_display(self) -> str:
        return U.human_bytes(self.size_bytes)


class SnapshotStore:
    def __init__(self, logger: logging.Logger, directory: Path):
        self.logger = logger
        self.directory = Path(directory).expanduser()

    def path_for(self, snapshot: Snapshot, when: Optional[_dt.datetime] = None, *, premigration: bool = False) -> Path:
        return self.directory / snapshot_file_name(snapshot.metadata.host_name, when, premigration=premigration)

    def save(self, snapshot: Snapshot, path: Optional[Path] = None) -> Path:
        target = Path(path) if path is not None else self.path_for(snapshot)
        if target.exists():
            # never overwrite an existing capture; bump the timestamp instead
            target = target.with_name(f"{target.stem}_{_dt.datetime.now().strftime('%f')}{target.suffix}")
        text = json.dumps(snapshot.to_dict(), indent=2, sort_keys=False)
        U.atomic_write_text(target, text + "\n")
        self.logger.info("💾 Snapshot written: %s (%s)", target, U.human_bytes(target.stat().st_size))
        return target

    def load(self, path: Path) -> Snapshot:
        p = Path(path).expanduser()
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise SnapshotFormatError(msg=f"snapshot: {p} is not valid JSON: {e}", cause=e)
        snap = Snapshot.from_dict(data)
        self.logger.debug("Snapshot loaded: %s (host=%s captured_at=%s)", p, snap.metadata.host_name, snap.metadata.captured_at)
        return snap

    def delete(self, path: Path) -> None:
        U.safe_unlink(Path(path))
        self.logger.info("🧹 Snapshot removed: %s", path)

    def list_backups(self, host_name: Optional[str] = None, *, premigration: bool = False) -> List[BackupInfo]:
        """
        Backups in the directory, newest first; unreadable files are skipped.
        Pre-migration snapshots are only listed with premigration=True.
        """
        if not self.directory.is_dir():
            return []
        want = _stem(host_name, premigration) if host_name else None
        out: List[BackupInfo] = []
        for p in self.directory.glob("*.json"):
            m = _NAME_RE.match(p.name)
            if not m:
                continue
            if want and m.group("host") != want:
                continue
            try:
                meta = json.loads(p.read_text(encoding="utf-8")).get("metadata") or {}
            except (OSError, ValueError) as e:
                self.logger.debug("Skipping unreadable backup %s: %s", p, e)
                continue
            out.append(
                BackupInfo(
                    path=p,
                    host_name=str(meta.get("host_name") or m.group("host")),
                    captured_at=str(meta.get("captured_at") or m.group("ts")),
                    source_domain=str(meta.get("source_domain") or ""),
                    size_bytes=p.stat().st_size,
                )
            )
        out.sort(key=lambda b: (_NAME_RE.match(b.path.name).group("ts"), b.path.name), reverse=True)  # type: ignore[union-attr]
        return out

    def latest_for(self, host_name: str, *, premigration: bool = False) -> Optional[Path]:
        backups = self.list_backups(host_name, premigration=premigration)
        return backups[0].path if backups else None
