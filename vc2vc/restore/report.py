# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vc2vc/restore/report.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from rich.table import Table


@dataclass(frozen=True)
class Change:
    facet: str
    item: str
    action: str
    detail: str = ""

    def __str__(self) -> str:
        d = f" ({self.detail})" if self.detail else ""
        return f"{self.facet}: {self.action} {self.item}{d}"


@dataclass
class RestoreReport:
    """
    Outcome of one HostRestore.restore() call.

    changes are mutations that were applied (or, with dry_run, would be).
    warnings are per-item failures and low-confidence decisions; skipped
    lists items deliberately left alone.
    """

    host_name: str = ""
    dry_run: bool = False
    changes: List[Change] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.changes and not self.warnings

    @property
    def mutation_count(self) -> int:
        return 0 if self.dry_run else len(self.changes)

    def add_change(self, facet: str, item: str, action: str, detail: str = "") -> Change:
        ch = Change(facet=facet, item=item, action=action, detail=detail)
        self.changes.append(ch)
        return ch

    def warn(self, msg: str) -> None:
        self.warnings.append(msg)

    def skip(self, msg: str) -> None:
        self.skipped.append(msg)

    def summary(self) -> str:
        verb = "planned" if self.dry_run else "applied"
        return f"{len(self.changes)} change(s) {verb}, {len(self.warnings)} warning(s), {len(self.skipped)} skipped"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "host_name": self.host_name,
            "dry_run": self.dry_run,
            "changes": [vars(c).copy() for c in self.changes],
            "warnings": list(self.warnings),
            "skipped": list(self.skipped),
        }

    def as_table(self) -> Table:
        title = f"Restore of {self.host_name}" + (" (dry run)" if self.dry_run else "")
        t = Table(title=title, show_lines=False)
        t.add_column("Facet", style="cyan", no_wrap=True)
        t.add_column("Action", style="green")
        t.add_column("Item")
        t.add_column("Detail", style="dim")
        for c in self.changes:
            t.add_row(c.facet, c.action, c.item, c.detail)
        for w in self.warnings:
            t.add_row("", "[yellow]warning[/yellow]", w, "")
        return t
