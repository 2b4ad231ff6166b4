# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vc2vc/orchestrator/state.py
from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..core.exceptions import StateTransitionError


class MigrationState(str, Enum):
    NOT_STARTED = "NotStarted"
    PREFLIGHT_VALIDATED = "PreflightValidated"
    LOCKDOWN_HANDLED = "LockdownHandled"
    PRE_MIGRATION_BACKED_UP = "PreMigrationBackedUp"
    DISCONNECTED_FROM_SOURCE = "DisconnectedFromSource"
    ORPHANS_CLEANED = "OrphansCleaned"
    CONNECTED_TO_TARGET = "ConnectedToTarget"
    CONFIG_RESTORED = "ConfigRestored"
    LOCKDOWN_RESTORED = "LockdownRestored"
    COMPLETED = "Completed"
    FAILED = "Failed"
    ROLLED_BACK = "RolledBack"

    def __str__(self) -> str:
        return self.value


# forward path, in order
FORWARD: Tuple[MigrationState, ...] = (
    MigrationState.NOT_STARTED,
    MigrationState.PREFLIGHT_VALIDATED,
    MigrationState.LOCKDOWN_HANDLED,
    MigrationState.PRE_MIGRATION_BACKED_UP,
    MigrationState.DISCONNECTED_FROM_SOURCE,
    MigrationState.ORPHANS_CLEANED,
    MigrationState.CONNECTED_TO_TARGET,
    MigrationState.CONFIG_RESTORED,
    MigrationState.LOCKDOWN_RESTORED,
    MigrationState.COMPLETED,
)

TERMINAL = frozenset({MigrationState.COMPLETED, MigrationState.FAILED, MigrationState.ROLLED_BACK})

# the first state from which a failure needs compensation
POINT_OF_NO_RETURN = MigrationState.DISCONNECTED_FROM_SOURCE


def _index(s: MigrationState) -> int:
    return FORWARD.index(s)


def _build_transitions() -> Dict[MigrationState, frozenset]:
    t: Dict[MigrationState, frozenset] = {}
    cut = _index(POINT_OF_NO_RETURN)
    for i, s in enumerate(FORWARD[:-1]):
        nxt = {FORWARD[i + 1]}
        nxt.add(MigrationState.FAILED if i < cut else MigrationState.ROLLED_BACK)
        t[s] = frozenset(nxt)
    for s in TERMINAL:
        t[s] = frozenset()
    return t


ALLOWED: Dict[MigrationState, frozenset] = _build_transitions()


@dataclass(frozen=True)
class Transition:
    state: MigrationState
    at: str
    note: str = ""


class MigrationTracker:
    """
    Forward-only state holder with a timestamped history.

    Leaving PreMigrationBackedUp requires the rollback anchor to be on disk:
    record it with snapshot_persisted() first.
    """

    def __init__(self, *, clock=None):
        self._clock = clock or (lambda: _dt.datetime.now(tz=_dt.timezone.utc))
        self.state = MigrationState.NOT_STARTED
        self.history: List[Transition] = [Transition(self.state, self._now(), "created")]
        self.snapshot_path: Optional[Path] = None

    def _now(self) -> str:
        return self._clock().isoformat(timespec="milliseconds")

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL

    @property
    def past_point_of_no_return(self) -> bool:
        return self.state in FORWARD and _index(self.state) >= _index(POINT_OF_NO_RETURN) and not self.is_terminal

    def can_transition(self, to: MigrationState) -> bool:
        return to in ALLOWED.get(self.state, frozenset())

    def snapshot_persisted(self, path: Path) -> None:
        p = Path(path)
        if not p.is_file():
            raise StateTransitionError(msg=f"pre-migration snapshot {p} does not exist")
        self.snapshot_path = p

    def require_snapshot(self) -> None:
        """Raise unless the recorded rollback anchor still exists on disk."""
        if self.snapshot_path is None or not self.snapshot_path.is_file():
            raise StateTransitionError(msg="refusing to disconnect: pre-migration snapshot is not persisted")

    def advance(self, to: MigrationState, note: str = "") -> None:
        if not self.can_transition(to):
            raise StateTransitionError(
                msg=f"illegal transition {self.state} -> {to}",
                context={"from": str(self.state), "to": str(to)},
            )
        if self.state == MigrationState.PRE_MIGRATION_BACKED_UP and to == MigrationState.DISCONNECTED_FROM_SOURCE:
            self.require_snapshot()
        self.state = to
        self.history.append(Transition(to, self._now(), note))

    def fail(self, note: str = "") -> None:
        """Terminal failure: Failed before the point of no return, RolledBack after it."""
        if self.is_terminal:
            return
        self.advance(MigrationState.ROLLED_BACK if self.past_point_of_no_return else MigrationState.FAILED, note)

    def states(self) -> List[MigrationState]:
        return [t.state for t in self.history]
