# SPDX-License-Identifier: LGPL-3.0-or-later
from __future__ import annotations

import datetime as dt

import pytest

from vc2vc.core.exceptions import StateTransitionError
from vc2vc.orchestrator.state import FORWARD, POINT_OF_NO_RETURN, MigrationState, MigrationTracker

S = MigrationState
T0 = dt.datetime(2026, 3, 1, 12, 0, tzinfo=dt.timezone.utc)


def tracker():
    return MigrationTracker(clock=lambda: T0)


def walk_to(t, target, snapshot):
    for s in FORWARD[1:]:
        if s == S.DISCONNECTED_FROM_SOURCE:
            t.snapshot_persisted(snapshot)
        t.advance(s)
        if s == target:
            return t
    return t


@pytest.fixture
def snap_file(tmp_path):
    p = tmp_path / "esx01_premigration_20260301_120000.json"
    p.write_text("{}")
    return p


@pytest.mark.unit
class TestMigrationTracker:
    def test_starts_not_started(self):
        t = tracker()
        assert t.state is S.NOT_STARTED
        assert t.history[0].at == "2026-03-01T12:00:00.000+00:00"
        assert not t.is_terminal

    def test_full_forward_path(self, snap_file):
        t = walk_to(tracker(), S.COMPLETED, snap_file)
        assert t.states() == list(FORWARD)
        assert t.is_terminal

    def test_skipping_a_state_is_illegal(self):
        t = tracker()
        with pytest.raises(StateTransitionError, match="NotStarted -> LockdownHandled"):
            t.advance(S.LOCKDOWN_HANDLED)
        assert t.state is S.NOT_STARTED

    def test_no_way_back(self, snap_file):
        t = walk_to(tracker(), S.LOCKDOWN_HANDLED, snap_file)
        with pytest.raises(StateTransitionError):
            t.advance(S.PREFLIGHT_VALIDATED)

    def test_disconnect_needs_persisted_snapshot(self, snap_file):
        t = walk_to(tracker(), S.PRE_MIGRATION_BACKED_UP, snap_file)
        with pytest.raises(StateTransitionError, match="not persisted"):
            t.advance(S.DISCONNECTED_FROM_SOURCE)

    def test_snapshot_must_exist(self, tmp_path):
        with pytest.raises(StateTransitionError, match="does not exist"):
            tracker().snapshot_persisted(tmp_path / "missing.json")

    def test_snapshot_removed_before_disconnect(self, snap_file):
        t = walk_to(tracker(), S.PRE_MIGRATION_BACKED_UP, snap_file)
        t.snapshot_persisted(snap_file)
        snap_file.unlink()
        with pytest.raises(StateTransitionError):
            t.advance(S.DISCONNECTED_FROM_SOURCE)

    def test_require_snapshot(self, snap_file):
        t = tracker()
        with pytest.raises(StateTransitionError, match="not persisted"):
            t.require_snapshot()
        t.snapshot_persisted(snap_file)
        t.require_snapshot()
        snap_file.unlink()
        with pytest.raises(StateTransitionError, match="not persisted"):
            t.require_snapshot()
        assert t.state is S.NOT_STARTED

    def test_fail_before_point_of_no_return(self, snap_file):
        t = walk_to(tracker(), S.PRE_MIGRATION_BACKED_UP, snap_file)
        assert not t.past_point_of_no_return
        t.fail("capture failed")
        assert t.state is S.FAILED
        assert t.history[-1].note == "capture failed"

    def test_fail_after_point_of_no_return(self, snap_file):
        t = walk_to(tracker(), POINT_OF_NO_RETURN, snap_file)
        assert t.past_point_of_no_return
        t.fail()
        assert t.state is S.ROLLED_BACK

    def test_terminal_states_are_final(self, snap_file):
        t = walk_to(tracker(), S.COMPLETED, snap_file)
        t.fail()
        assert t.state is S.COMPLETED
        with pytest.raises(StateTransitionError):
            t.advance(S.ROLLED_BACK)

    def test_rolled_back_only_after_disconnect(self):
        t = tracker()
        assert not t.can_transition(S.ROLLED_BACK)
        assert t.can_transition(S.FAILED)

    def test_str_is_value(self):
        assert str(S.CONFIG_RESTORED) == "ConfigRestored"
