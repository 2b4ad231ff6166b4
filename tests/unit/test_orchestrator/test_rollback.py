# SPDX-License-Identifier: LGPL-3.0-or-later
from __future__ import annotations

import pytest

from tests.fakes.fake_logger import FakeLogger
from tests.fakes.fake_vsphere import HOST, SOURCE, TARGET, FakeVsphereClient, endpoints
from vc2vc.capture.capture import HostCapture
from vc2vc.core.exceptions import PhaseError
from vc2vc.orchestrator.rollback import Rollback


def left_source(world):
    """Snapshot on the source, then the host shows up in the target."""
    snap = HostCapture(FakeLogger(), FakeVsphereClient(world.domains[SOURCE])).capture(HOST)
    world.domains[TARGET].register(world.hosts[HOST], datacenter="DC-New")
    return snap


@pytest.mark.unit
class TestRollback:
    def test_reconnects_host_to_source(self, world):
        snap = left_source(world)
        identity, _src, _tgt = endpoints(world)
        src = world.domains[SOURCE]
        assert src.entries[HOST].state == "disconnected"

        report = Rollback(FakeLogger()).run(FakeVsphereClient(src), identity, snap)

        assert world.owner_of(HOST) == SOURCE
        assert src.mutations() == ["reconnect_host"]
        assert report.is_empty

    def test_only_network_is_reapplied(self, world):
        snap = left_source(world)
        identity, _src, _tgt = endpoints(world)
        h = world.hosts[HOST]
        h.vswitches["vSwitch0"]["mtu"] = 9000
        h.ntp = ["ntp.elsewhere.net"]

        report = Rollback(FakeLogger()).run(FakeVsphereClient(world.domains[SOURCE]), identity, snap)

        assert [(c.facet, c.item) for c in report.changes] == [("network", "vSwitch vSwitch0")]
        assert h.vswitches["vSwitch0"]["mtu"] == 1500
        assert h.ntp == ["ntp.elsewhere.net"]

    def test_connected_host_is_not_reconnected(self, world):
        snap = HostCapture(FakeLogger(), FakeVsphereClient(world.domains[SOURCE])).capture(HOST)
        identity, _src, _tgt = endpoints(world)

        Rollback(FakeLogger()).run(FakeVsphereClient(world.domains[SOURCE]), identity, snap)

        assert "reconnect_host" not in world.domains[SOURCE].mutations()

    def test_host_missing_from_source(self, world):
        snap = left_source(world)
        identity, _src, _tgt = endpoints(world)
        del world.domains[SOURCE].entries[HOST]

        with pytest.raises(PhaseError, match="not found in vc-old.lab.local"):
            Rollback(FakeLogger()).run(FakeVsphereClient(world.domains[SOURCE]), identity, snap)

    def test_run_safely_swallows_and_logs(self, world):
        snap = left_source(world)
        identity, _src, _tgt = endpoints(world)
        world.domains[SOURCE].fail("reconnect_host", RuntimeError("InvalidLogin"))
        log = FakeLogger()

        assert Rollback(log).run_safely(FakeVsphereClient(world.domains[SOURCE]), identity, snap) is None
        assert log.has("Rollback of esx01.lab.local failed: InvalidLogin", "error")
