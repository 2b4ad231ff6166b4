# SPDX-License-Identifier: LGPL-3.0-or-later
from __future__ import annotations

from types import SimpleNamespace as NS
from unittest.mock import patch

import pytest

from tests.fakes.fake_logger import FakeLogger
from vc2vc.__main__ import main
from vc2vc.core.exceptions import Fatal


def exit_code(argv=()):
    with pytest.raises(SystemExit) as ei:
        main(list(argv))
    return ei.value.code


@pytest.mark.unit
class TestMain:
    def test_config_error_exit_code(self, capsys):
        with patch("vc2vc.__main__.parse_args_with_config", side_effect=Fatal(code=2, msg="Config not found: x.yaml")):
            assert exit_code() == 2
        assert "Config not found: x.yaml" in capsys.readouterr().err

    def test_result_message_and_code(self, capsys):
        log = FakeLogger()
        with patch("vc2vc.__main__.parse_args_with_config", return_value=(NS(), {}, log)), patch(
            "vc2vc.__main__.Orchestrator"
        ) as orch:
            orch.return_value.run.return_value = NS(exit_code=0, message="Backup written: esx01_20260101_000000.json")
            assert exit_code() == 0
        assert "Backup written" in capsys.readouterr().out

    def test_unexpected_error_is_logged(self):
        log = FakeLogger()
        with patch("vc2vc.__main__.parse_args_with_config", return_value=(NS(), {}, log)), patch(
            "vc2vc.__main__.Orchestrator"
        ) as orch:
            orch.return_value.run.side_effect = KeyError("portgroup")
            assert exit_code() == 1
        assert log.has("UNHANDLED KeyError", "error")

    def test_ctrl_c(self):
        with patch("vc2vc.__main__.parse_args_with_config", side_effect=KeyboardInterrupt):
            assert exit_code() == 130
