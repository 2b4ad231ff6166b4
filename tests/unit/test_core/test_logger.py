# SPDX-License-Identifier: LGPL-3.0-or-later
from __future__ import annotations

import json
import logging
import sys

import pytest

from vc2vc.core.logger import TRACE, EmojiFormatter, JsonFormatter, Log, LogStyle


def record(msg, level=logging.INFO, ctx=None, exc_info=None):
    r = logging.LogRecord("vc2vc", level, __file__, 42, msg, (), exc_info)
    if ctx is not None:
        r.ctx = ctx
    return r


@pytest.fixture
def fresh_logger():
    name = "vc2vc-test"
    yield name
    lg = logging.getLogger(name)
    for h in list(lg.handlers):
        lg.removeHandler(h)
        h.close()


@pytest.mark.unit
class TestFormatters:
    def test_emoji_line_with_context(self):
        line = EmojiFormatter(LogStyle(color=False)).format(record("Restoring network", ctx={"host": "esx01", "facet": "network"}))
        assert "✅ INFO" in line
        assert line.endswith("Restoring network facet=network host=esx01")

    def test_ascii_fallback(self):
        line = EmojiFormatter(LogStyle(color=False, unicode=False)).format(record("x", level=logging.WARNING))
        assert " · WARNING" in line

    def test_traceback_is_indented(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            exc = sys.exc_info()
        line = EmojiFormatter(LogStyle(color=False)).format(record("failed", level=logging.ERROR, exc_info=exc))
        assert "\n  Traceback" in line
        assert "RuntimeError: boom" in line

    def test_json_line(self):
        obj = json.loads(JsonFormatter().format(record("disconnected", ctx={"host": "esx01"})))
        assert obj["msg"] == "disconnected"
        assert obj["level"] == "INFO"
        assert obj["ctx"] == {"host": "esx01"}
        assert obj["ts"].endswith("+00:00")


@pytest.mark.security
class TestRedaction:
    def test_password_context_is_redacted(self):
        rec = record("connect", ctx={"user": "root", "password": "esx-secret"})
        line = EmojiFormatter(LogStyle(color=False)).format(rec)
        obj = json.loads(JsonFormatter().format(rec))
        assert "esx-secret" not in line
        assert obj["ctx"]["password"] == "***REDACTED***"


@pytest.mark.unit
class TestSetup:
    @pytest.mark.parametrize("verbose, level", [(0, logging.INFO), (1, logging.INFO), (2, logging.DEBUG), (3, TRACE)])
    def test_levels(self, verbose, level):
        assert Log.level_for(verbose) == level

    def test_file_gets_debug(self, tmp_path, fresh_logger):
        path = tmp_path / "logs" / "run.log"
        lg = Log.setup(0, str(path), color=False, logger_name=fresh_logger)

        lg.debug("hidden on console")
        Log.step(lg, "Disconnecting", host="esx01")
        for h in lg.handlers:
            h.flush()

        text = path.read_text(encoding="utf-8")
        assert "hidden on console" in text
        assert "Disconnecting host=esx01" in text
        assert lg.handlers[0].level == logging.INFO

    def test_setup_twice_replaces_handlers(self, fresh_logger):
        Log.setup(0, logger_name=fresh_logger)
        lg = Log.setup(2, logger_name=fresh_logger)
        assert len(lg.handlers) == 1
        assert lg.level == logging.DEBUG

    def test_trace_only_when_enabled(self, fresh_logger):
        lg = Log.setup(0, logger_name=fresh_logger)
        seen = []
        lg.log = lambda *a, **k: seen.append(a)
        Log.trace(lg, "deep detail %s", 1)
        assert seen == []
