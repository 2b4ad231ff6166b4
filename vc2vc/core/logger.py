# SPDX-License-Identifier: LGPL-3.0-or-later
# vc2vc/core/logger.py
"""
Logging for vc2vc.

One named logger ("vc2vc"), two sinks:

  stderr    short emoji/colour lines for the operator
  log file  full timestamps, source location and context, never coloured

Call sites attach structured context with extra={"ctx": {...}} (the Log.step /
Log.ok / ... helpers take it as keyword arguments). Context keys that look like
credentials are redacted in both sinks.
"""
from __future__ import annotations

import datetime as _dt
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from termcolor import colored as _colored

from .exceptions import redact_context
from .utils import is_tty

TRACE = 5
if not hasattr(logging, "TRACE"):
    logging.TRACE = TRACE  # type: ignore[attr-defined]
    logging.addLevelName(TRACE, "TRACE")

LOGGER_NAME = "vc2vc"

_LEVEL_EMOJI = {
    "TRACE": "🧬",
    "DEBUG": "🔍",
    "INFO": "✅",
    "WARNING": "⚠️",
    "ERROR": "💥",
    "CRITICAL": "🧨",
}
_LEVEL_COLOR = {
    "TRACE": "cyan",
    "DEBUG": "blue",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red",
}


def _supports_unicode(stream: Any = None) -> bool:
    enc = getattr(stream or sys.stderr, "encoding", None) or "utf-8"
    try:
        "✅".encode(enc)
        return True
    except (LookupError, UnicodeEncodeError):
        return False


def c(text: str, color: Optional[str] = None, attrs: Optional[List[str]] = None, *, enable: bool = True) -> str:
    """Colorize text when enabled."""
    if not enable or not color:
        return text
    return _colored(text, color=color, attrs=attrs or [])


def _clip(v: Any, max_len: int = 240) -> str:
    s = str(v).replace("\n", "\\n").replace("\r", "\\r")
    return s if len(s) <= max_len else s[: max_len - 1] + "…"


def _record_ctx(record: logging.LogRecord) -> Dict[str, Any]:
    ctx = getattr(record, "ctx", None)
    if not isinstance(ctx, Mapping) or not ctx:
        return {}
    return redact_context(dict(ctx))


@dataclass(frozen=True)
class LogStyle:
    color: bool = True
    unicode: bool = True
    show_date: bool = False
    show_ms: bool = False
    show_src: bool = False
    utc: bool = False


class EmojiFormatter(logging.Formatter):
    """`HH:MM:SS ✅ INFO     message key=value ...`, plus an indented traceback."""

    def __init__(self, style: LogStyle):
        super().__init__()
        self._style = style

    def _stamp(self, created: float) -> str:
        tz = _dt.timezone.utc if self._style.utc else None
        dt = _dt.datetime.fromtimestamp(created, tz=tz)
        s = dt.strftime(("%Y-%m-%d " if self._style.show_date else "") + "%H:%M:%S")
        if self._style.show_ms:
            s += f".{dt.microsecond // 1000:03d}"
        return s

    def format(self, record: logging.LogRecord) -> str:
        color_ok = self._style.color and is_tty(sys.stderr)
        emoji = _LEVEL_EMOJI.get(record.levelname, "•") if self._style.unicode else "·"
        lvl = c(record.levelname, _LEVEL_COLOR.get(record.levelname), enable=color_ok)
        msg = record.getMessage()
        if record.levelno >= logging.WARNING:
            msg = c(msg, _LEVEL_COLOR.get(record.levelname), ["bold"], enable=color_ok)

        src = f" [{record.name} {record.module}:{record.lineno}]" if self._style.show_src else ""
        ctx = "".join(f" {k}={_clip(v)}" for k, v in sorted(_record_ctx(record).items()))
        line = f"{self._stamp(record.created)} {emoji} {lvl:<8}{src} {msg}{ctx}"

        if record.exc_info:
            tb = "\n".join("  " + ln for ln in self.formatException(record.exc_info).splitlines())
            line += "\n" + c(tb, "red", enable=color_ok)
        return line


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def __init__(self, *, utc: bool = True):
        super().__init__()
        self._utc = utc

    def format(self, record: logging.LogRecord) -> str:
        tz = _dt.timezone.utc if self._utc else None
        obj: Dict[str, Any] = {
            "ts": _dt.datetime.fromtimestamp(record.created, tz=tz).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "module": record.module,
            "lineno": record.lineno,
        }
        ctx = _record_ctx(record)
        if ctx:
            obj["ctx"] = {str(k): _clip(v) for k, v in ctx.items()}
        if record.exc_info:
            obj["exc_type"] = record.exc_info[0].__name__ if record.exc_info[0] else "Exception"
            obj["traceback"] = self.formatException(record.exc_info)
        return json.dumps(obj, ensure_ascii=False, default=str)


class Log:
    @staticmethod
    def level_for(verbose: int) -> int:
        """-v INFO (default), -vv DEBUG, -vvv TRACE."""
        if verbose >= 3:
            return TRACE
        if verbose >= 2:
            return logging.DEBUG
        return logging.INFO

    @staticmethod
    def _ctx(ctx: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        return {"ctx": dict(ctx)} if ctx else None

    @staticmethod
    def banner(logger: logging.Logger, title: str, *, char: str = "─") -> None:
        width = 72
        t = f" {title.strip()} "
        pad = char * max(8, (width - len(t)) // 2)
        logger.info((pad + t + pad)[:width])

    @staticmethod
    def step(logger: logging.Logger, msg: str, **ctx: Any) -> None:
        logger.info("➡️  %s", msg, extra=Log._ctx(ctx))

    @staticmethod
    def ok(logger: logging.Logger, msg: str, **ctx: Any) -> None:
        logger.info("✅ %s", msg, extra=Log._ctx(ctx))

    @staticmethod
    def warn(logger: logging.Logger, msg: str, **ctx: Any) -> None:
        logger.warning("⚠️  %s", msg, extra=Log._ctx(ctx))

    @staticmethod
    def fail(logger: logging.Logger, msg: str, **ctx: Any) -> None:
        logger.error("💥 %s", msg, extra=Log._ctx(ctx))

    @staticmethod
    def trace(logger: logging.Logger, msg: str, *args: Any, **ctx: Any) -> None:
        if logger.isEnabledFor(TRACE):
            logger.log(TRACE, msg, *args, extra=Log._ctx(ctx))

    @staticmethod
    def setup(
        verbose: int = 0,
        log_file: Optional[str] = None,
        *,
        color: bool = True,
        utc: bool = False,
        json_logs: bool = False,
        logger_name: str = LOGGER_NAME,
    ) -> logging.Logger:
        """
        (Re)configure and return the project logger. Safe to call twice: the
        CLI sets up stderr first and adds the run's log file once it is known.
        """
        logger = logging.getLogger(logger_name)
        logger.propagate = False
        level = Log.level_for(verbose)

        for h in list(logger.handlers):
            logger.removeHandler(h)
            h.close()

        unicode_ok = _supports_unicode()
        sh = logging.StreamHandler(stream=sys.stderr)
        sh.setLevel(level)
        sh.setFormatter(
            JsonFormatter(utc=utc)
            if json_logs
            else EmojiFormatter(LogStyle(color=color, unicode=unicode_ok, show_ms=verbose >= 3, show_src=verbose >= 3, utc=utc))
        )
        logger.addHandler(sh)
        logger.setLevel(level)

        if log_file:
            fp = Path(log_file).expanduser().resolve()
            fp.parent.mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(fp, mode="a", encoding="utf-8")
            # the file always gets DEBUG, whatever the console shows
            fh.setLevel(min(level, logging.DEBUG))
            fh.setFormatter(
                JsonFormatter(utc=utc)
                if json_logs
                else EmojiFormatter(LogStyle(color=False, unicode=unicode_ok, show_date=True, show_ms=True, show_src=True, utc=utc))
            )
            logger.addHandler(fh)
            logger.setLevel(min(level, logging.DEBUG))

        logger.debug("Logger initialized (level=%s, log_file=%s)", logging.getLevelName(level), log_file)
        Log.trace(logger, "TRACE enabled (verbose >= 3)")
        return logger
