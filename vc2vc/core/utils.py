# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vc2vc/core/utils.py
from __future__ import annotations

import datetime as _dt
import getpass
import json
import logging
import os
import sys
import tempfile
from pathlib import Path
from typing import Any, Optional

from .exceptions import Fatal


class U:
    @staticmethod
    def die(logger: logging.Logger, msg: str, code: int = 1) -> None:
        """Log msg as an error and stop the run with exit code `code`."""
        logger.error(msg)
        raise Fatal(code, msg)

    @staticmethod
    def now_ts() -> str:
        """Timestamp used in file names: yyyyMMdd_HHmmss."""
        return _dt.datetime.now().strftime("%Y%m%d_%H%M%S")

    @staticmethod
    def now_iso() -> str:
        return _dt.datetime.now(tz=_dt.timezone.utc).isoformat(timespec="seconds")

    @staticmethod
    def current_user() -> str:
        try:
            return getpass.getuser()
        except Exception:
            return os.environ.get("USER") or os.environ.get("USERNAME") or "unknown"

    @staticmethod
    def json_dump(obj: Any) -> str:
        """Stable, human-diffable JSON (sorted keys, unknown types via str)."""
        return json.dumps(obj, indent=2, sort_keys=True, default=str)

    @staticmethod
    def human_bytes(n: Optional[int]) -> str:
        if n is None:
            return "unknown"
        if n < 1024:
            return f"{int(n)} B"
        size = float(n)
        units = ("KiB", "MiB", "GiB", "TiB")
        for unit in units:
            size /= 1024
            if size < 1024 or unit == units[-1]:
                break
        return f"{size:.2f} {unit}"

    @staticmethod
    def banner(logger: logging.Logger, title: str) -> None:
        rule = "═" * max(10, len(title) + 4)
        for line in (rule, f"  {title}", rule):
            logger.info(line)

    @staticmethod
    def check_writable_dir(p: Path) -> None:
        """Create p if needed and prove we can write into it (raises OSError)."""
        p.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".vc2vc-probe-", dir=str(p))
        os.close(fd)
        Path(tmp).unlink()

    @staticmethod
    def atomic_write_text(path: Path, text: str, *, encoding: str = "utf-8") -> None:
        """
        Crash-safer atomic write:
          - write to unique temp file in same directory
          - fsync file
          - atomic replace
          - best-effort fsync directory entry
        """
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(prefix=path.name + ".", suffix=".tmp", dir=str(path.parent), text=True)
        try:
            with os.fdopen(fd, "w", encoding=encoding) as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            Path(tmp_name).replace(path)
        finally:
            Path(tmp_name).unlink(missing_ok=True)

        try:
            dirfd = os.open(str(path.parent), os.O_DIRECTORY)
            try:
                os.fsync(dirfd)
            finally:
                os.close(dirfd)
        except (AttributeError, OSError):
            pass

    @staticmethod
    def safe_unlink(p: Path, *, missing_ok: bool = True) -> None:
        Path(p).unlink(missing_ok=missing_ok)


def is_tty(stream=None) -> bool:
    """True when stream (default stdout) is an interactive terminal."""
    isatty = getattr(stream if stream is not None else sys.stdout, "isatty", None)
    try:
        return bool(isatty and isatty())
    except (OSError, ValueError):
        return False
