# SPDX-License-Identifier: LGPL-3.0-or-later
# vc2vc/cli/args/helpers.py
from __future__ import annotations

import argparse
import os
from pathlib import Path
from typing import Any, Dict, Optional

from ...core.utils import U

# (value key, key naming an environment variable that holds the value)
SECRET_KEYS = (
    ("vc_password", "vc_password_env"),
    ("target_vc_password", "target_vc_password_env"),
    ("host_password", "host_password_env"),
)


def _require(v: Any) -> bool:
    """Blank strings count as absent."""
    return v is not None and (not isinstance(v, str) or bool(v.strip()))


def _merged_get(args: argparse.Namespace, conf: Dict[str, Any], key: str) -> Any:
    """The flag when it was given, otherwise the merged YAML value."""
    v = getattr(args, key, None)
    return v if _require(v) else conf.get(key)


def _merged_secret(args: argparse.Namespace, conf: Dict[str, Any], value_key: str, env_key: str) -> Optional[str]:
    """A literal password wins over a *_env indirection; either may come from CLI or YAML."""
    literal = _merged_get(args, conf, value_key)
    if _require(literal):
        return str(literal)
    var = _merged_get(args, conf, env_key)
    return os.environ.get(str(var)) if _require(var) else None


def _resolve_secrets(args: argparse.Namespace, conf: Dict[str, Any]) -> None:
    # resolved once here; nothing downstream reads the environment
    for value_key, env_key in SECRET_KEYS:
        setattr(args, value_key, _merged_secret(args, conf, value_key, env_key))


def _masked(args: argparse.Namespace) -> Dict[str, Any]:
    return {k: ("***" if v and "password" in k else v) for k, v in vars(args).items()}


def _default_log_file(backup_dir: Optional[str]) -> str:
    return str(Path(backup_dir or "./backups").expanduser() / "logs" / f"vc2vc-{U.now_ts()}.log")
