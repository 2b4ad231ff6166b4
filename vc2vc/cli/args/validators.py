# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vc2vc/cli/args/validators.py
from __future__ import annotations

import argparse
import os
from typing import Any, Dict

from ...snapshot.model import FACETS
from .helpers import _merged_get, _require


def _validate_source_vcenter(args: argparse.Namespace, conf: Dict[str, Any], action: str) -> None:
    if not _require(_merged_get(args, conf, "vcenter")):
        raise SystemExit(f"action={action}: missing --vcenter (or YAML `vcenter:`)")
    if not _require(_merged_get(args, conf, "vc_user")):
        raise SystemExit(f"action={action}: missing --vc-user (or YAML `vc_user:`)")
    if not _require(getattr(args, "vc_password", None)):
        raise SystemExit(f"action={action}: missing vCenter password (--vc-password or --vc-password-env)")


def _validate_facets(args: argparse.Namespace) -> None:
    raw = getattr(args, "facets", None)
    if not _require(raw) and not isinstance(raw, (list, tuple)):
        return
    items = raw.split(",") if isinstance(raw, str) else list(raw)
    wanted = [str(f).strip() for f in items if str(f).strip()]
    unknown = sorted(set(wanted) - set(FACETS))
    if unknown:
        raise SystemExit(f"--facets: unknown facet(s) {', '.join(unknown)}; choose from {', '.join(FACETS)}")


def _validate_action_backup(args: argparse.Namespace, conf: Dict[str, Any]) -> None:
    _validate_source_vcenter(args, conf, "backup")


def _validate_action_restore(args: argparse.Namespace, conf: Dict[str, Any]) -> None:
    _validate_source_vcenter(args, conf, "restore")
    bf = _merged_get(args, conf, "backup_file")
    if _require(bf) and not os.path.isfile(os.path.expanduser(str(bf))):
        raise SystemExit(f"--backup-file not found: {bf}")
    _validate_facets(args)


def _validate_action_migrate(args: argparse.Namespace, conf: Dict[str, Any]) -> None:
    _validate_source_vcenter(args, conf, "migrate")
    target = _merged_get(args, conf, "target_vcenter")
    if not _require(target):
        raise SystemExit("action=migrate: missing --target-vcenter (or YAML `target_vcenter:`)")
    if str(target).strip().lower() == str(_merged_get(args, conf, "vcenter")).strip().lower():
        raise SystemExit("action=migrate: --target-vcenter must differ from --vcenter")
    if not _require(_merged_get(args, conf, "target_datacenter")):
        raise SystemExit("action=migrate: missing --target-datacenter (or YAML `target_datacenter:`)")
    if not _require(getattr(args, "target_vc_password", None)) and not _require(getattr(args, "vc_password", None)):
        raise SystemExit("action=migrate: missing target vCenter password (--target-vc-password or --target-vc-password-env)")
    if not _require(getattr(args, "host_password", None)):
        raise SystemExit("action=migrate: missing ESXi password (--host-password or --host-password-env)")
    timeout = getattr(args, "timeout", None)
    if timeout is not None and float(timeout) <= 0:
        raise SystemExit("--timeout must be positive")
    if _require(getattr(args, "facets", None)):
        raise SystemExit("--facets applies to restore only; migrate always restores every facet")


def validate_args(args: argparse.Namespace, conf: Dict[str, Any]) -> None:
    """
    Per-action requirements, checked before any connection is made.
    Secrets must already be resolved onto args.
    """
    action = _merged_get(args, conf, "action")
    if not _require(action):
        raise SystemExit("Missing --action (or YAML `action:`); choose backup, restore or migrate")
    if not _require(_merged_get(args, conf, "host")):
        raise SystemExit(f"action={action}: missing --host (or YAML `host:`)")

    validators = {
        "backup": _validate_action_backup,
        "restore": _validate_action_restore,
        "migrate": _validate_action_migrate,
    }
    fn = validators.get(str(action).strip().lower())
    if fn is None:
        raise SystemExit(f"Unknown action {action!r}; choose backup, restore or migrate")
    fn(args, conf)

    n = getattr(args, "retry_attempts", None)
    if n is not None and int(n) < 1:
        raise SystemExit("--retry-attempts must be >= 1")
