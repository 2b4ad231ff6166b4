# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vc2vc/cli/args/groups.py
from __future__ import annotations

import argparse

from ...snapshot.model import FACETS


def _add_global_config_logging(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # Global config/logging (two-phase parse relies on these)
    # ------------------------------------------------------------------
    from ... import __version__

    p.add_argument(
        "--config",
        action="append",
        default=[],
        help="YAML/JSON config file (repeatable; later overrides earlier).",
    )
    p.add_argument("--dump-config", action="store_true", help="Print merged normalized config and exit.")
    p.add_argument("--dump-args", action="store_true", help="Print final parsed args and exit.")
    p.add_argument("--version", action="version", version=__version__)
    p.add_argument("-v", "--verbose", action="count", default=0, help="Verbosity: -v, -vv, -vvv (trace)")
    p.add_argument(
        "--log-file",
        dest="log_file",
        default=None,
        help="Write logs to file (default: <backup-dir>/logs/vc2vc-<timestamp>.log).",
    )
    p.add_argument("--json-logs", dest="json_logs", action="store_true", help="Emit JSON lines on stderr.")


def _add_action(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # What to do (normally from YAML `action:`)
    # ------------------------------------------------------------------
    p.add_argument(
        "--action",
        dest="action",
        default=None,
        choices=["backup", "restore", "migrate"],
        help="backup: capture host config; restore: diff-apply a snapshot; migrate: move the host to --target-vcenter.",
    )
    p.add_argument("--dry-run", dest="dry_run", action="store_true", help="restore: report what would change, change nothing.")


def _add_host_identity(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # ESXi host (direct credentials are needed for migrate)
    # ------------------------------------------------------------------
    p.add_argument("--host", dest="host", default=None, help="ESXi host name as registered in vCenter")
    p.add_argument("--host-user", dest="host_user", default="root", help="ESXi direct-connect user")
    p.add_argument("--host-password", dest="host_password", default=None, help="ESXi password (or use --host-password-env)")
    p.add_argument("--host-password-env", dest="host_password_env", default=None, help="Env var containing the ESXi password")


def _add_vcenter_knobs(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # Source vCenter (backup/restore act on it)
    # ------------------------------------------------------------------
    p.add_argument("--vcenter", default=None, help="Source vCenter hostname or IP")
    p.add_argument("--vc-user", dest="vc_user", default=None, help="vCenter username")
    p.add_argument("--vc-password", dest="vc_password", default=None, help="vCenter password (or use --vc-password-env)")
    p.add_argument("--vc-password-env", dest="vc_password_env", default=None, help="Env var containing vCenter password")
    p.add_argument("--vc-port", dest="vc_port", type=int, default=443, help="vCenter HTTPS port")
    p.add_argument("--vc-insecure", dest="vc_insecure", action="store_true", help="Disable TLS verification")


def _add_target_knobs(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # Target vCenter + placement (migrate)
    # ------------------------------------------------------------------
    p.add_argument("--target-vcenter", dest="target_vcenter", default=None, help="Target vCenter hostname or IP")
    p.add_argument("--target-vc-user", dest="target_vc_user", default=None, help="Target vCenter username (default: --vc-user)")
    p.add_argument(
        "--target-vc-password",
        dest="target_vc_password",
        default=None,
        help="Target vCenter password (default: --vc-password)",
    )
    p.add_argument("--target-vc-password-env", dest="target_vc_password_env", default=None, help="Env var containing target vCenter password")
    p.add_argument("--target-vc-port", dest="target_vc_port", type=int, default=None, help="Target vCenter HTTPS port (default: --vc-port)")
    p.add_argument("--target-datacenter", dest="target_datacenter", default=None, help="Datacenter in the target vCenter")
    p.add_argument("--target-cluster", dest="target_cluster", default=None, help="Cluster in the target datacenter (omit: standalone)")
    p.add_argument(
        "--remove-from-source",
        dest="remove_from_source",
        action="store_true",
        help="After a successful migration, remove the stale disconnected entry from the source vCenter.",
    )


def _add_snapshot_knobs(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # Snapshot files
    # ------------------------------------------------------------------
    p.add_argument("--backup-dir", dest="backup_dir", default="./backups", help="Directory for snapshot files")
    p.add_argument("--backup-file", dest="backup_file", default=None, help="restore: explicit snapshot file (default: newest for --host)")
    p.add_argument(
        "--facets",
        dest="facets",
        default=None,
        help=f"restore: comma-separated facets to apply (default: all). Choices: {','.join(FACETS)}",
    )


def _add_behaviour_knobs(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # Timing / retries / uplinks
    # ------------------------------------------------------------------
    p.add_argument("--timeout", dest="timeout", type=float, default=300.0, help="Seconds to wait for host state changes and tasks")
    p.add_argument("--settle", dest="settle_s", type=float, default=10.0, help="Seconds to wait after disconnect before touching the host")
    p.add_argument("--retry-attempts", dest="retry_attempts", type=int, default=3, help="Attempts for every mutating vSphere call")
    p.add_argument("--retry-base", dest="retry_base_s", type=float, default=2.0, help="First retry delay in seconds (doubles per attempt)")
    p.add_argument("--retry-max", dest="retry_max_s", type=float, default=30.0, help="Retry delay ceiling in seconds")
    p.add_argument(
        "--uplink-portgroup",
        dest="uplink_portgroup",
        default=None,
        help="Uplink portgroup name on the distributed switch (default: auto-detect)",
    )
