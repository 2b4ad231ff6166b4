# SPDX-License-Identifier: LGPL-3.0-or-later
# vc2vc/cli/args/parser.py
from __future__ import annotations

import argparse
import sys
from typing import Any, Dict, Optional, Sequence, Tuple

from ...config.config_loader import Config
from ...core.logger import Log, c
from ...core.utils import U
from .builder import HelpFormatter, _build_epilog
from .groups import (
    _add_action,
    _add_behaviour_knobs,
    _add_global_config_logging,
    _add_host_identity,
    _add_snapshot_knobs,
    _add_target_knobs,
    _add_vcenter_knobs,
)
from .helpers import _default_log_file, _masked, _merged_get, _resolve_secrets
from .validators import validate_args


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="vc2vc",
        description=c("vc2vc: back up, restore and migrate ESXi hosts between vCenter servers", "green", ["bold"]),
        formatter_class=HelpFormatter,
        epilog=_build_epilog(),
    )

    _add_global_config_logging(p)
    _add_action(p)
    _add_host_identity(p)
    _add_vcenter_knobs(p)
    _add_target_knobs(p)
    _add_snapshot_knobs(p)
    _add_behaviour_knobs(p)
    return p


def _build_preparser() -> argparse.ArgumentParser:
    """Just enough flags to find the config files and open logging."""
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--config", action="append", default=[])
    pre.add_argument("-v", "--verbose", action="count", default=0)
    pre.add_argument("--log-file", dest="log_file")
    pre.add_argument("--json-logs", dest="json_logs", action="store_true")
    pre.add_argument("--backup-dir", dest="backup_dir")
    for flag in ("--dump-config", "--dump-args"):
        pre.add_argument(flag, action="store_true")
    return pre


def _load_merged_config(logger: Any, cfgs: Sequence[str]) -> Dict[str, Any]:
    return Config.load_many(logger, Config.expand_configs(logger, list(cfgs))) if cfgs else {}


def parse_args_with_config(
    argv: Optional[Sequence[str]] = None,
    logger: Any = None,
) -> Tuple[argparse.Namespace, Dict[str, Any], Any]:
    """
    Parse the command line with YAML underneath it.

    A pre-parse finds --config and the logging flags, the merged YAML becomes
    parser defaults (so any flag on the command line overrides it), secrets are
    resolved, and the chosen action is validated. When no logger is passed in,
    logging is set up twice: on stderr right away, then again with the run's
    log file once backup_dir is known.

    Returns (args, merged_config, logger).
    """
    argv = list(sys.argv[1:] if argv is None else argv)
    early, _ = _build_preparser().parse_known_args(argv)

    own_logger = logger is None
    if own_logger:
        logger = Log.setup(early.verbose, early.log_file, json_logs=early.json_logs)

    conf = _load_merged_config(logger, early.config)
    if early.dump_config:
        print(U.json_dump(conf))
        raise SystemExit(0)

    parser = build_parser()
    Config.apply_as_defaults(logger, parser, conf)
    args = parser.parse_args(argv)
    _resolve_secrets(args, conf)

    if early.dump_args:
        print(U.json_dump(_masked(args)))
        raise SystemExit(0)

    validate_args(args, conf)

    args.log_file = args.log_file or _default_log_file(_merged_get(args, conf, "backup_dir"))
    if own_logger:
        logger = Log.setup(int(args.verbose or 0), args.log_file, json_logs=bool(args.json_logs))
        logger.info("📝 Log file: %s", args.log_file)
    return args, conf, logger
