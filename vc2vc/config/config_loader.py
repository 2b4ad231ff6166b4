# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vc2vc/config/config_loader.py
from __future__ import annotations

import argparse
import glob
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List

import yaml

from ..core.utils import U

# YAML spellings that map onto a different argparse dest
_ALIASES = {
    "source_vcenter": "vcenter",
    "datacenter": "target_datacenter",
    "cluster": "target_cluster",
    "backup_path": "backup_dir",
    "timeout_seconds": "timeout",
}


class Config:
    """
    YAML/JSON config files -> one flat dict -> argparse defaults.

    Later files win. Nested mappings are merged key by key so an override file
    can change a single knob without restating its siblings.
    """

    @staticmethod
    def expand_configs(logger: logging.Logger, cfgs: List[str]) -> List[Path]:
        out: List[Path] = []
        for raw in cfgs:
            pattern = os.path.expandvars(os.path.expanduser(str(raw)))
            matches = sorted(glob.glob(pattern)) if any(ch in pattern for ch in "*?[") else [pattern]
            if not matches:
                U.die(logger, f"Config pattern matched nothing: {raw}", 2)
            for m in matches:
                p = Path(m)
                if not p.is_file():
                    U.die(logger, f"Config file not found: {p}", 2)
                out.append(p)
        logger.debug("Config files: %s", [str(p) for p in out])
        return out

    @staticmethod
    def load_one(logger: logging.Logger, path: Path) -> Dict[str, Any]:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            U.die(logger, f"Cannot read config {path}: {e}", 2)
        try:
            if path.suffix.lower() == ".json":
                data = json.loads(text)
            else:
                data = yaml.safe_load(text)
        except (yaml.YAMLError, ValueError) as e:
            U.die(logger, f"Config {path} is not valid YAML/JSON: {e}", 2)
        if data is None:
            return {}
        if not isinstance(data, dict):
            U.die(logger, f"Config {path}: top level must be a mapping, got {type(data).__name__}", 2)
        return data

    @staticmethod
    def merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        out = dict(base)
        for k, v in override.items():
            if isinstance(v, dict) and isinstance(out.get(k), dict):
                out[k] = Config.merge(out[k], v)
            else:
                out[k] = v
        return out

    @staticmethod
    def normalize(conf: Dict[str, Any]) -> Dict[str, Any]:
        """dash-case -> snake_case, aliases resolved, `retry:` block flattened."""
        out: Dict[str, Any] = {}
        for k, v in conf.items():
            key = str(k).strip().replace("-", "_")
            if key == "retry" and isinstance(v, dict):
                for rk, rv in v.items():
                    out[f"retry_{str(rk).replace('-', '_')}"] = rv
                continue
            out[_ALIASES.get(key, key)] = v
        return out

    @staticmethod
    def load_many(logger: logging.Logger, paths: List[Path]) -> Dict[str, Any]:
        conf: Dict[str, Any] = {}
        for p in paths:
            one = Config.normalize(Config.load_one(logger, p))
            logger.debug("Loaded %d key(s) from %s", len(one), p)
            conf = Config.merge(conf, one)
        return conf

    @staticmethod
    def apply_as_defaults(logger: logging.Logger, parser: argparse.ArgumentParser, conf: Dict[str, Any]) -> None:
        """Known keys become parser defaults (CLI still wins); unknown keys are reported once."""
        dests = {a.dest for a in parser._actions}
        known = {k: v for k, v in conf.items() if k in dests}
        unknown = sorted(k for k in conf if k not in dests)
        if unknown:
            logger.warning("Ignoring unknown config key(s): %s", ", ".join(unknown))
        if known:
            parser.set_defaults(**known)
            logger.debug("Config defaults applied: %s", ", ".join(sorted(known)))
