# SPDX-License-Identifier: LGPL-3.0-or-later
# vc2vc/cli/args/__init__.py
"""
Argument parsing for the vc2vc CLI: flag groups, YAML-backed defaults, secret
resolution and per-action validation.
"""
from __future__ import annotations

from .parser import build_parser, parse_args_with_config
from .validators import validate_args

__all__ = ["build_parser", "parse_args_with_config", "validate_args"]
