# SPDX-License-Identifier: LGPL-3.0-or-later
# vc2vc/cli/args/builder.py
from __future__ import annotations

import argparse

from ...core.logger import c
from ..help_texts import FEATURE_SUMMARY, YAML_EXAMPLE


class HelpFormatter(argparse.RawDescriptionHelpFormatter, argparse.ArgumentDefaultsHelpFormatter):
    """Keep the epilog's own line breaks and still show (default: ...) per flag."""


def _section(title: str, body: str) -> str:
    return c(title + "\n", "cyan", ["bold"]) + c(body, "cyan")


def _build_epilog() -> str:
    return "\n".join((_section("YAML examples:", YAML_EXAMPLE), _section("Feature summary:", FEATURE_SUMMARY)))
