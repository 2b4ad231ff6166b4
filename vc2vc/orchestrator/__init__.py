# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vc2vc/orchestrator/__init__.py
from __future__ import annotations

from .migration import MigrationOrchestrator, MigrationPlan, MigrationResult
from .orchestrator import Orchestrator, RunResult
from .rollback import Rollback
from .state import MigrationState, MigrationTracker

__all__ = [
    "MigrationOrchestrator",
    "MigrationPlan",
    "MigrationResult",
    "MigrationState",
    "MigrationTracker",
    "Orchestrator",
    "Rollback",
    "RunResult",
]
