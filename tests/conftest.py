# SPDX-License-Identifier: LGPL-3.0-or-later
from __future__ import annotations

import sys
from pathlib import Path

import pytest

# tests import their fakes as tests.fakes.*; make the checkout root importable
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from tests.fakes.fake_logger import FakeLogger  # noqa: E402
from tests.fakes.fake_vsphere import make_world  # noqa: E402


def pytest_configure(config):
    for marker in ("unit: fast tests against in-memory fakes", "security: secret handling and redaction"):
        config.addinivalue_line("markers", marker)


@pytest.fixture
def logger():
    return FakeLogger()


@pytest.fixture
def world():
    return make_world()
