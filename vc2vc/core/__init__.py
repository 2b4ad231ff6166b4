# SPDX-License-Identifier: LGPL-3.0-or-later
# vc2vc/core/__init__.py
