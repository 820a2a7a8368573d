"""Pytest configuration for path setup.

The test suite imports the ``brokerage_client`` package from
``client/src`` and the shared helpers from ``tests/helpers``.  When the
package has not been installed (``pip install -e .``), neither is on
``sys.path``; this file adds the project root and ``client/src`` so
imports work however pytest is invoked.
"""

from __future__ import annotations

import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]

for path in (ROOT / "client" / "src", ROOT):
    path_str = str(path)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)
