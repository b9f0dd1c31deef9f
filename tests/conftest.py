from __future__ import annotations

import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture
def tables():
    from api.core.scoring_tables import load_scoring_tables

    return load_scoring_tables(strict=True)
