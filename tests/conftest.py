import sys
from pathlib import Path

# Ensure package import for tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest

from Relational_Web.config import Config


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path):
    """Write logs under ``tmp_path`` and restore configuration afterwards."""

    saved = Config.snapshot()
    Config.output_dir = str(tmp_path)
    Config.random_seed = 1234
    yield
    Config.restore(saved)
