from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from patchbot.store.memory import InMemoryFileStore  # noqa: E402


@pytest.fixture()
def memory_store() -> InMemoryFileStore:
    """Store seeded with a small Python module and a README."""

    return InMemoryFileStore(
        {
            "src/app.py": "import os\n\n\ndef main():\n    return os.getcwd()\n",
            "README.md": "# Demo\n",
        }
    )
