"""nexusopt test suite."""

from __future__ import annotations

import sys
from pathlib import Path


# Lets ``pytest`` import nexusopt from src/ without an editable install.
_SRC = Path(__file__).resolve().parent.parent / "src"
if _SRC.is_dir() and str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))
