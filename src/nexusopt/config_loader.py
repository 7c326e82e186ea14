"""Persist and load optimizer profiles."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict


@dataclass
class OptimizerProfile:
    config_overrides: Dict[str, Any] = field(default_factory=dict)
    exposure_settings: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def load(cls, path: Path) -> "OptimizerProfile":
        data = json.loads(path.read_text(encoding="utf-8"))
        return cls(
            config_overrides=data.get("config_overrides", {}),
            exposure_settings=data.get("exposure_settings", {}),
        )

    def save(self, path: Path) -> None:
        payload = {
            "config_overrides": self.config_overrides,
            "exposure_settings": self.exposure_settings,
        }
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
