"""Loop sync persistence - calibrated models keyed by progression context."""

import json
import time
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..core import CalibratedLoopModel


def progression_sync_key(
    progression_id: str,
    tonal_center_mode: str,
    tonal_key: str,
    scale_family_label: str,
) -> str:
    """
    Storage key for a progression in a tonal context.

    Example:
        >>> progression_sync_key("ionianPop", "major", "G", "Major (7 modes)")
        'major:G:Major (7 modes):ionianPop'
    """
    return f"{tonal_center_mode}:{tonal_key}:{scale_family_label}:{progression_id}"


@dataclass
class LoopSyncConfig:
    """A saved calibration and the progression it belongs to."""

    progression_key: str
    model: CalibratedLoopModel
    progression_id: str = ""
    progression_title: str = ""
    loop_label: Optional[str] = None
    updated_at_ms: float = field(default_factory=lambda: time.time() * 1000.0)

    @property
    def label(self) -> str:
        """Loop label, falling back to the progression title."""
        if self.loop_label and self.loop_label.strip():
            return self.loop_label.strip()
        return self.progression_title

    def to_dict(self) -> Dict[str, Any]:
        return {
            "progression_key": self.progression_key,
            "progression_id": self.progression_id,
            "progression_title": self.progression_title,
            "loop_label": self.loop_label,
            "updated_at_ms": self.updated_at_ms,
            "model": self.model.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoopSyncConfig":
        return cls(
            progression_key=data["progression_key"],
            model=CalibratedLoopModel.from_dict(data["model"]),
            progression_id=data.get("progression_id", ""),
            progression_title=data.get("progression_title", ""),
            loop_label=data.get("loop_label"),
            updated_at_ms=float(data.get("updated_at_ms", 0.0)),
        )


class LoopSyncStore:
    """JSON-file key/value store for LoopSyncConfigs.

    The whole file is rewritten on every change. A missing file is an empty
    store; an unreadable one is reported with a warning and treated as empty.
    """

    VERSION = 1

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._configs: Dict[str, LoopSyncConfig] = self._load()

    def _load(self) -> Dict[str, LoopSyncConfig]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            entries = raw.get("configs", {})
            return {key: LoopSyncConfig.from_dict(entry) for key, entry in entries.items()}
        except (json.JSONDecodeError, IOError, KeyError, TypeError, ValueError, AttributeError) as e:
            warnings.warn(f"Ignoring unreadable loop sync store {self.path}: {e}")
            return {}

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "version": self.VERSION,
            "configs": {key: config.to_dict() for key, config in self._configs.items()},
        }
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def get(self, key: str) -> Optional[LoopSyncConfig]:
        return self._configs.get(key)

    def put(self, config: LoopSyncConfig) -> None:
        """Save a config, replacing any previous one for the same key."""
        self._configs[config.progression_key] = config
        self._save()

    def delete(self, key: str) -> bool:
        """Remove a config. Returns False if there was none."""
        if key not in self._configs:
            return False
        del self._configs[key]
        self._save()
        return True

    def keys(self) -> List[str]:
        return sorted(self._configs)

    def __contains__(self, key: str) -> bool:
        return key in self._configs

    def __len__(self) -> int:
        return len(self._configs)
