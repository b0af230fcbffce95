"""
Configuration for lattice extraction runs.

Lattice units (NON-NEGOTIABLE):
- One lattice cell is a unit cube; fields must be scaled into lattice units
  before extraction.
- Bounds are integer cell ranges; ``half_extents`` is shorthand for
  ``[-h, h)`` on each axis.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .extract import centered_bounds


@dataclass
class ExtractionConfig:
    """
    Settings for one extraction run.

    ``bounds`` wins over ``half_extents`` when both are set.
    """

    # Lattice range
    half_extents: Tuple[int, int, int] = (32, 32, 32)
    bounds: Optional[Tuple[Tuple[int, int], Tuple[int, int], Tuple[int, int]]] = None

    # Extraction
    workers: Optional[int] = None  # None = CPU count
    skip: bool = True
    iso_level: float = 0.0

    # Output
    output: Path = field(default_factory=lambda: Path("out.stl"))

    def lattice_bounds(self) -> Tuple[Tuple[int, int], Tuple[int, int], Tuple[int, int]]:
        """Resolved integer lattice bounds."""
        if self.bounds is not None:
            return self.bounds
        return centered_bounds(*self.half_extents)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "half_extents": list(self.half_extents),
            "bounds": [list(b) for b in self.bounds] if self.bounds is not None else None,
            "workers": self.workers,
            "skip": self.skip,
            "iso_level": self.iso_level,
            "output": str(self.output),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExtractionConfig":
        data = dict(data)
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"unknown config keys: {sorted(unknown)}")
        if "half_extents" in data:
            data["half_extents"] = tuple(int(h) for h in data["half_extents"])
        if data.get("bounds") is not None:
            data["bounds"] = tuple((int(lo), int(hi)) for lo, hi in data["bounds"])
        if "output" in data:
            data["output"] = Path(data["output"])
        return cls(**data)

    @classmethod
    def from_json(cls, path: Path) -> "ExtractionConfig":
        """Load config from JSON file."""
        with open(path) as f:
            return cls.from_dict(json.load(f))

    def save(self, path: Path) -> None:
        """Save config to JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


# Global default config
DEFAULT_CONFIG = ExtractionConfig()
