# dynart/config.py
"""
Collection configuration.

Loaded from YAML:

    name: AI Dynamic
    symbol: AIDYN
    name_prefix: "AI Dynamic #"
    description: Generative art recomputed on every query.
    background: "#0b0b12"
    store_dir: ./dynart-state
"""

import logging
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .metadata import DEFAULT_DESCRIPTION, DEFAULT_NAME_PREFIX
from .render import DEFAULT_BACKGROUND

logger = logging.getLogger(__name__)

_COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")


@dataclass
class CollectionConfig:
    """Settings for a collection."""
    name: str = "AI Dynamic"
    symbol: str = "AIDYN"
    name_prefix: str = DEFAULT_NAME_PREFIX
    description: str = DEFAULT_DESCRIPTION
    background: str = DEFAULT_BACKGROUND
    store_dir: Optional[str] = None
    raw_yaml: str = field(default="", repr=False, compare=False)

    def __post_init__(self):
        if not _COLOR_RE.match(self.background):
            raise ValueError(f"background must be a #rrggbb color, got {self.background!r}")
        self.background = self.background.lower()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "name_prefix": self.name_prefix,
            "description": self.description,
            "background": self.background,
            "store_dir": self.store_dir,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CollectionConfig":
        known = {f.name for f in fields(cls)} - {"raw_yaml"}
        for key in data:
            if key not in known:
                logger.warning(f"Ignoring unknown config key: {key}")
        values = {k: v for k, v in data.items() if k in known and v is not None}
        if "store_dir" in values:
            values["store_dir"] = str(values["store_dir"])
        return cls(**values)

    @classmethod
    def from_yaml(cls, yaml_content: str) -> "CollectionConfig":
        """Parse configuration from a YAML string."""
        data = yaml.safe_load(yaml_content) or {}
        if not isinstance(data, dict):
            raise ValueError("Config must be a YAML mapping")
        config = cls.from_dict(data)
        config.raw_yaml = yaml_content
        return config

    @classmethod
    def from_file(cls, path: Path | str) -> "CollectionConfig":
        """Load configuration from a YAML file."""
        with open(path, "r") as f:
            return cls.from_yaml(f.read())
