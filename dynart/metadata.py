# dynart/metadata.py
"""
Canonical metadata records.

A record embeds its image as a self-describing data reference and is itself
published as one:

    data:application/json;base64,<base64 of the record JSON>

Key order and separators are fixed, so identical inputs give identical
bytes.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List

from . import codec
from .render import ImageDescription, Palette

SVG_PREFIX = "data:image/svg+xml;base64,"
JSON_PREFIX = "data:application/json;base64,"

DEFAULT_NAME_PREFIX = "AI Dynamic #"
DEFAULT_DESCRIPTION = (
    "Generative art recomputed from chain entropy on every query. "
    "No image is stored."
)


@dataclass
class Attribute:
    """A trait/value pair."""
    trait_type: str
    value: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"trait_type": self.trait_type, "value": self.value}


@dataclass
class CanonicalRecord:
    """
    Metadata for one asset.

    Attributes:
        name: Display name ("AI Dynamic #<id>")
        description: Collection description
        image: SVG data reference
        attributes: Ordered traits
    """
    name: str
    description: str
    image: str
    attributes: List[Attribute] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "image": self.image,
            "attributes": [a.to_dict() for a in self.attributes],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CanonicalRecord":
        return cls(
            name=data["name"],
            description=data["description"],
            image=data["image"],
            attributes=[
                Attribute(trait_type=a["trait_type"], value=a["value"])
                for a in data.get("attributes", [])
            ],
        )

    def to_json(self) -> str:
        """Compact JSON with keys in declaration order."""
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)


def image_data_uri(image: ImageDescription) -> str:
    """SVG data reference for an image."""
    return SVG_PREFIX + codec.encode(image.to_bytes())


def assemble(
    asset_id: int,
    image: ImageDescription,
    circle_count: int,
    rect_count: int,
    palette: Palette,
    description: str = DEFAULT_DESCRIPTION,
    name_prefix: str = DEFAULT_NAME_PREFIX,
) -> CanonicalRecord:
    """Build the canonical record for a composed image."""
    return CanonicalRecord(
        name=f"{name_prefix}{asset_id}",
        description=description,
        image=image_data_uri(image),
        attributes=[
            Attribute("circles", circle_count),
            Attribute("rects", rect_count),
            Attribute("palette", palette.joined("|")),
        ],
    )


def to_data_uri(record: CanonicalRecord) -> str:
    """Publish a record as a JSON data reference."""
    return JSON_PREFIX + codec.encode(record.to_json().encode("utf-8"))


def parse_data_uri(uri: str) -> CanonicalRecord:
    """Inverse of to_data_uri()."""
    if not uri.startswith(JSON_PREFIX):
        raise ValueError("Not a JSON data reference")
    payload = codec.decode(uri[len(JSON_PREFIX):])
    return CanonicalRecord.from_dict(json.loads(payload.decode("utf-8")))
