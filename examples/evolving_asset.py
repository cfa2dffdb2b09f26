#!/usr/bin/env python3
"""
Watch an asset's content change as the chain advances.

Mints one asset, then queries it at a few simulated block times. Nothing
about the image is stored; every query regenerates it from the asset
identifier and the entropy of that moment.
"""

import base64
import json
import sys
from pathlib import Path

# Add dynart to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dynart import CallContext, ClockEntropyProvider, Collection
from dynart.metadata import JSON_PREFIX, SVG_PREFIX


class SteppingClock:
    """Fake wall clock that moves forward 12 seconds per reading."""

    def __init__(self, start: int = 1_700_000_000, step: int = 12):
        self.now = start
        self.step = step

    def __call__(self) -> float:
        value = self.now
        self.now += self.step
        return value


def main():
    producer = "0x" + "9f" * 20
    owner = "0x" + "a1" * 20
    out_dir = Path(__file__).parent / "output"

    entropy = ClockEntropyProvider(producer=producer, difficulty=2, clock=SteppingClock())
    collection = Collection(entropy=entropy)

    asset_id = collection.mint(CallContext(caller=owner))
    print(f"Minted asset {asset_id} to {owner}")
    print()

    out_dir.mkdir(exist_ok=True)
    for step in range(4):
        uri = collection.token_uri(asset_id)
        record = json.loads(base64.b64decode(uri[len(JSON_PREFIX):]))
        traits = {a["trait_type"]: a["value"] for a in record["attributes"]}

        print(f"=== Query {step} ===")
        print(f"  Name: {record['name']}")
        print(f"  Circles: {traits['circles']}  Rects: {traits['rects']}")
        print(f"  Palette: {traits['palette']}")

        svg = base64.b64decode(record["image"][len(SVG_PREFIX):])
        svg_path = out_dir / f"asset-{asset_id}-{step}.svg"
        svg_path.write_bytes(svg)
        print(f"  SVG: {svg_path}")
        print()

    return 0


if __name__ == "__main__":
    sys.exit(main())
