# dynart/render/composer.py
"""
Deterministic image composition.

Turns an asset identifier and its two seeds into an ImageDescription:

    circles  = 3 + seed_a % 5        (3..7)
    rects    = 1 + seed_b % 4        (1..4)
    palette  = low 24 bits of seed_a, seed_b, seed_a ^ seed_b

Circles are laid out from the identifier and a per-index hash, rectangles
from the identifier alone. Paint order is background, circles, rectangles.
"""

from dataclasses import dataclass
from typing import Any, Dict, List

from ..seeds import hash_words
from .svg import Background, Circle, ImageDescription, Rect

CANVAS_SIZE = 1024
DEFAULT_BACKGROUND = "#0b0b12"

CIRCLE_OPACITY = 0.85
RECT_OPACITY = 0.16
RECT_CORNER_RADIUS = 12


def color_from_seed(seed: int) -> str:
    """Render the low 24 bits of a seed as a #rrggbb color."""
    return f"#{seed & 0xFFFFFF:06x}"


@dataclass(frozen=True)
class Palette:
    """The three colors of a composition."""
    primary: str
    secondary: str
    accent: str

    @classmethod
    def from_seeds(cls, seed_a: int, seed_b: int) -> "Palette":
        return cls(
            primary=color_from_seed(seed_a),
            secondary=color_from_seed(seed_b),
            accent=color_from_seed(seed_a ^ seed_b),
        )

    @property
    def colors(self) -> List[str]:
        return [self.primary, self.secondary, self.accent]

    def joined(self, separator: str = "|") -> str:
        return separator.join(self.colors)


@dataclass
class Composition:
    """A composed image plus the parameters that shaped it."""
    image: ImageDescription
    circle_count: int
    rect_count: int
    palette: Palette

    def to_dict(self) -> Dict[str, Any]:
        return {
            "circle_count": self.circle_count,
            "rect_count": self.rect_count,
            "palette": self.palette.colors,
            "image": self.image.to_dict(),
        }


def circle_count(seed_a: int) -> int:
    return 3 + seed_a % 5


def rect_count(seed_b: int) -> int:
    return 1 + seed_b % 4


def make_circle(asset_id: int, index: int, palette: Palette) -> Circle:
    return Circle(
        cx=412 + hash_words(asset_id, index) % 200,
        cy=412 + hash_words(index, asset_id) % 200,
        r=60 + (asset_id * (index + 7)) % 420,
        stroke=palette.colors[index % 3],
        stroke_width=6 + index % 10,
        opacity=CIRCLE_OPACITY,
    )


def make_rect(asset_id: int, index: int, palette: Palette) -> Rect:
    # Alternates between the second and third palette colors
    fill = palette.secondary if index % 2 == 0 else palette.accent
    return Rect(
        x=(asset_id * (index + 3)) % 700,
        y=(asset_id * (index + 11)) % 700,
        width=120 + index * 70,
        height=80 + index * 60,
        rx=RECT_CORNER_RADIUS,
        fill=fill,
        opacity=RECT_OPACITY,
    )


def compose(
    asset_id: int,
    seed_a: int,
    seed_b: int,
    background: str = DEFAULT_BACKGROUND,
) -> Composition:
    """
    Compose the image for an asset.

    Args:
        asset_id: Asset identifier
        seed_a: First seed from derive_seeds()
        seed_b: Second seed from derive_seeds()
        background: Opaque background color

    Returns:
        Composition with the image and its shape counts and palette
    """
    palette = Palette.from_seeds(seed_a, seed_b)
    circles = circle_count(seed_a)
    rects = rect_count(seed_b)

    image = ImageDescription(width=CANVAS_SIZE, height=CANVAS_SIZE)
    image.add(Background(width=CANVAS_SIZE, height=CANVAS_SIZE, fill=background))
    for i in range(circles):
        image.add(make_circle(asset_id, i, palette))
    for j in range(rects):
        image.add(make_rect(asset_id, j, palette))

    return Composition(
        image=image,
        circle_count=circles,
        rect_count=rects,
        palette=palette,
    )
