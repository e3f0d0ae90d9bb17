"""
Burn redaction rectangles into a page image.

Used only by the production pipeline. The stored original is never touched:
burn-in always works on a copy that becomes the produced page.
"""
import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from PIL import Image

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RedactionRegion:
    """A rectangle in normalized [0, 1] page coordinates, origin top-left."""
    x: float
    y: float
    width: float
    height: float


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _is_finite(r) -> bool:
    return all(math.isfinite(v) for v in (r.x, r.y, r.width, r.height))


def as_normalized(redactions: Sequence, image_width: int, image_height: int) -> List[RedactionRegion]:
    """
    Coerce stored redactions to normalized regions.

    Coordinates are expected to be normalized already. The first redaction
    decides for the whole set: if any of its four values exceeds 1 the set is
    taken to be pixel coordinates and divided by the image dimensions. Mixed
    sets are therefore misread; the coordinate space is not stored per row.
    Rows with non-finite coordinates are dropped.
    """
    usable = [r for r in redactions if _is_finite(r)]
    if len(usable) < len(redactions):
        logger.warning(f"Skipping {len(redactions) - len(usable)} redaction(s) with non-finite coordinates")
    redactions = usable
    if not redactions:
        return []
    first = redactions[0]
    if all(v <= 1 for v in (first.x, first.y, first.width, first.height)):
        return [RedactionRegion(r.x, r.y, r.width, r.height) for r in redactions]
    if image_width <= 0 or image_height <= 0:
        return []
    return [
        RedactionRegion(
            r.x / image_width,
            r.y / image_height,
            r.width / image_width,
            r.height / image_height,
        )
        for r in redactions
    ]


def pixel_box(region: RedactionRegion, image_width: int, image_height: int) -> Tuple[int, int, int, int]:
    """Return (left, top, right, bottom) in pixels, right/bottom exclusive, at least 1x1."""
    left = _round_half_up(region.x * image_width)
    top = _round_half_up(region.y * image_height)
    width = max(1, _round_half_up(region.width * image_width))
    height = max(1, _round_half_up(region.height * image_height))
    return left, top, left + width, top + height


def burn_in_redactions(image: Image.Image, regions: Iterable[RedactionRegion]) -> Image.Image:
    """Return an RGB copy of the image with an opaque black box over every region."""
    burned = image.convert("RGB")
    width, height = burned.size
    for region in regions:
        if not _is_finite(region):
            logger.warning(f"Skipping redaction region with non-finite coordinates: {region}")
            continue
        left, top, right, bottom = pixel_box(region, width, height)
        left, top = max(0, left), max(0, top)
        right, bottom = min(width, right), min(height, bottom)
        if right <= left or bottom <= top:
            continue
        burned.paste((0, 0, 0), (left, top, right, bottom))
    return burned
