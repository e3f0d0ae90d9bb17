"""
Bates numbering and page stamping.

A Bates number is the sanitised prefix followed by the zero-padded sequence,
e.g. PROD000001. One BatesCounter is owned by a production run and advanced
once per produced page, so numbering across the whole job has no gaps.
"""
import re

from PIL import Image, ImageDraw, ImageFont

from constants import DEFAULT_BATES_PREFIX


def sanitize_prefix(prefix: str) -> str:
    """Keep alphanumerics only; an empty result becomes the default prefix."""
    return re.sub(r"[^A-Za-z0-9]", "", prefix or "") or DEFAULT_BATES_PREFIX


def format_bates_number(prefix: str, seq: int, pad_length: int = 6) -> str:
    return f"{sanitize_prefix(prefix)}{str(seq).zfill(pad_length)}"


def bates_pattern(pad_length: int = 6) -> re.Pattern:
    return re.compile(rf"^[A-Za-z0-9]+\d{{{pad_length}}}$")


class BatesCounter:
    """Monotonic page counter for one production run."""

    def __init__(self, prefix: str, start_number: int, pad_length: int = 6):
        self.prefix = sanitize_prefix(prefix)
        self.pad_length = pad_length
        self.next_value = start_number

    def take(self) -> str:
        """Return the next Bates number and advance the counter."""
        bates = format_bates_number(self.prefix, self.next_value, self.pad_length)
        self.next_value += 1
        return bates

    def rewind(self, value: int) -> None:
        """Roll back to an earlier value (used when a document's pages are discarded)."""
        if value > self.next_value:
            raise ValueError(f"Cannot rewind Bates counter forward ({self.next_value} -> {value})")
        self.next_value = value


def stamp_bates(image: Image.Image, bates_number: str) -> Image.Image:
    """
    Return a copy of the page with the Bates number in the bottom-right corner.

    The label sits on a white backing box so it stays legible over dark
    content and burned-in redactions; font size scales with page height.
    """
    stamped = image.convert("RGB")
    width, height = stamped.size
    draw = ImageDraw.Draw(stamped)

    font_size = max(8, min(48, height // 30))
    font = ImageFont.load_default(size=font_size)
    left, top, right, bottom = draw.textbbox((0, 0), bates_number, font=font)
    text_w, text_h = right - left, bottom - top
    margin = max(4, font_size // 2)

    x = max(0, width - text_w - 2 * margin)
    y = max(0, height - text_h - 2 * margin)
    draw.rectangle(
        [x - margin // 2, y - margin // 2, x + text_w + margin // 2, y + text_h + margin // 2],
        fill="white",
    )
    draw.text((x - left, y - top), bates_number, fill="black", font=font)
    return stamped
