"""Terminal ASCII previews of images."""

import logging
from pathlib import Path
from typing import List, Union

from PIL import Image

logger = logging.getLogger(__name__)

# Darkest to brightest
PALETTE = " .:-=+*#%@"
PLACEHOLDER_GLYPHS = ("█", "▓", "░")
DEFAULT_WIDTH = 80
MIN_WIDTH = 5


def luminance(red: int, green: int, blue: int) -> float:
    """ITU-R BT.601 luma of an 8-bit RGB pixel, in [0, 255]."""
    return (299 * red + 587 * green + 114 * blue) / 1000


def glyph_for(value: float, palette: str = PALETTE) -> str:
    index = int(value * (len(palette) - 1) / 255)
    return palette[min(max(index, 0), len(palette) - 1)]


def _frame(rows: List[str], width: int) -> str:
    inner = width - 2
    lines = ["┌" + "─" * inner + "┐"]
    lines.extend("│" + row.ljust(inner) + "│" for row in rows)
    lines.append("└" + "─" * inner + "┘")
    return "\n".join(lines)


def _check_width(width: int) -> None:
    if width < MIN_WIDTH:
        raise ValueError(f"width must be at least {MIN_WIDTH}, got {width}")


def render(image: Image.Image, width: int = DEFAULT_WIDTH) -> str:
    """Render a decoded image as a framed block of palette glyphs.

    The image is resized to (width - 4) x (width / 2) with Lanczos resampling;
    halving the height compensates for terminal cells being about twice as
    tall as they are wide.

    Args:
        image: Decoded Pillow image in any mode
        width: Total width of the frame in characters

    Returns:
        Multi-line string, every line exactly ``width`` characters
    """
    _check_width(width)
    height = width // 2
    resized = image.convert("RGB").resize((width - 4, height), Image.Resampling.LANCZOS)

    pixels = resized.load()
    rows = []
    for y in range(resized.height):
        rows.append("".join(
            glyph_for(luminance(*pixels[x, y])) for x in range(resized.width)
        ))
    return _frame(rows, width)


def render_placeholder(width: int = DEFAULT_WIDTH) -> str:
    """Checkerboard frame shown when an image cannot be decoded."""
    _check_width(width)
    rows = []
    for i in range(width // 2):
        row = []
        for j in range(width - 4):
            if (i + j) % 3 == 0:
                row.append(PLACEHOLDER_GLYPHS[0])
            elif (i + j) % 2 == 0:
                row.append(PLACEHOLDER_GLYPHS[1])
            else:
                row.append(PLACEHOLDER_GLYPHS[2])
        rows.append("".join(row))
    return _frame(rows, width)


def render_file(image_path: Union[str, Path], width: int = DEFAULT_WIDTH) -> str:
    """Render an image file, falling back to the placeholder if it cannot be decoded."""
    try:
        with Image.open(image_path) as img:
            img.load()
            return render(img, width)
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        logger.info("Preview unavailable for %s: %s", image_path, e)
        return render_placeholder(width)
