"""Text, icon and texture layout for the launcher user interface."""

from __future__ import annotations

import enum
import io
from dataclasses import dataclass, field
from itertools import chain
from typing import Iterator, Mapping, Optional, Union

from PIL import Image, UnidentifiedImageError


def rgba(r: int, g: int, b: int, a: int) -> int:
    """Pack a colour into the 64-bit register layout used for drawing."""
    return (r & 0xFF) | (g & 0xFF) << 8 | (b & 0xFF) << 16 | (a & 0xFF) << 24


COLOR_BLACK = rgba(0x00, 0x00, 0x00, 0x80)
COLOR_SELECTED = rgba(0x00, 0x72, 0xA0, 0x80)
COLOR_GREY = rgba(0x80, 0x80, 0x80, 0x80)
FONT_MAIN_COLOR = COLOR_GREY
BG_COLOR = COLOR_BLACK
HEADER_TEXT_COLOR = rgba(0x60, 0x60, 0x60, 0x80)
WARN_TEXT_COLOR = rgba(0x60, 0x60, 0x00, 0x80)
ERROR_TEXT_COLOR = rgba(0x60, 0x00, 0x00, 0x80)


class Align(enum.IntFlag):
    """Alignment of text and icons inside a window."""

    LEFT = 0
    TOP = 0
    RIGHT = 1 << 0
    BOTTOM = 1 << 1
    VCENTER = 1 << 2
    HCENTER = 1 << 3
    NONE = 0
    CENTER = VCENTER | HCENTER


class IconType(enum.IntEnum):
    """Icons available in the icon texture."""

    CIRCLE = 0
    CROSS = 1
    SQUARE = 2
    TRIANGLE = 3
    L1 = 4
    R1 = 5
    SELECT = 6
    START = 7
    ENABLED = 8


@dataclass(frozen=True)
class Icon:
    """Location of an icon inside the icon texture."""

    x: int
    y: int
    width: int
    height: int


ICONS: tuple[Icon, ...] = (
    Icon(0, 0, 25, 25),  # Circle
    Icon(25, 0, 25, 25),  # Cross
    Icon(50, 0, 25, 25),  # Square
    Icon(75, 0, 25, 25),  # Triangle
    Icon(0, 28, 25, 17),  # L1
    Icon(25, 28, 25, 17),  # R1
    Icon(0, 46, 22, 12),  # Select
    Icon(22, 46, 22, 12),  # Start
    Icon(0, 60, 10, 10),  # Enabled
)


@dataclass(frozen=True)
class Kerning:
    """Extra advance applied when a glyph is followed by ``second_char``."""

    second_char: int
    amount: int


@dataclass(frozen=True)
class Glyph:
    """A bitmap font glyph: its source rectangle, offsets and advance."""

    x: int
    y: int
    width: int
    height: int
    xoffset: int
    yoffset: int
    xadvance: int
    page: int = 0
    kernings: tuple[Kerning, ...] = ()


@dataclass(frozen=True)
class GlyphPlacement:
    """Where a glyph is drawn: destination and source texture rectangles."""

    char: str
    page: int
    x1: float
    y1: float
    x2: float
    y2: float
    u1: int
    v1: int
    u2: int
    v2: int


def _cdiv(numerator: float, denominator: int) -> int:
    """Integer division truncating towards zero."""
    return int(numerator / denominator)


def _place(glyph: Glyph, char: str, x: float, y: float) -> GlyphPlacement:
    left = x + glyph.xoffset
    top = y + glyph.yoffset
    return GlyphPlacement(
        char=char,
        page=glyph.page,
        x1=left,
        y1=top,
        x2=left + glyph.width,
        y2=top + glyph.height,
        u1=glyph.x,
        v1=glyph.y,
        # Without the extra texel glyphs come out cut off
        u2=glyph.x + glyph.width + 1,
        v2=glyph.y + glyph.height + 1,
    )


def _with_next(text: str) -> Iterator[tuple[str, Optional[str]]]:
    return zip(text, chain(text[1:], [None]))


@dataclass
class Font:
    """A bitmap font: line height and glyphs keyed by code point."""

    line_height: int
    glyphs: Mapping[int, Glyph] = field(default_factory=dict)

    def glyph(self, char: Union[str, int]) -> Optional[Glyph]:
        """Return the glyph for a character, or None if the font lacks it."""
        code = ord(char) if isinstance(char, str) else char
        return self.glyphs.get(code)

    @staticmethod
    def _advance(glyph: Glyph, next_char: Optional[str]) -> int:
        advance = glyph.xadvance
        if next_char is not None:
            code = ord(next_char)
            advance += sum(k.amount for k in glyph.kernings if k.second_char == code)
        return advance

    def line_width(self, text: str) -> float:
        """Return the width of the first line of ``text``."""
        width = 0
        for char, next_char in _with_next(text):
            if char == "\n":
                break
            glyph = self.glyph(char)
            if glyph is None:
                continue
            width += self._advance(glyph, next_char)
        return float(width)

    def layout_text(
        self, x: int, y: int, max_width: int, max_height: int, text: str
    ) -> tuple[list[GlyphPlacement], int]:
        """Lay out text from (x, y), limited by ``max_width`` and ``max_height`` if non-zero.

        Returns the glyph placements and the Y coordinate below the last line.
        """
        placements: list[GlyphPlacement] = []
        cur_x = x
        cur_height = 0
        for char, next_char in _with_next(text):
            if char == "\n":
                cur_x = x
                cur_height += self.line_height
                continue
            if max_width and cur_x > max_width:
                continue
            glyph = self.glyph(char)
            if glyph is None:
                continue
            if max_height and cur_height + self.line_height > max_height:
                break
            placements.append(_place(glyph, char, cur_x, y + cur_height))
            cur_x += self._advance(glyph, next_char)
        return placements, y + cur_height + self.line_height

    def _line_start(self, x1: int, x2: int, alignment: int, text: str) -> float:
        if not x2:
            return x1
        line_width = int(self.line_width(text))
        if alignment & Align.HCENTER:
            return x1 + _cdiv((x2 - x1) - line_width, 2)
        if alignment & Align.RIGHT:
            return x2 - line_width
        return x1

    def layout_text_window(
        self, x1: int, y1: int, x2: int, y2: int, alignment: int, text: str
    ) -> tuple[list[GlyphPlacement], int]:
        """Lay out text inside the [x1, y1]-[x2, y2] window.

        Glyphs that do not fit in the window are left out. A zero ``x2`` or
        ``y2`` leaves that side unbounded. Returns the glyph placements and
        the Y coordinate below the last line.
        """
        if not x2 and not y2:
            return self.layout_text(x1, y1, 0, 0, text)

        cur_y: float = y1
        text_height = self.line_height * (1 + text.count("\n"))
        if y2:
            if alignment & Align.VCENTER and text_height < y2:
                cur_y += _cdiv((y2 - y1) - text_height, 2)
            elif alignment & Align.BOTTOM and text_height < y2:
                cur_y = y2 - text_height

        cur_x = self._line_start(x1, x2, alignment, text)
        placements: list[GlyphPlacement] = []
        for position, (char, next_char) in enumerate(_with_next(text)):
            if char == "\n":
                cur_y += self.line_height
                cur_x = self._line_start(x1, x2, alignment, text[position + 1 :])
                continue
            glyph = self.glyph(char)
            if glyph is None:
                continue
            if y2 and cur_y + self.line_height > y2:
                break
            outside = cur_y < y1 or cur_x < x1 or (x2 and cur_x + 1 >= x2)
            if not outside:
                placements.append(_place(glyph, char, cur_x, cur_y))
            cur_x += self._advance(glyph, next_char)
        return placements, int(cur_y + self.line_height)


def icon_position(
    x1: int, y1: int, x2: int, y2: int, alignment: int, icon_type: IconType
) -> tuple[int, int]:
    """Return the top-left corner of an icon aligned inside a window."""
    icon = ICONS[icon_type]
    if y2:
        if alignment & Align.VCENTER:
            y1 += _cdiv((y2 - y1) - icon.height, 2)
        elif alignment & Align.BOTTOM:
            y1 = y2 - icon.height
    if x2:
        if alignment & Align.HCENTER:
            x1 = x1 + _cdiv((x2 - x1) - icon.width, 2)
        elif alignment & Align.RIGHT:
            x1 = x2 - icon.width
    return x1, y1


@dataclass
class Texture:
    """A 32-bit texture with alpha scaled to the 0-128 range."""

    width: int
    height: int
    pixels: bytes
    linear_filter: bool = False


# Maps 8-bit alpha (255 = opaque) onto the inverted 0-128 range of the texture format
_ALPHA_TABLE = bytes(128 - (a * 128 // 255) for a in range(256))


def load_png_texture(data: bytes) -> Texture:
    """Decode a 32-bit RGBA PNG image into a texture."""
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise ValueError(f"failed to load PNG file: {exc}") from exc
    if image.format != "PNG":
        raise ValueError("only PNG images are supported")
    if image.mode != "RGBA":
        raise ValueError("only 32-bit RGBA textures are supported")

    pixels = bytearray(image.tobytes())
    pixels[3::4] = pixels[3::4].translate(_ALPHA_TABLE)
    return Texture(image.width, image.height, bytes(pixels))