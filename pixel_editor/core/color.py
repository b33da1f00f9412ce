from typing import NamedTuple


class Coordinate(NamedTuple):
    x: int
    y: int


class Color(NamedTuple):
    """RGBA color, 8 bits per channel. Plain tuples so Pillow accepts them as pixels."""
    r: int
    g: int
    b: int
    a: int = 255

    @staticmethod
    def from_hex(hex_string: str) -> "Color":
        """
        Parse "#RRGGBB" or "#RRGGBBAA" (leading # optional).
        Raises ValueError on anything else.
        """
        s = hex_string.strip().lstrip("#")
        if len(s) not in (6, 8):
            raise ValueError(f"Invalid color: {hex_string!r}")
        channels = [int(s[i:i + 2], 16) for i in range(0, len(s), 2)]
        return Color(*channels)

    def to_hex(self) -> str:
        return f"#{self.r:02X}{self.g:02X}{self.b:02X}{self.a:02X}"


TRANSPARENT = Color(0, 0, 0, 0)
BLACK = Color(0, 0, 0, 255)
WHITE = Color(255, 255, 255, 255)
RED = Color(230, 41, 55, 255)
BLUE = Color(0, 121, 241, 255)


def blend_with_opacity(dst: Color, src: Color) -> Color:
    """
    Standard "over" compositing of src onto dst.
    A fully transparent src leaves dst untouched; an opaque src replaces it.
    """
    if src.a == 0:
        return dst
    if src.a == 255 or dst.a == 0:
        return src

    sa = src.a / 255.0
    da = dst.a / 255.0
    out_a = sa + da * (1.0 - sa)

    def channel(s, d):
        return int(round((s * sa + d * da * (1.0 - sa)) / out_a))

    return Color(
        channel(src.r, dst.r),
        channel(src.g, dst.g),
        channel(src.b, dst.b),
        int(round(out_a * 255)),
    )
