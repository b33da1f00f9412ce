from enum import Enum

from PIL import Image

from pixel_editor.core.color import Color, Coordinate, TRANSPARENT


class ResizeAnchor(Enum):
    TOP_LEFT = "tl"
    TOP_CENTER = "tc"
    TOP_RIGHT = "tr"
    CENTER_LEFT = "cl"
    CENTER = "cc"
    CENTER_RIGHT = "cr"
    BOTTOM_LEFT = "bl"
    BOTTOM_CENTER = "bc"
    BOTTOM_RIGHT = "br"


_LEFT = (ResizeAnchor.TOP_LEFT, ResizeAnchor.CENTER_LEFT, ResizeAnchor.BOTTOM_LEFT)
_RIGHT = (ResizeAnchor.TOP_RIGHT, ResizeAnchor.CENTER_RIGHT, ResizeAnchor.BOTTOM_RIGHT)
_TOP = (ResizeAnchor.TOP_LEFT, ResizeAnchor.TOP_CENTER, ResizeAnchor.TOP_RIGHT)
_BOTTOM = (ResizeAnchor.BOTTOM_LEFT, ResizeAnchor.BOTTOM_CENTER, ResizeAnchor.BOTTOM_RIGHT)


def _axis_offset(old: int, new: int, near: bool, far: bool) -> int:
    if near:
        return 0
    if far:
        return old - new
    # truncate toward zero so growing and shrinking by the same amount mirror each other
    return int((old - new) / 2)


def anchor_offset(old_w: int, old_h: int, new_w: int, new_h: int, anchor: ResizeAnchor) -> tuple[int, int]:
    """
    Offset subtracted from every old coordinate to get its position on the resized canvas.
    """
    dx = _axis_offset(old_w, new_w, anchor in _LEFT, anchor in _RIGHT)
    dy = _axis_offset(old_h, new_h, anchor in _TOP, anchor in _BOTTOM)
    return dx, dy


class Layer:
    """
    A raster plane: `pixels` is the authoritative sparse data, `surface` a
    Pillow RGBA image derived from it for the rendering side.
    """

    def __init__(self, width: int, height: int, name: str = "new layer",
                 fill: Color = TRANSPARENT, should_fill: bool = False):
        self.name = name
        self.hidden = False
        self.width = width
        self.height = height
        self.pixels: dict[Coordinate, Color] = {}
        self.initial_fill = fill
        self.filled = not should_fill
        self.surface: Image.Image | None = Image.new("RGBA", (width, height), TRANSPARENT)

    def __repr__(self):
        return f"Layer({self.name!r}, {self.width}x{self.height}, pixels={len(self.pixels)}, hidden={self.hidden})"

    # ---------- Pixel data ----------
    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def get(self, coord) -> Color:
        return self.pixels.get(coord, TRANSPARENT)

    def write(self, coord, color: Color):
        self.pixels[Coordinate(*coord)] = Color(*color)

    def snapshot(self) -> dict[Coordinate, Color]:
        return dict(self.pixels)

    def painted(self) -> dict[Coordinate, Color]:
        return {c: col for c, col in self.pixels.items() if col.a != 0}

    def apply_initial_fill(self):
        if self.filled:
            return
        self.filled = True
        if self.initial_fill == TRANSPARENT:
            return
        for y in range(self.height):
            for x in range(self.width):
                self.pixels[Coordinate(x, y)] = self.initial_fill
        self.redraw()

    def clear(self):
        self.pixels = {}
        self.redraw()

    # ---------- Surface ----------
    def draw(self, coord):
        """Push a single pixel to the surface without a full redraw."""
        x, y = coord
        if self.surface is not None and self.in_bounds(x, y):
            self.surface.putpixel((x, y), self.get(coord))

    def redraw(self):
        if self.surface is None:
            return
        self.surface.paste(TRANSPARENT, (0, 0, self.width, self.height))
        px = self.surface.load()
        for (x, y), color in self.pixels.items():
            if self.in_bounds(x, y):
                px[x, y] = color

    def to_image(self) -> Image.Image:
        img = Image.new("RGBA", (self.width, self.height), TRANSPARENT)
        px = img.load()
        for (x, y), color in self.painted().items():
            if self.in_bounds(x, y):
                px[x, y] = color
        return img

    def _reallocate(self):
        self.release()
        self.surface = Image.new("RGBA", (self.width, self.height), TRANSPARENT)

    def release(self):
        if self.surface is not None:
            self.surface.close()
            self.surface = None

    # ---------- Geometry ----------
    def resize(self, width: int, height: int, anchor: ResizeAnchor = ResizeAnchor.TOP_LEFT):
        dx, dy = anchor_offset(self.width, self.height, width, height, anchor)
        moved = {}
        for (x, y), color in self.pixels.items():
            nx, ny = x - dx, y - dy
            if 0 <= nx < width and 0 <= ny < height:
                moved[Coordinate(nx, ny)] = color
        self.pixels = moved
        self.width = width
        self.height = height
        self._reallocate()
        self.redraw()

    def restore(self, pixels: dict[Coordinate, Color], width: int, height: int):
        """Replace the pixel data with a snapshot that already holds absolute positions."""
        self.pixels = dict(pixels)
        self.width = width
        self.height = height
        self._reallocate()
        self.redraw()
