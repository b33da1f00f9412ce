from pixel_editor.core.color import Color, Coordinate


def normalize_rect(x0: int, y0: int, x1: int, y1: int) -> tuple[int, int, int, int]:
    if x0 > x1:
        x0, x1 = x1, x0
    if y0 > y1:
        y0, y1 = y1, y0
    return x0, y0, x1, y1


class Selection:
    """
    Floating pixels lifted off a layer (or pasted) that are not part of the
    document until committed. Bounds are inclusive: (min_x, min_y, max_x, max_y).

    The history side of moving and committing lives on Document; this class
    only holds the floating state.
    """

    def __init__(self):
        self.clear()

    def clear(self):
        self.active = False
        self.pixels: dict[Coordinate, Color] = {}
        self.bounds = (0, 0, 0, 0)
        self.moving = False
        self.pasted = False
        self.layer_index = 0

    def start(self, pixels: dict, bounds: tuple[int, int, int, int], layer_index: int = 0, pasted: bool = False):
        self.active = True
        self.pixels = {Coordinate(*c): Color(*col) for c, col in pixels.items()}
        self.bounds = normalize_rect(*bounds)
        self.moving = False
        self.pasted = pasted
        self.layer_index = layer_index

    def __len__(self):
        return len(self.pixels)

    def contains(self, x: int, y: int) -> bool:
        x0, y0, x1, y1 = self.bounds
        return self.active and x0 <= x <= x1 and y0 <= y <= y1

    def translate(self, dx: int, dy: int):
        x0, y0, x1, y1 = self.bounds
        self.bounds = (x0 + dx, y0 + dy, x1 + dx, y1 + dy)
        self.pixels = {Coordinate(c.x + dx, c.y + dy): col for c, col in self.pixels.items()}

    def swap(self, a: Coordinate, b: Coordinate):
        pa = self.pixels.pop(a, None)
        pb = self.pixels.pop(b, None)
        if pb is not None:
            self.pixels[a] = pb
        if pa is not None:
            self.pixels[b] = pa


class Clipboard:
    """
    Copied pixels. Passed to documents explicitly so several documents can
    share one, or keep their own.
    """

    def __init__(self):
        self.pixels: dict[Coordinate, Color] = {}
        self.bounds = (0, 0, 0, 0)

    @property
    def is_empty(self) -> bool:
        return not self.pixels

    def store(self, pixels: dict, bounds: tuple[int, int, int, int]):
        self.pixels = dict(pixels)
        self.bounds = tuple(bounds)
