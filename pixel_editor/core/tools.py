from enum import Enum

from pixel_editor.core.color import Color, Coordinate, TRANSPARENT

BRUSH_PREVIEW_ERASER = Color(255, 255, 255, 96)
SELECTION_OUTLINE = Color(0, 200, 255, 255)


class MouseButton(Enum):
    LEFT = "left"
    RIGHT = "right"


class ToolType(Enum):
    PENCIL = "pencil"
    ERASER = "eraser"
    FILL = "fill"
    PICKER = "picker"
    SELECTION = "selection"


def bresenham_line(p0: tuple[int, int], p1: tuple[int, int]):
    x0, y0 = p0
    x1, y1 = p1
    dx = abs(x1 - x0)
    dy = abs(y1 - y0)
    x, y = x0, y0
    sx = 1 if x0 < x1 else -1
    sy = 1 if y0 < y1 else -1
    err = dx - dy
    while True:
        yield x, y
        if x == x1 and y == y1:
            break
        e2 = 2 * err
        if e2 > -dy:
            err -= dy
            x += sx
        if e2 < dx:
            err += dx
            y += sy


def flood_fill(doc, seed: tuple[int, int], fill_color: Color, tolerance: int = 0) -> int:
    """
    Non-recursive flood fill over the current layer's pixel mapping, with an
    RGBA tolerance and a safety cap. The region is collected first and then
    painted through Document.draw_pixel so the fill lands in the open history
    entry. Returns the number of pixels painted.
    """
    layer = doc.current_layer_obj
    sx, sy = seed
    if not doc.in_canvas(sx, sy):
        return 0

    target = layer.get(seed)
    if target == fill_color:
        return 0

    def close_enough(c1, c2):
        return (
            abs(c1[0] - c2[0]) <= tolerance and
            abs(c1[1] - c2[1]) <= tolerance and
            abs(c1[2] - c2[2]) <= tolerance and
            abs(c1[3] - c2[3]) <= tolerance
        )

    MAX_PIXELS = 1_200_000  # large canvases: stop early, user can fill again
    region = []
    stack = [(sx, sy)]
    visited = set()

    while stack:
        x, y = stack.pop()
        if (x, y) in visited:
            continue
        visited.add((x, y))

        if not doc.in_canvas(x, y):
            continue

        if not close_enough(layer.get((x, y)), target):
            continue

        region.append((x, y))
        if len(region) >= MAX_PIXELS:
            break

        stack.append((x + 1, y))
        stack.append((x - 1, y))
        stack.append((x, y + 1))
        stack.append((x, y - 1))

    for x, y in region:
        doc.draw_pixel(x, y, fill_color)
    return len(region)


class Tool:
    """
    Something bound to a mouse button. mouse_down fires every frame the button
    is held, mouse_up once on release. draw_preview draws on the preview layer.
    """
    tool_type: ToolType | None = None

    def __init__(self, name: str):
        self.name = name

    def __str__(self):
        return self.name

    def mouse_down(self, doc, x: int, y: int, button: MouseButton):
        pass

    def mouse_up(self, doc, x: int, y: int, button: MouseButton):
        pass

    def draw_preview(self, doc, x: int, y: int):
        pass


class PixelBrushTool(Tool):
    def __init__(self, name: str = "Pixel Brush", eraser: bool = False, size: int = 1):
        super().__init__(name)
        self.eraser = eraser
        self.size = max(1, int(size))
        self.tool_type = ToolType.ERASER if eraser else ToolType.PENCIL
        self._last = None

    def _footprint(self, x: int, y: int):
        half = self.size // 2
        for py in range(y - half, y - half + self.size):
            for px in range(x - half, x - half + self.size):
                yield px, py

    def mouse_down(self, doc, x, y, button):
        if self._last == (x, y):
            return
        color = TRANSPARENT if self.eraser else doc.color_for(button)
        start = self._last if self._last is not None else (x, y)
        for lx, ly in bresenham_line(start, (x, y)):
            for px, py in self._footprint(lx, ly):
                doc.draw_pixel(px, py, color)
        self._last = (x, y)

    def mouse_up(self, doc, x, y, button):
        self._last = None

    def draw_preview(self, doc, x, y):
        preview = doc.preview_layer
        color = BRUSH_PREVIEW_ERASER if self.eraser else doc.left_color
        for px, py in self._footprint(x, y):
            if preview.in_bounds(px, py):
                preview.write((px, py), color)
                preview.draw((px, py))


class FillTool(Tool):
    tool_type = ToolType.FILL

    def __init__(self, name: str = "Fill", tolerance: int = 0):
        super().__init__(name)
        self.tolerance = tolerance
        self._filled = False

    def mouse_down(self, doc, x, y, button):
        # once per gesture, not once per frame
        if self._filled:
            return
        self._filled = True
        flood_fill(doc, (x, y), doc.color_for(button), self.tolerance)

    def mouse_up(self, doc, x, y, button):
        self._filled = False


class PickerTool(Tool):
    tool_type = ToolType.PICKER

    def __init__(self, name: str = "Picker"):
        super().__init__(name)

    def mouse_down(self, doc, x, y, button):
        if doc.in_canvas(x, y):
            doc.set_color(button, doc.current_layer_obj.get((x, y)))


class SelectorTool(Tool):
    """Drag outside the selection to select a rectangle, drag inside it to move it."""
    tool_type = ToolType.SELECTION

    def __init__(self, name: str = "Selector"):
        super().__init__(name)
        self._origin = None
        self._last = None
        self._dragging = False

    def mouse_down(self, doc, x, y, button):
        if self._origin is None:
            self._origin = (x, y)
            self._last = (x, y)
            self._dragging = doc.selection.contains(x, y)
            if not self._dragging:
                doc.commit_selection()
            return
        if self._dragging:
            dx = x - self._last[0]
            dy = y - self._last[1]
            if dx or dy:
                doc.move_selection(dx, dy)
        self._last = (x, y)

    def mouse_up(self, doc, x, y, button):
        if self._origin is not None and not self._dragging:
            doc.select_rect(self._origin[0], self._origin[1], x, y)
        self._origin = None
        self._last = None
        self._dragging = False

    def draw_preview(self, doc, x, y):
        if self._origin is None or self._dragging:
            return
        preview = doc.preview_layer
        x0, y0 = self._origin
        x0, x1 = min(x0, x), max(x0, x)
        y0, y1 = min(y0, y), max(y0, y)
        for px in range(x0, x1 + 1):
            for py in (y0, y1):
                if preview.in_bounds(px, py):
                    preview.write(Coordinate(px, py), SELECTION_OUTLINE)
        for py in range(y0, y1 + 1):
            for px in (x0, x1):
                if preview.in_bounds(px, py):
                    preview.write(Coordinate(px, py), SELECTION_OUTLINE)
        preview.redraw()
