"""
The document: layers, floating selection, history and tools of one open file.

Every mutating operation goes through here so that it lands in the history
log. Undo and redo never re-run the forward operation; they replay the
recorded before/after data with the layer helpers in record=False mode.
"""
import logging
from dataclasses import dataclass
from pathlib import Path

from PIL import Image

from pixel_editor.core.color import Color, Coordinate, TRANSPARENT, RED, BLUE, blend_with_opacity
from pixel_editor.core.errors import AnimationError, LayerError
from pixel_editor.core.history import (
    Compound,
    HistoryLog,
    LayerAction,
    LayerOp,
    PixelEdit,
    ResizeOp,
)
from pixel_editor.core.layer import Layer, ResizeAnchor, anchor_offset
from pixel_editor.core.selection import Clipboard, Selection, normalize_rect
from pixel_editor.core.tools import MouseButton, PixelBrushTool, Tool, ToolType
from pixel_editor.utils.helpers import clamp
from pixel_editor.utils.validators import validate_canvas_size

logger = logging.getLogger(__name__)

PREVIEW_LAYER_NAME = "hidden"


@dataclass
class Animation:
    name: str
    frame_start: int = 0
    frame_end: int = 0
    timing: float = 5.0  # frames per second


class Document:
    def __init__(self, width: int = 64, height: int = 64, tile_width: int = 8, tile_height: int = 8,
                 background: Color = TRANSPARENT, max_history: int = 500,
                 clipboard: Clipboard | None = None, on_status=None):
        validate_canvas_size(width, height)
        self.on_status = on_status or (lambda text: None)

        self.path: Path | None = None

        self.canvas_width = width
        self.canvas_height = height
        self.tile_width = tile_width
        self.tile_height = tile_height
        self.draw_grid = True

        # The last layer is the tool preview layer; it is never saved
        self.layers: list[Layer] = [
            Layer(width, height, "background", background, should_fill=True),
            Layer(width, height, PREVIEW_LAYER_NAME),
        ]
        self.layers[0].apply_initial_fill()
        self.current_layer = 0
        self.deleted_layers: list[Layer] = []

        self.animations: list[Animation] = []
        self.current_animation = 0

        self.history = HistoryLog(max_entries=max_history, on_discard=self._history_discarded)
        self.selection = Selection()
        self.clipboard = clipboard if clipboard is not None else Clipboard()

        self.left_tool: Tool = PixelBrushTool("Pixel Brush L")
        self.right_tool: Tool = PixelBrushTool("Pixel Brush R")
        self.left_color = RED
        self.right_color = BLUE
        self._buttons_down: set[MouseButton] = set()
        # set by begin_gesture; the next recorded draw opens a new entry
        self._gesture_open = False

        # Resize staging, drawn as an outline by the renderer until committed
        self.doing_resize = False
        self.canvas_width_preview = width
        self.canvas_height_preview = height
        self.tile_width_preview = tile_width
        self.tile_height_preview = tile_height
        self.resize_anchor_preview = ResizeAnchor.TOP_LEFT

        self.closed = False

    def __repr__(self):
        return (f"Document({self.filename!r}, {self.canvas_width}x{self.canvas_height}, "
                f"layers={len(self.layers) - 1}, history={len(self.history)})")

    @property
    def filename(self) -> str:
        return self.path.name if self.path else "untitled"

    # ---------- Layers / lookup ----------
    @property
    def preview_layer(self) -> Layer:
        return self.layers[-1]

    @property
    def current_layer_obj(self) -> Layer:
        return self.layers[self.current_layer]

    def _check_layer_index(self, index: int):
        if not 0 <= index < len(self.layers) - 1:
            raise LayerError(f"Layer index {index} out of range")

    def set_current_layer(self, index: int):
        self._check_layer_index(index)
        self.current_layer = index

    def in_canvas(self, x: int, y: int) -> bool:
        return 0 <= x < self.canvas_width and 0 <= y < self.canvas_height

    def pixel_state(self) -> list[dict[Coordinate, Color]]:
        """Painted pixels of every saved layer, bottom to top."""
        return [layer.painted() for layer in self.layers[:-1]]

    # ---------- History plumbing ----------
    def _record(self, action):
        # an empty pixel entry left behind by a gesture carries no change
        self.history.prune_empty_tail()
        self.history.append(action)

    def _open_pixel_edit(self, layer_index: int, reuse: bool = True) -> PixelEdit:
        latest = self.history.latest()
        if reuse and isinstance(latest, PixelEdit) and latest.layer_index == layer_index:
            return latest
        edit = PixelEdit(layer_index)
        self._record(edit)
        return edit

    def begin_gesture(self):
        """
        Start a stroke. Nothing is recorded yet: the first pixel that actually
        changes opens the entry, and every later draw_pixel of the stroke
        merges into it. A stroke that changes nothing leaves history alone.
        """
        self._gesture_open = True

    def _discard_layer(self, layer: Layer):
        if layer in self.layers or any(layer is held for held in self._history_layers()):
            return
        if layer in self.deleted_layers:
            self.deleted_layers.remove(layer)
        layer.release()

    def _history_discarded(self, action, undone: bool):
        """Release layers that only the dropped entry could have brought back."""
        if isinstance(action, Compound):
            for child in action.actions:
                self._history_discarded(child, undone)
        elif isinstance(action, LayerOp) and action.layer is not None:
            if undone and action.kind is LayerAction.CREATE:
                self._discard_layer(action.layer)
            elif not undone and action.kind is LayerAction.DELETE:
                self._discard_layer(action.layer)

    def _history_layers(self):
        pending = list(self.history.entries)
        while pending:
            action = pending.pop()
            if isinstance(action, Compound):
                pending.extend(action.actions)
            elif isinstance(action, LayerOp) and action.layer is not None:
                yield action.layer

    # ---------- Drawing ----------
    def draw_pixel(self, x: int, y: int, color: Color, record: bool = True):
        if not self.in_canvas(x, y):
            return
        layer = self.current_layer_obj
        coord = Coordinate(x, y)
        old = layer.get(coord)
        color = Color(*color)
        # the transparent sentinel erases; anything else composites
        if color != TRANSPARENT:
            color = blend_with_opacity(old, color)
        if color == old:
            return
        if record:
            edit = self._open_pixel_edit(self.current_layer, reuse=not self._gesture_open)
            self._gesture_open = False
            edit.record(coord, old, color)
        layer.write(coord, color)
        layer.draw(coord)

    def fill_background(self, color: Color):
        layer = self.current_layer_obj
        layer.initial_fill = Color(*color)
        layer.filled = False
        layer.apply_initial_fill()

    def flip_horizontal(self):
        self._flip(horizontal=True)
        self.on_status("Flipped horizontally")

    def flip_vertical(self):
        self._flip(horizontal=False)
        self.on_status("Flipped vertically")

    def _flip(self, horizontal: bool):
        sel = self.selection
        if sel.active:
            # lift the source first so the commit records the vacated pixels
            if not sel.moving:
                self.move_selection(0, 0)
            x0, y0, x1, y1 = sel.bounds
            if horizontal:
                for y in range(y0, y1 + 1):
                    for x in range(x0, x0 + (x1 - x0 + 1) // 2):
                        sel.swap(Coordinate(x, y), Coordinate(x0 + x1 - x, y))
            else:
                for x in range(x0, x1 + 1):
                    for y in range(y0, y0 + (y1 - y0 + 1) // 2):
                        sel.swap(Coordinate(x, y), Coordinate(x, y0 + y1 - y))
            self._render_selection_preview()
            return

        layer = self.current_layer_obj
        edit = PixelEdit(self.current_layer)
        w, h = self.canvas_width, self.canvas_height
        done = set()
        for a in list(layer.pixels):
            if a in done:
                continue
            b = Coordinate(w - 1 - a.x, a.y) if horizontal else Coordinate(a.x, h - 1 - a.y)
            done.add(a)
            done.add(b)
            ca, cb = layer.get(a), layer.get(b)
            if ca == cb:
                continue
            edit.record(a, ca, cb)
            edit.record(b, cb, ca)
            layer.write(a, cb)
            layer.write(b, ca)
        layer.redraw()
        if edit.deltas:
            self._record(edit)

    # ---------- Selection ----------
    def start_selection(self, pixels: dict, bounds: tuple[int, int, int, int]):
        self.commit_selection()
        self.selection.start(pixels, bounds, self.current_layer)
        self._render_selection_preview()

    def select_rect(self, x0: int, y0: int, x1: int, y1: int):
        """Select the current layer's painted pixels inside an inclusive rectangle."""
        x0, y0, x1, y1 = normalize_rect(x0, y0, x1, y1)
        x0, y0 = max(0, x0), max(0, y0)
        x1, y1 = min(self.canvas_width - 1, x1), min(self.canvas_height - 1, y1)
        if x0 > x1 or y0 > y1:
            self.commit_selection()
            return
        pixels = {
            c: col for c, col in self.current_layer_obj.painted().items()
            if x0 <= c.x <= x1 and y0 <= c.y <= y1
        }
        self.start_selection(pixels, (x0, y0, x1, y1))

    def move_selection(self, dx: int, dy: int):
        sel = self.selection
        if not sel.active or not sel.pixels:
            return
        layer = self.layers[sel.layer_index]
        if not sel.moving:
            sel.moving = True
            edit = PixelEdit(sel.layer_index)
            self._record(edit)
            if not sel.pasted:
                for coord in sel.pixels:
                    if coord in layer.pixels:
                        edit.record(coord, layer.pixels[coord], TRANSPARENT)
                        layer.write(coord, TRANSPARENT)
        sel.translate(dx, dy)
        layer.redraw()
        self._render_selection_preview()

    def commit_selection(self):
        """Stamp the floating selection onto its layer and clear it."""
        sel = self.selection
        if sel.active and sel.moving:
            layer = self.layers[sel.layer_index]
            edit = self._open_pixel_edit(sel.layer_index)
            for coord, color in sel.pixels.items():
                if not self.in_canvas(coord.x, coord.y):
                    continue
                prev = layer.get(coord)
                new = blend_with_opacity(prev, color)
                if new != prev:
                    edit.record(coord, prev, new)
                    layer.write(coord, new)
            layer.redraw()
            self.history.prune_empty_tail()
            self.on_status("Selection committed")
        self._discard_selection()

    def cancel_selection(self):
        """
        Drop the floating pixels without stamping them. An entry opened when
        the move started is kept if it vacated source pixels, and pruned if it
        recorded nothing (a pasted selection).
        """
        if self.selection.moving:
            self.history.prune_empty_tail()
        self._discard_selection()

    def delete_selection(self):
        if not self.selection.active:
            return
        self.move_selection(0, 0)
        self.cancel_selection()
        self.on_status("Selection deleted")

    def _discard_selection(self):
        was_active = self.selection.active
        self.selection.clear()
        if was_active:
            self.preview_layer.clear()

    def _render_selection_preview(self):
        preview = self.preview_layer
        preview.pixels = {
            c: col for c, col in self.selection.pixels.items()
            if self.in_canvas(c.x, c.y)
        }
        preview.redraw()

    def copy(self):
        sel = self.selection
        if sel.active and sel.pixels:
            self.clipboard.store(sel.pixels, sel.bounds)
        else:
            self.clipboard.store(
                self.current_layer_obj.painted(),
                (0, 0, self.canvas_width - 1, self.canvas_height - 1),
            )
        self.on_status("Copied")

    def paste(self):
        if self.clipboard.is_empty:
            return
        self.commit_selection()
        self.selection.start(self.clipboard.pixels, self.clipboard.bounds, self.current_layer, pasted=True)
        self.move_selection(0, 0)
        self.on_status("Pasted")

    # ---------- Layer operations ----------
    def add_new_layer(self, name: str = "new layer") -> Layer:
        self.commit_selection()
        layer = Layer(self.canvas_width, self.canvas_height, name)
        index = len(self.layers) - 1
        self.layers.insert(index, layer)
        self.current_layer = index
        self._record(LayerOp(LayerAction.CREATE, index, layer))
        logger.debug("Added layer %r at %d", name, index)
        return layer

    def delete_layer(self, index: int, record: bool = True):
        if len(self.layers) <= 2:
            raise LayerError("Couldn't delete layer as it's the only one visible")
        self._check_layer_index(index)
        if record:
            self.commit_selection()
        layer = self._take_layer(index)
        # parked until the history entry that can bring it back is dropped
        self.deleted_layers.append(layer)
        if record:
            self._record(LayerOp(LayerAction.DELETE, index, layer))
        logger.debug("Deleted layer %r at %d", layer.name, index)

    def restore_layer(self, index: int):
        """
        Reinsert the most recently deleted layer at index. The stack is LIFO:
        it only reverses deletes in the opposite order they were made.
        """
        if not self.deleted_layers:
            raise LayerError("No layers to restore")
        if not 0 <= index <= len(self.layers) - 1:
            raise LayerError(f"Layer index {index} out of range")
        layer = self.deleted_layers.pop()
        self._put_layer(index, layer)
        logger.debug("Restored layer %r at %d", layer.name, index)

    def _take_layer(self, index: int) -> Layer:
        layer = self.layers.pop(index)
        self.current_layer = clamp(self.current_layer, 0, len(self.layers) - 2)
        return layer

    def _put_layer(self, index: int, layer: Layer):
        if (layer.width, layer.height) != (self.canvas_width, self.canvas_height):
            layer.resize(self.canvas_width, self.canvas_height)
        self.layers.insert(index, layer)

    def _unpark_layer(self, index: int, layer: Layer):
        """Put back the exact layer a recorded delete removed."""
        if layer in self.layers:
            logger.warning("Layer %r is already in the document", layer.name)
            return
        if layer in self.deleted_layers:
            self.deleted_layers.remove(layer)
        self._put_layer(index, layer)
        self.current_layer = index

    def _swap_layers(self, i: int, j: int):
        self.layers[i], self.layers[j] = self.layers[j], self.layers[i]
        if self.current_layer == i:
            self.current_layer = j
        elif self.current_layer == j:
            self.current_layer = i

    def move_layer_up(self, index: int, record: bool = True):
        if not 0 <= index < len(self.layers) - 2:
            raise LayerError("Couldn't move layer up")
        if record:
            self.commit_selection()
        self._swap_layers(index, index + 1)
        if record:
            self._record(LayerOp(LayerAction.MOVE_UP, index))

    def move_layer_down(self, index: int, record: bool = True):
        if not 0 < index < len(self.layers) - 1:
            raise LayerError("Couldn't move layer down")
        if record:
            self.commit_selection()
        self._swap_layers(index - 1, index)
        if record:
            self._record(LayerOp(LayerAction.MOVE_DOWN, index))

    def merge_layer_down(self, index: int):
        if len(self.layers) <= 2:
            raise LayerError("Couldn't merge layer down: Not enough layers")
        self._check_layer_index(index)
        if index == 0:
            raise LayerError("Couldn't merge layer down: Can't merge lowest layer")
        self.commit_selection()

        src = self.layers[index]
        dst = self.layers[index - 1]
        edit = PixelEdit(index - 1)
        for coord, color in src.pixels.items():
            prev = dst.get(coord)
            new = blend_with_opacity(prev, color)
            if new != prev:
                edit.record(coord, prev, new)
                dst.write(coord, new)
        dst.redraw()

        self._record(Compound([edit, LayerOp(LayerAction.DELETE, index, src)]))
        self.delete_layer(index, record=False)
        self.on_status(f"Merged {src.name!r} into {dst.name!r}")

    def set_layer_hidden(self, index: int, hidden: bool):
        self._check_layer_index(index)
        self.layers[index].hidden = hidden

    def rename_layer(self, index: int, name: str):
        self._check_layer_index(index)
        self.layers[index].name = name

    # ---------- Canvas geometry ----------
    def resize_canvas(self, width: int, height: int, anchor: ResizeAnchor = ResizeAnchor.TOP_LEFT):
        validate_canvas_size(width, height)
        self.commit_selection()

        prev = [layer.snapshot() for layer in self.layers]
        for layer in self.layers:
            layer.resize(width, height, anchor)
        current = [layer.snapshot() for layer in self.layers]

        self._record(ResizeOp(prev, current, self.canvas_width, self.canvas_height, width, height))
        self._set_canvas_size(width, height)
        self.doing_resize = False
        self.on_status(f"Resized canvas to {width}x{height}")

    def _set_canvas_size(self, width: int, height: int):
        self.canvas_width = width
        self.canvas_height = height
        self.canvas_width_preview = width
        self.canvas_height_preview = height

    def begin_resize_preview(self, width: int, height: int, anchor: ResizeAnchor = ResizeAnchor.TOP_LEFT):
        validate_canvas_size(width, height)
        self.doing_resize = True
        self.canvas_width_preview = width
        self.canvas_height_preview = height
        self.resize_anchor_preview = anchor

    def resize_preview_rect(self) -> tuple[int, int, int, int]:
        """(x, y, width, height) of the staged canvas in current canvas coordinates."""
        dx, dy = anchor_offset(self.canvas_width, self.canvas_height,
                               self.canvas_width_preview, self.canvas_height_preview,
                               self.resize_anchor_preview)
        return dx, dy, self.canvas_width_preview, self.canvas_height_preview

    def commit_resize_preview(self):
        if (self.tile_width_preview, self.tile_height_preview) != (self.tile_width, self.tile_height):
            self.resize_tile_size(self.tile_width_preview, self.tile_height_preview)
        if (self.canvas_width_preview, self.canvas_height_preview) != (self.canvas_width, self.canvas_height):
            self.resize_canvas(self.canvas_width_preview, self.canvas_height_preview, self.resize_anchor_preview)
        self.doing_resize = False

    def cancel_resize_preview(self):
        self.doing_resize = False
        self.canvas_width_preview = self.canvas_width
        self.canvas_height_preview = self.canvas_height
        self.tile_width_preview = self.tile_width
        self.tile_height_preview = self.tile_height
        self.resize_anchor_preview = ResizeAnchor.TOP_LEFT

    def resize_tile_size(self, width: int, height: int):
        if width < 1 or height < 1:
            raise ValueError(f"Invalid tile size {width}x{height}")
        self.tile_width = self.tile_width_preview = width
        self.tile_height = self.tile_height_preview = height

    # ---------- Undo / Redo ----------
    def undo(self) -> bool:
        action = self.history.undo()
        if action is None:
            return False
        self._discard_selection()
        self._revert(action)
        self.on_status("Undo")
        return True

    def redo(self) -> bool:
        action = self.history.redo()
        if action is None:
            return False
        self._discard_selection()
        self._apply(action)
        self.on_status("Redo")
        return True

    def _revert(self, action):
        if isinstance(action, Compound):
            for child in reversed(action.actions):
                self._revert(child)
        elif isinstance(action, PixelEdit):
            layer = self.layers[action.layer_index]
            for coord, delta in action.deltas.items():
                layer.write(coord, delta.previous)
            layer.redraw()
        elif isinstance(action, LayerOp):
            if action.kind is LayerAction.CREATE:
                # held by the entry for redo, not parked
                self._take_layer(action.layer_index)
            elif action.kind is LayerAction.DELETE:
                self._unpark_layer(action.layer_index, action.layer)
            elif action.kind is LayerAction.MOVE_UP:
                self.move_layer_down(action.layer_index + 1, record=False)
            elif action.kind is LayerAction.MOVE_DOWN:
                self.move_layer_up(action.layer_index - 1, record=False)
            else:
                raise TypeError(f"Unknown layer action {action.kind!r}")
        elif isinstance(action, ResizeOp):
            self._restore_canvas(action.prev_pixel_snapshots, action.prev_width, action.prev_height)
        else:
            raise TypeError(f"Unknown history entry {action!r}")

    def _apply(self, action):
        if isinstance(action, Compound):
            for child in action.actions:
                self._apply(child)
        elif isinstance(action, PixelEdit):
            layer = self.layers[action.layer_index]
            for coord, delta in action.deltas.items():
                layer.write(coord, delta.current)
            layer.redraw()
        elif isinstance(action, LayerOp):
            if action.kind is LayerAction.CREATE:
                self._put_layer(action.layer_index, action.layer)
                self.current_layer = action.layer_index
            elif action.kind is LayerAction.DELETE:
                self.delete_layer(action.layer_index, record=False)
            elif action.kind is LayerAction.MOVE_UP:
                self.move_layer_up(action.layer_index, record=False)
            elif action.kind is LayerAction.MOVE_DOWN:
                self.move_layer_down(action.layer_index, record=False)
            else:
                raise TypeError(f"Unknown layer action {action.kind!r}")
        elif isinstance(action, ResizeOp):
            self._restore_canvas(action.next_pixel_snapshots, action.next_width, action.next_height)
        else:
            raise TypeError(f"Unknown history entry {action!r}")

    def _restore_canvas(self, snapshots, width: int, height: int):
        self._set_canvas_size(width, height)
        for layer, pixels in zip(self.layers, snapshots):
            layer.restore(pixels, width, height)

    # ---------- Tools / input ----------
    def tool_for(self, button: MouseButton) -> Tool:
        return self.left_tool if button is MouseButton.LEFT else self.right_tool

    def color_for(self, button: MouseButton) -> Color:
        return self.left_color if button is MouseButton.LEFT else self.right_color

    def set_color(self, button: MouseButton, color: Color):
        if button is MouseButton.LEFT:
            self.left_color = Color(*color)
        else:
            self.right_color = Color(*color)

    def set_tool(self, tool: Tool, button: MouseButton = MouseButton.LEFT):
        # leaving the selector stamps whatever is floating
        current = self.tool_for(button)
        if current.tool_type is ToolType.SELECTION and tool.tool_type is not ToolType.SELECTION:
            self.commit_selection()
        if button is MouseButton.LEFT:
            self.left_tool = tool
        else:
            self.right_tool = tool
        self.on_status(f"Tool: {tool}")

    def mouse_down(self, x: int, y: int, button: MouseButton = MouseButton.LEFT):
        """Call every frame the button is held; the first call starts a gesture."""
        if button not in self._buttons_down:
            self._buttons_down.add(button)
            self.begin_gesture()
        self.tool_for(button).mouse_down(self, x, y, button)

    def mouse_up(self, x: int, y: int, button: MouseButton = MouseButton.LEFT):
        if button not in self._buttons_down:
            return
        self._buttons_down.discard(button)
        self.tool_for(button).mouse_up(self, x, y, button)
        self._gesture_open = False
        self.history.prune_empty_tail()

    def draw_preview(self, x: int, y: int, button: MouseButton = MouseButton.LEFT):
        if self.selection.active:
            self._render_selection_preview()
        else:
            self.preview_layer.clear()
        self.tool_for(button).draw_preview(self, x, y)

    # ---------- Animations ----------
    def _check_animation_index(self, index: int):
        if not 0 <= index < len(self.animations):
            raise AnimationError("Animation not in range")

    def add_animation(self, name: str | None = None) -> Animation:
        anim = Animation(name or f"Anim {len(self.animations)}")
        self.animations.append(anim)
        return anim

    def delete_animation(self, index: int):
        self._check_animation_index(index)
        del self.animations[index]
        self.current_animation = max(0, len(self.animations) - 1)

    def get_animation(self, index: int) -> Animation:
        self._check_animation_index(index)
        return self.animations[index]

    @property
    def current_animation_obj(self) -> Animation | None:
        if not self.animations:
            return None
        return self.animations[self.current_animation]

    def set_current_animation(self, index: int):
        self._check_animation_index(index)
        self.current_animation = index

    def set_animation_frames(self, index: int, frame_start: int, frame_end: int):
        anim = self.get_animation(index)
        anim.frame_start = frame_start
        anim.frame_end = frame_end

    def set_animation_name(self, index: int, name: str):
        self.get_animation(index).name = name

    def set_current_animation_timing(self, fps: float):
        anim = self.current_animation_obj
        if anim is None:
            raise AnimationError("No animation selected")
        anim.timing = float(fps)

    # ---------- Output / lifecycle ----------
    def flatten(self) -> Image.Image:
        """Composite every visible saved layer, bottom to top."""
        base = Image.new("RGBA", (self.canvas_width, self.canvas_height), TRANSPARENT)
        for layer in self.layers[:-1]:
            if not layer.hidden:
                base.alpha_composite(layer.to_image())
        return base

    def close(self):
        if self.closed:
            return
        for layer in self.layers + self.deleted_layers + list(self._history_layers()):
            layer.release()
        self.closed = True
        logger.debug("Closed %s", self.filename)
