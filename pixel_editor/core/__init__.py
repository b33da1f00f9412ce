from pixel_editor.core.color import Color, Coordinate, TRANSPARENT
from pixel_editor.core.document import Animation, Document
from pixel_editor.core.errors import EditorError, LayerError, AnimationError
from pixel_editor.core.layer import Layer, ResizeAnchor
from pixel_editor.core.selection import Clipboard, Selection
