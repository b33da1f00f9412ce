class EditorError(Exception):
    """Base class for failures reported by the document core."""


class LayerError(EditorError, IndexError):
    """Layer index out of range, or an operation that would break the layer stack."""


class AnimationError(EditorError, IndexError):
    pass


class UnsupportedFormatError(EditorError, ValueError):
    pass


class DocumentFormatError(EditorError, ValueError):
    """A .pix file that could not be decoded."""
