"""Layered pixel-art document core: layers, selections, undo history and the .pix codec."""

__version__ = "1.0.0"
