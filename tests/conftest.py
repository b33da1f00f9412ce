"""
Shared fixtures for pixel_editor tests.

Provides small documents, a shared clipboard, and a status-message recorder.
"""
import pytest

from pixel_editor.core.color import Color, Coordinate
from pixel_editor.core.document import Document
from pixel_editor.core.selection import Clipboard


# ── Sample colors ───────────────────────────────────────────────────────

GREEN = Color(0, 200, 0, 255)
HALF_WHITE = Color(255, 255, 255, 128)


def paint(doc, *points, color=GREEN):
    """One gesture: open an entry, then draw every point into it."""
    doc.begin_gesture()
    for x, y in points:
        doc.draw_pixel(x, y, color)


@pytest.fixture
def doc():
    """Fresh 4x4 document with a transparent background"""
    d = Document(4, 4)
    yield d
    d.close()


@pytest.fixture
def big_doc():
    """8x8 document with the default tile size"""
    d = Document(8, 8)
    yield d
    d.close()


@pytest.fixture
def two_layer_doc():
    """4x4 document: background with (0,0) green, 'top' layer with (1,1) green"""
    d = Document(4, 4)
    paint(d, (0, 0))
    d.add_new_layer("top")
    paint(d, (1, 1))
    yield d
    d.close()


@pytest.fixture
def clipboard():
    return Clipboard()


@pytest.fixture
def status_messages():
    """List that collects on_status callbacks"""
    return []


@pytest.fixture
def status_doc(status_messages):
    d = Document(4, 4, on_status=status_messages.append)
    yield d
    d.close()

