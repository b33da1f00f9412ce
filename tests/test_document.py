"""
Tests for Document orchestration.

Covers:
- Undo/redo round trips, bounded history, redo invalidation
- Layer create/delete/restore/move/merge and their undo
- Canvas resize (all anchors) and resize preview staging
- Flips, with and without a floating selection
- Selection move/commit/cancel/delete and copy/paste
- Animations, flattening, errors leaving state unchanged
"""
import pytest

from pixel_editor.core.color import BLUE, RED, TRANSPARENT, Color, Coordinate
from pixel_editor.core.document import Document
from pixel_editor.core.errors import AnimationError, LayerError
from pixel_editor.core.history import Compound, LayerAction, LayerOp, PixelEdit, ResizeOp
from pixel_editor.core.layer import ResizeAnchor
from pixel_editor.core.selection import Clipboard

from conftest import GREEN, HALF_WHITE, paint


def names(doc):
    return [layer.name for layer in doc.layers]


# ══════════════════════════════════════════════════════════════════════════
# Construction
# ══════════════════════════════════════════════════════════════════════════

class TestConstruction:

    def test_default_layers(self, doc):
        assert names(doc) == ["background", "hidden"]
        assert doc.current_layer == 0
        assert doc.left_color == RED
        assert doc.right_color == BLUE
        assert len(doc.history) == 0

    def test_background_fill_is_not_history(self):
        d = Document(2, 2, background=RED)
        assert len(d.layers[0].painted()) == 4
        assert len(d.history) == 0
        d.close()

    @pytest.mark.parametrize("w, h", [(0, 4), (4, -1), (5000, 4)])
    def test_invalid_canvas_size(self, w, h):
        with pytest.raises(ValueError):
            Document(w, h)

    def test_filename(self, doc):
        assert doc.filename == "untitled"


# ══════════════════════════════════════════════════════════════════════════
# Drawing and undo/redo
# ══════════════════════════════════════════════════════════════════════════

class TestDrawing:

    def test_retouch_in_one_gesture(self, doc):
        doc.begin_gesture()
        doc.draw_pixel(1, 1, RED)
        doc.draw_pixel(1, 1, BLUE)
        assert len(doc.history) == 1
        edit = doc.history.entries[0]
        assert isinstance(edit, PixelEdit)
        assert edit.deltas[(1, 1)].previous == TRANSPARENT
        assert edit.deltas[(1, 1)].current == BLUE
        assert doc.undo()
        assert doc.layers[0].get((1, 1)) == TRANSPARENT

    def test_out_of_canvas_is_ignored(self, doc):
        doc.draw_pixel(-1, 0, RED)
        doc.draw_pixel(4, 4, RED)
        assert doc.layers[0].pixels == {}
        assert len(doc.history) == 0

    def test_unchanged_pixel_not_recorded(self, doc):
        paint(doc, (0, 0), color=RED)
        paint(doc, (0, 0), color=RED)
        # second gesture changed nothing; the next record prunes it
        doc.add_new_layer()
        assert [type(a) for a in doc.history.entries] == [PixelEdit, LayerOp]

    def test_translucent_color_blends(self, doc):
        paint(doc, (0, 0), color=Color(0, 0, 0, 255))
        paint(doc, (0, 0), color=HALF_WHITE)
        out = doc.layers[0].get((0, 0))
        assert out.a == 255
        assert 126 <= out.r <= 129

    def test_transparent_erases(self, doc):
        paint(doc, (0, 0), color=RED)
        paint(doc, (0, 0), color=TRANSPARENT)
        assert doc.layers[0].painted() == {}
        assert doc.layers[0].surface.getpixel((0, 0))[3] == 0

    def test_undo_redo_round_trip(self, doc):
        before = doc.pixel_state()
        strokes = [[(0, 0), (1, 0)], [(1, 0), (2, 2)], [(3, 3)]]
        colors = [RED, BLUE, GREEN]
        for points, color in zip(strokes, colors):
            paint(doc, *points, color=color)
        after = doc.pixel_state()

        for _ in strokes:
            assert doc.undo()
        assert doc.pixel_state() == before
        for _ in strokes:
            assert doc.redo()
        assert doc.pixel_state() == after

    def test_undo_redo_at_boundaries_are_noops(self, doc):
        assert not doc.undo()
        assert not doc.redo()
        paint(doc, (0, 0))
        assert not doc.redo()
        assert doc.undo()
        assert not doc.undo()

    def test_bounded_history(self):
        d = Document(4, 4, max_history=3)
        points = [(0, 0), (1, 0), (2, 0), (3, 0), (0, 1)]
        for p in points:
            paint(d, p)
        assert len(d.history) == 3
        while d.undo():
            pass
        # the two oldest strokes were evicted and can no longer be undone
        assert set(d.layers[0].painted()) == {Coordinate(0, 0), Coordinate(1, 0)}
        d.close()

    def test_new_edit_invalidates_redo(self, doc):
        paint(doc, (0, 0))
        paint(doc, (1, 1))
        doc.undo()
        paint(doc, (2, 2), color=RED)
        state = doc.pixel_state()
        assert not doc.redo()
        assert doc.pixel_state() == state

    def test_undo_surface_follows_pixels(self, doc):
        paint(doc, (2, 1), color=RED)
        doc.undo()
        assert doc.layers[0].surface.getpixel((2, 1)) == tuple(TRANSPARENT)
        doc.redo()
        assert doc.layers[0].surface.getpixel((2, 1)) == tuple(RED)


# ══════════════════════════════════════════════════════════════════════════
# Layers
# ══════════════════════════════════════════════════════════════════════════

class TestLayers:

    def test_add_new_layer(self, doc):
        layer = doc.add_new_layer("ink")
        assert names(doc) == ["background", "ink", "hidden"]
        assert doc.current_layer_obj is layer
        assert doc.history.entries[-1] == LayerOp(LayerAction.CREATE, 1)

    def test_add_undo_redo(self, doc):
        layer = doc.add_new_layer("ink")
        doc.undo()
        assert names(doc) == ["background", "hidden"]
        doc.redo()
        assert doc.layers[1] is layer

    def test_delete_and_restore(self):
        d = Document(4, 4)
        paint(d, (0, 0), (1, 2))
        d.layers[0].name = "A"
        original = d.layers[0].snapshot()
        d.add_new_layer("B")

        d.delete_layer(0)
        assert names(d) == ["B", "hidden"]
        assert d.current_layer == 0

        d.restore_layer(0)
        assert names(d) == ["A", "B", "hidden"]
        assert d.layers[0].pixels == original
        d.close()

    def test_restore_is_lifo(self):
        d = Document(4, 4)
        d.layers[0].name = "A"
        d.add_new_layer("B")
        d.add_new_layer("C")
        d.delete_layer(0)
        d.delete_layer(0)
        assert names(d) == ["C", "hidden"]
        # restores reverse the deletes: the most recently deleted layer comes back first
        d.restore_layer(0)
        assert names(d) == ["B", "C", "hidden"]
        d.restore_layer(0)
        assert names(d) == ["A", "B", "C", "hidden"]
        d.close()

    def test_restore_resizes_to_canvas(self, two_layer_doc):
        d = two_layer_doc
        d.delete_layer(1)
        d.resize_canvas(6, 6)
        d.restore_layer(1)
        assert (d.layers[1].width, d.layers[1].height) == (6, 6)

    def test_delete_undo_redo(self, two_layer_doc):
        d = two_layer_doc
        before = d.pixel_state()
        d.delete_layer(1)
        assert len(d.layers) == 2
        d.undo()
        assert names(d) == ["background", "top", "hidden"]
        assert d.pixel_state() == before
        d.redo()
        assert names(d) == ["background", "hidden"]

    def test_delete_last_layer_fails_without_change(self, doc):
        with pytest.raises(LayerError):
            doc.delete_layer(0)
        assert names(doc) == ["background", "hidden"]
        assert len(doc.history) == 0

    def test_delete_preview_layer_refused(self, two_layer_doc):
        with pytest.raises(LayerError):
            two_layer_doc.delete_layer(2)
        assert len(two_layer_doc.layers) == 3

    def test_restore_empty_stack(self, doc):
        with pytest.raises(LayerError):
            doc.restore_layer(0)

    def test_move_layer_up_and_undo(self, two_layer_doc):
        d = two_layer_doc
        d.set_current_layer(0)
        d.move_layer_up(0)
        assert names(d) == ["top", "background", "hidden"]
        assert d.current_layer_obj.name == "background"
        d.undo()
        assert names(d) == ["background", "top", "hidden"]
        d.redo()
        assert names(d) == ["top", "background", "hidden"]

    def test_move_layer_down_and_undo(self, two_layer_doc):
        d = two_layer_doc
        d.move_layer_down(1)
        assert names(d) == ["top", "background", "hidden"]
        d.undo()
        assert names(d) == ["background", "top", "hidden"]

    def test_move_out_of_range(self, two_layer_doc):
        d = two_layer_doc
        with pytest.raises(LayerError):
            d.move_layer_up(1)
        with pytest.raises(LayerError):
            d.move_layer_down(0)
        assert names(d) == ["background", "top", "hidden"]

    def test_merge_down_atomic_undo(self, two_layer_doc):
        d = two_layer_doc
        before = d.pixel_state()
        history_len = len(d.history)

        d.merge_layer_down(1)
        assert names(d) == ["background", "hidden"]
        assert set(d.layers[0].painted()) == {Coordinate(0, 0), Coordinate(1, 1)}
        assert len(d.history) == history_len + 1
        assert isinstance(d.history.entries[-1], Compound)

        d.undo()
        assert names(d) == ["background", "top", "hidden"]
        assert d.pixel_state() == before

        d.redo()
        assert names(d) == ["background", "hidden"]
        assert set(d.layers[0].painted()) == {Coordinate(0, 0), Coordinate(1, 1)}

    def test_merge_lowest_layer_fails(self, two_layer_doc):
        before = two_layer_doc.pixel_state()
        with pytest.raises(LayerError):
            two_layer_doc.merge_layer_down(0)
        assert two_layer_doc.pixel_state() == before

    def test_merge_with_single_layer_fails(self, doc):
        with pytest.raises(LayerError):
            doc.merge_layer_down(0)

    def test_set_current_layer_out_of_range(self, doc):
        with pytest.raises(LayerError):
            doc.set_current_layer(1)
        assert doc.current_layer == 0

    def test_hide_and_rename(self, two_layer_doc):
        d = two_layer_doc
        d.set_layer_hidden(1, True)
        d.rename_layer(1, "ink")
        assert d.layers[1].hidden
        assert d.layers[1].name == "ink"
        with pytest.raises(LayerError):
            d.rename_layer(5, "x")

    def test_undo_delete_after_undone_add(self, doc):
        doc.add_new_layer("A")
        paint(doc, (2, 2))
        doc.delete_layer(1)
        doc.add_new_layer("N")
        doc.undo()
        doc.undo()
        assert names(doc) == ["background", "A", "hidden"]
        assert doc.layers[1].painted() == {Coordinate(2, 2): GREEN}
        assert doc.deleted_layers == []

    def test_undo_merge_after_undone_add(self, two_layer_doc):
        d = two_layer_doc
        before = d.pixel_state()
        d.merge_layer_down(1)
        d.add_new_layer("N")
        d.undo()
        d.undo()
        assert names(d) == ["background", "top", "hidden"]
        assert d.pixel_state() == before

    def test_undo_delete_selects_restored_layer(self, two_layer_doc):
        d = two_layer_doc
        d.delete_layer(1)
        assert d.current_layer == 0
        d.undo()
        assert d.current_layer == 1
        assert d.current_layer_obj.name == "top"

    def test_undone_layers_released_when_redo_is_cut(self, doc):
        undone = []
        for i in range(20):
            undone.append(doc.add_new_layer(f"layer {i}"))
            doc.undo()
            paint(doc, (1, 1))
            doc.undo()
        assert doc.deleted_layers == []
        assert all(layer.surface is None for layer in undone)
        assert names(doc) == ["background", "hidden"]

    def test_evicted_delete_releases_parked_layer(self):
        d = Document(4, 4, max_history=2)
        layer = d.add_new_layer("gone")
        d.delete_layer(1)
        paint(d, (0, 0))
        paint(d, (1, 0))
        assert d.deleted_layers == []
        assert layer.surface is None
        d.close()

    def test_layer_held_by_newer_delete_survives_eviction(self):
        d = Document(4, 4, max_history=3)
        layer = d.add_new_layer("kept")
        d.delete_layer(1)
        d.restore_layer(1)
        d.delete_layer(1)
        paint(d, (0, 0))
        paint(d, (1, 0))
        # the first delete is gone, the second still refers to the layer
        assert d.deleted_layers == [layer]
        assert layer.surface is not None
        for _ in range(3):
            assert d.undo()
        assert names(d) == ["background", "kept", "hidden"]
        d.close()


# ══════════════════════════════════════════════════════════════════════════
# Canvas resize
# ══════════════════════════════════════════════════════════════════════════

class TestResizeCanvas:

    @pytest.mark.parametrize("anchor", list(ResizeAnchor))
    def test_resize_undo_round_trip(self, anchor):
        d = Document(5, 5)
        paint(d, (0, 0), (4, 4), (2, 3))
        d.add_new_layer()
        paint(d, (1, 1), (4, 0), color=RED)
        before = d.pixel_state()

        d.resize_canvas(3, 2, anchor)
        assert (d.canvas_width, d.canvas_height) == (3, 2)
        assert isinstance(d.history.entries[-1], ResizeOp)
        for layer in d.layers:
            assert all(layer.in_bounds(x, y) for x, y in layer.pixels)

        d.undo()
        assert (d.canvas_width, d.canvas_height) == (5, 5)
        assert d.pixel_state() == before
        assert all(layer.surface.size == (5, 5) for layer in d.layers)
        d.close()

    def test_resize_redo(self, doc):
        paint(doc, (3, 3))
        doc.resize_canvas(2, 2, ResizeAnchor.BOTTOM_RIGHT)
        after = doc.pixel_state()
        doc.undo()
        doc.redo()
        assert (doc.canvas_width, doc.canvas_height) == (2, 2)
        assert doc.pixel_state() == after
        assert after[0] == {Coordinate(1, 1): GREEN}

    def test_invalid_resize_keeps_state(self, doc):
        with pytest.raises(ValueError):
            doc.resize_canvas(0, 4)
        assert (doc.canvas_width, doc.canvas_height) == (4, 4)
        assert len(doc.history) == 0

    def test_resize_preview_staging(self, doc):
        doc.begin_resize_preview(2, 2, ResizeAnchor.CENTER)
        assert doc.doing_resize
        assert doc.resize_preview_rect() == (1, 1, 2, 2)
        assert (doc.canvas_width, doc.canvas_height) == (4, 4)
        doc.commit_resize_preview()
        assert not doc.doing_resize
        assert (doc.canvas_width, doc.canvas_height) == (2, 2)

    def test_cancel_resize_preview(self, doc):
        doc.begin_resize_preview(8, 8)
        doc.cancel_resize_preview()
        assert not doc.doing_resize
        assert doc.canvas_width_preview == 4
        assert len(doc.history) == 0

    def test_tile_size(self, doc):
        doc.resize_tile_size(16, 4)
        assert (doc.tile_width, doc.tile_height) == (16, 4)
        with pytest.raises(ValueError):
            doc.resize_tile_size(0, 4)


# ══════════════════════════════════════════════════════════════════════════
# Flips
# ══════════════════════════════════════════════════════════════════════════

class TestFlip:

    def test_flip_horizontal_full_canvas(self, doc):
        paint(doc, (0, 0), (1, 2))
        doc.flip_horizontal()
        assert set(doc.layers[0].painted()) == {Coordinate(3, 0), Coordinate(2, 2)}

    def test_flip_vertical_full_canvas(self, doc):
        paint(doc, (0, 0))
        doc.flip_vertical()
        assert set(doc.layers[0].painted()) == {Coordinate(0, 3)}

    def test_flip_involution(self, doc):
        paint(doc, (0, 0), (1, 2), (3, 1))
        paint(doc, (2, 2), color=RED)
        before = doc.pixel_state()
        doc.flip_horizontal()
        doc.flip_horizontal()
        assert doc.pixel_state() == before
        doc.flip_vertical()
        doc.flip_vertical()
        assert doc.pixel_state() == before

    def test_flip_is_one_undo_step(self, doc):
        paint(doc, (0, 0), (1, 2))
        before = doc.pixel_state()
        doc.flip_horizontal()
        doc.undo()
        assert doc.pixel_state() == before

    def test_symmetric_flip_records_nothing(self, doc):
        paint(doc, (0, 1), (3, 1))
        n = len(doc.history)
        doc.flip_horizontal()
        assert len(doc.history) == n

    def test_symmetric_flip_keeps_redo(self, doc):
        paint(doc, (0, 1), (3, 1))
        paint(doc, (2, 2))
        doc.undo()
        doc.flip_horizontal()
        assert doc.redo()
        assert Coordinate(2, 2) in doc.layers[0].painted()

    def test_flip_selection_involution(self, doc):
        paint(doc, (0, 0), (3, 3))
        before = doc.pixel_state()
        for _ in range(2):
            doc.select_rect(0, 0, 1, 1)
            doc.flip_horizontal()
            doc.commit_selection()
        assert doc.pixel_state() == before

    def test_flip_selection_confined_to_bounds(self, doc):
        paint(doc, (0, 0), (3, 3))
        doc.select_rect(0, 0, 1, 1)
        doc.flip_horizontal()
        assert set(doc.selection.pixels) == {Coordinate(1, 0)}
        doc.commit_selection()
        assert set(doc.layers[0].painted()) == {Coordinate(1, 0), Coordinate(3, 3)}
        doc.undo()
        assert set(doc.layers[0].painted()) == {Coordinate(0, 0), Coordinate(3, 3)}

    def test_status_message(self, status_doc, status_messages):
        status_doc.flip_vertical()
        assert status_messages == ["Flipped vertically"]


# ══════════════════════════════════════════════════════════════════════════
# Selection
# ══════════════════════════════════════════════════════════════════════════

class TestSelection:

    def test_select_rect_picks_current_layer(self, two_layer_doc):
        d = two_layer_doc
        d.select_rect(3, 3, 0, 0)
        assert d.selection.active
        assert d.selection.bounds == (0, 0, 3, 3)
        assert set(d.selection.pixels) == {Coordinate(1, 1)}

    def test_move_then_commit(self, doc):
        paint(doc, (0, 0), (1, 0))
        doc.select_rect(0, 0, 1, 0)
        doc.move_selection(1, 1)
        assert doc.layers[0].painted() == {}
        assert set(doc.preview_layer.pixels) == {Coordinate(1, 1), Coordinate(2, 1)}

        doc.commit_selection()
        assert set(doc.layers[0].painted()) == {Coordinate(1, 1), Coordinate(2, 1)}
        assert not doc.selection.active
        assert doc.preview_layer.pixels == {}
        assert len(doc.history) == 2

        doc.undo()
        assert set(doc.layers[0].painted()) == {Coordinate(0, 0), Coordinate(1, 0)}

    def test_commit_drops_out_of_canvas(self, doc):
        paint(doc, (0, 0), (1, 0))
        doc.select_rect(0, 0, 1, 0)
        doc.move_selection(-1, 0)
        doc.commit_selection()
        assert doc.layers[0].painted() == {Coordinate(0, 0): GREEN}

    def test_commit_blends_over_destination(self, doc):
        paint(doc, (0, 0), color=HALF_WHITE)
        paint(doc, (1, 0), color=Color(0, 0, 0, 255))
        doc.select_rect(0, 0, 0, 0)
        doc.move_selection(1, 0)
        doc.commit_selection()
        out = doc.layers[0].get((1, 0))
        assert out.a == 255
        assert 126 <= out.r <= 129

    def test_unmoved_selection_commits_nothing(self, doc):
        paint(doc, (0, 0))
        n = len(doc.history)
        doc.select_rect(0, 0, 3, 3)
        doc.commit_selection()
        assert len(doc.history) == n
        assert not doc.selection.active

    def test_cancel_after_move_keeps_vacating_entry(self, doc):
        paint(doc, (0, 0))
        doc.select_rect(0, 0, 0, 0)
        doc.move_selection(2, 2)
        doc.cancel_selection()
        assert doc.layers[0].painted() == {}
        assert len(doc.history) == 2
        doc.undo()
        assert set(doc.layers[0].painted()) == {Coordinate(0, 0)}

    def test_cancel_empty_move_entry_is_pruned(self, doc):
        paint(doc, (0, 0))
        doc.copy()
        n = len(doc.history)
        doc.paste()
        assert len(doc.history) == n + 1
        doc.cancel_selection()
        assert len(doc.history) == n
        assert doc.layers[0].painted() == {Coordinate(0, 0): GREEN}

    def test_delete_selection(self, doc):
        paint(doc, (0, 0), (2, 2))
        doc.select_rect(0, 0, 1, 1)
        doc.delete_selection()
        assert set(doc.layers[0].painted()) == {Coordinate(2, 2)}
        assert not doc.selection.active
        doc.undo()
        assert set(doc.layers[0].painted()) == {Coordinate(0, 0), Coordinate(2, 2)}

    def test_undo_discards_floating_selection(self, doc):
        paint(doc, (0, 0))
        before = doc.pixel_state()
        doc.select_rect(0, 0, 0, 0)
        doc.move_selection(1, 0)
        doc.undo()
        assert not doc.selection.active
        assert doc.pixel_state() == before

    def test_copy_paste_to_new_layer(self, doc):
        paint(doc, (0, 0))
        doc.copy()
        doc.add_new_layer("copy")
        doc.paste()
        assert doc.selection.pasted
        doc.commit_selection()
        assert doc.layers[1].painted() == {Coordinate(0, 0): GREEN}
        # pasting never vacates the source layer
        assert doc.layers[0].painted() == {Coordinate(0, 0): GREEN}
        doc.undo()
        assert doc.layers[1].painted() == {}

    def test_copy_selection_only(self, doc):
        paint(doc, (0, 0), (3, 3))
        doc.select_rect(0, 0, 1, 1)
        doc.copy()
        assert set(doc.clipboard.pixels) == {Coordinate(0, 0)}

    def test_paste_empty_clipboard_is_noop(self, doc):
        doc.paste()
        assert not doc.selection.active
        assert len(doc.history) == 0

    def test_paste_commits_inflight_selection(self, doc):
        paint(doc, (0, 0))
        doc.copy()
        doc.select_rect(0, 0, 0, 0)
        doc.move_selection(2, 0)
        doc.paste()
        assert Coordinate(2, 0) in doc.layers[0].painted()
        assert doc.selection.pasted

    def test_shared_clipboard_across_documents(self):
        shared = Clipboard()
        a = Document(4, 4, clipboard=shared)
        b = Document(4, 4, clipboard=shared)
        paint(a, (3, 0), color=RED)
        a.copy()
        b.paste()
        b.commit_selection()
        assert b.layers[0].painted() == {Coordinate(3, 0): RED}
        a.close()
        b.close()

    def test_separate_clipboards_by_default(self):
        a, b = Document(4, 4), Document(4, 4)
        paint(a, (0, 0))
        a.copy()
        assert b.clipboard.is_empty
        a.close()
        b.close()

    def test_add_layer_commits_selection(self, doc):
        paint(doc, (0, 0))
        doc.select_rect(0, 0, 0, 0)
        doc.move_selection(1, 0)
        doc.add_new_layer()
        assert not doc.selection.active
        assert set(doc.layers[0].painted()) == {Coordinate(1, 0)}


# ══════════════════════════════════════════════════════════════════════════
# Animations
# ══════════════════════════════════════════════════════════════════════════

class TestAnimations:

    def test_add_defaults(self, doc):
        a = doc.add_animation()
        b = doc.add_animation()
        assert (a.name, b.name) == ("Anim 0", "Anim 1")
        assert a.timing == 5.0
        assert doc.current_animation_obj is a

    def test_edit_animation(self, doc):
        doc.add_animation("walk")
        doc.set_animation_frames(0, 2, 5)
        doc.set_animation_name(0, "run")
        doc.set_current_animation_timing(12)
        anim = doc.get_animation(0)
        assert (anim.name, anim.frame_start, anim.frame_end, anim.timing) == ("run", 2, 5, 12.0)

    def test_out_of_range(self, doc):
        with pytest.raises(AnimationError):
            doc.get_animation(0)
        with pytest.raises(AnimationError):
            doc.set_current_animation(0)
        with pytest.raises(AnimationError):
            doc.set_current_animation_timing(10)
        assert doc.current_animation_obj is None

    def test_delete_clamps_current(self, doc):
        for _ in range(3):
            doc.add_animation()
        doc.set_current_animation(2)
        doc.delete_animation(2)
        assert doc.current_animation == 1
        with pytest.raises(AnimationError):
            doc.delete_animation(5)
        assert len(doc.animations) == 2


# ══════════════════════════════════════════════════════════════════════════
# Output and teardown
# ══════════════════════════════════════════════════════════════════════════

class TestFlattenAndClose:

    def test_flatten_layer_order(self, doc):
        paint(doc, (0, 0), color=RED)
        doc.add_new_layer()
        paint(doc, (0, 0), color=BLUE)
        img = doc.flatten()
        assert img.size == (4, 4)
        assert img.getpixel((0, 0)) == tuple(BLUE)
        assert img.getpixel((1, 1)) == (0, 0, 0, 0)

    def test_flatten_skips_hidden_and_preview(self, doc):
        paint(doc, (0, 0), color=RED)
        doc.add_new_layer()
        paint(doc, (0, 0), color=BLUE)
        doc.set_layer_hidden(1, True)
        doc.preview_layer.write((2, 2), RED)
        img = doc.flatten()
        assert img.getpixel((0, 0)) == tuple(RED)
        assert img.getpixel((2, 2)) == (0, 0, 0, 0)

    def test_close_releases_all_surfaces(self, two_layer_doc):
        d = two_layer_doc
        d.delete_layer(1)
        deleted = d.deleted_layers[0]
        d.close()
        assert all(layer.surface is None for layer in d.layers)
        assert deleted.surface is None
        d.close()

    def test_close_releases_layers_held_by_history(self, doc):
        layer = doc.add_new_layer()
        doc.undo()
        doc.close()
        assert layer.surface is None
