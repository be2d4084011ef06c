import numpy as np
import pytest

from rendering.atlas import pack
from visualization import SliceViewer, VolumeViewer


def test_volume_viewer_defaults():
    viewer = VolumeViewer()
    transfer = viewer.transfer_function()

    assert (transfer.threshold, transfer.opacity) == (100.0, 0.8)
    assert (transfer.window_level, transfer.window_width) == (128.0, 256.0)
    assert viewer.camera().zoom == 1.0


def test_volume_viewer_clamps_inputs():
    viewer = VolumeViewer()

    viewer.set_zoom(10.0)
    assert viewer.zoom == 3.0
    viewer.set_zoom(0.0)
    assert viewer.zoom == 0.1
    viewer.set_rotation(5.0, 4.0)
    assert viewer.rotation_x == 1.57
    assert viewer.rotation_y == 4.0
    viewer.set_threshold(-3)
    viewer.set_opacity(2)
    viewer.set_window_width(0)
    assert (viewer.threshold, viewer.opacity, viewer.window_width) == (0.0, 1.0, 1.0)


def test_drag_and_wheel():
    viewer = VolumeViewer()

    viewer.drag(dx=10, dy=-20)
    viewer.wheel(500)

    assert viewer.rotation_y == pytest.approx(0.1)
    assert viewer.rotation_x == pytest.approx(-0.2)
    assert viewer.zoom == pytest.approx(1.5)
    assert viewer.current_view is None


def test_view_and_window_presets():
    viewer = VolumeViewer()

    preset = viewer.set_view("Right")
    assert viewer.current_view == "Right"
    assert viewer.rotation_y == pytest.approx(preset["rotation_y"])

    viewer.apply_window_preset("Narrow")
    assert (viewer.window_level, viewer.window_width) == (128.0, 64.0)
    with pytest.raises(KeyError):
        viewer.apply_window_preset("Unknown")


def test_snapshots_do_not_follow_later_edits():
    viewer = VolumeViewer()
    camera = viewer.camera()
    transfer = viewer.transfer_function()

    viewer.set_zoom(2.0)
    viewer.set_threshold(5)

    assert camera.zoom == 1.0
    assert transfer.threshold == 100.0


def test_reset_restores_defaults():
    viewer = VolumeViewer()
    viewer.drag(30, 30)
    viewer.set_opacity(0.1)

    viewer.reset()

    assert (viewer.rotation_x, viewer.rotation_y, viewer.opacity) == (0.0, 0.0, 0.8)


def test_slice_viewer_navigation(random_volume):
    viewer = SliceViewer()
    assert viewer.render() is None

    viewer.set_atlas(pack(random_volume))
    assert viewer.num_slices == 5
    assert viewer.current_slice == 2

    viewer.set_slice(4)
    assert viewer.current_slice == 4
    viewer.wheel(1)
    assert viewer.position == pytest.approx(0.85)
    viewer.drag(-1000)
    assert viewer.position == 0.0
    viewer.set_slice(99)
    assert viewer.current_slice == 4


def test_slice_viewer_renders_current_slice(random_volume):
    viewer = SliceViewer()
    viewer.set_atlas(pack(random_volume))
    viewer.set_threshold(0)
    viewer.set_window(128, 256)

    frame = viewer.render()

    assert frame.shape == (6, 4, 4)
    assert (frame[..., 3] == 1.0).all()
    assert frame[..., 0].max() > 0
