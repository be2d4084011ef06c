from dataclasses import replace

import numpy as np
import pytest

from config import DEFAULT_RAY_MARCH
from rendering.atlas import pack
from rendering.raycaster import (
    RayIntegrator,
    build_rays,
    intersect_box,
    render_frame,
    to_rgba8,
)
from rendering.state import Camera, Capabilities, TransferFunction
from rendering.volume import Volume


SCENARIO_TRANSFER = TransferFunction(threshold=10, opacity=1.0, window_level=128, window_width=256)
FLAT = Capabilities(uses_windowing=False, uses_lighting=False)


def _smooth_atlas():
    z, y, x = np.meshgrid(np.arange(6), np.arange(5), np.arange(4), indexing="ij")
    data = (50 + 20 * x + 10 * y + 5 * z).astype(np.uint8)
    return pack(Volume(data))


def test_point_scenario_center_visible_corners_transparent(point_atlas):
    frame = render_frame(point_atlas, Camera(), SCENARIO_TRANSFER, 8, 8)

    assert frame.shape == (8, 8, 4)
    assert frame.dtype == np.float32
    center = frame[3, 4]
    assert center[3] > 0
    assert center[:3].sum() > 0
    for row, col in [(0, 0), (0, 7), (7, 0), (7, 7)]:
        assert not frame[row, col].any()


def test_empty_volume_renders_transparent():
    atlas = pack(Volume(np.zeros((3, 3, 3), dtype=np.uint8)))

    frame = render_frame(atlas, Camera(), TransferFunction(threshold=0), 6, 6)

    assert not frame.any()


def test_rays_missing_the_volume_are_transparent():
    atlas = pack(Volume(np.full((4, 4, 4), 255, dtype=np.uint8)))

    frame = render_frame(atlas, Camera(zoom=3.0), TransferFunction(threshold=0, opacity=1.0), 8, 8)

    assert not frame[0, 0].any()
    assert frame[4, 4, 3] > 0


def test_intersect_box():
    origins = np.array([[0.0, 0.0, -2.0], [0.0, 0.0, -2.0], [1.0, 0.0, -2.0]], dtype=np.float32)
    directions = np.array([[0.0, 0.0, 1.0], [0.0, 0.0, -1.0], [0.0, 0.0, 1.0]], dtype=np.float32)

    t_near, t_far, hit = intersect_box(origins, directions)

    assert hit.tolist() == [True, False, False]
    assert t_near[0] == pytest.approx(1.5)
    assert t_far[0] == pytest.approx(2.5)


def test_build_rays_orientation():
    origins, directions = build_rays(Camera(), 4, 2, 0, 2)

    assert origins.shape == (8, 3)
    np.testing.assert_allclose(directions, np.tile([0.0, 0.0, 1.0], (8, 1)))
    np.testing.assert_allclose(origins[:, 2], -2.0)
    # Row 0 is the top of the frame
    assert origins[0, 1] > origins[4, 1]
    assert origins[0, 0] < origins[3, 0]


def test_build_rays_applies_rotation():
    _, directions = build_rays(Camera(rotation_y=np.pi / 2), 2, 2, 0, 2)

    np.testing.assert_allclose(directions[0], [1.0, 0.0, 0.0], atol=1e-6)


def test_alpha_never_decreases_with_more_steps():
    atlas = _smooth_atlas()
    transfer = TransferFunction(threshold=0, opacity=0.1)
    previous = None

    for steps in (5, 20, 60, 200):
        config = replace(DEFAULT_RAY_MARCH, max_steps=steps)
        alpha = RayIntegrator(config=config).render_frame(atlas, Camera(), transfer, 6, 6)[..., 3]
        assert (alpha <= 1.0).all()
        if previous is not None:
            assert (alpha >= previous - 1e-6).all()
        previous = alpha


def test_color_is_premultiplied():
    frame = render_frame(_smooth_atlas(), Camera(0.3, 0.4), TransferFunction(threshold=0, opacity=0.5), 10, 10)

    assert (frame[..., :3] <= frame[..., 3:] + 1e-6).all()


def test_early_termination_caps_alpha_near_cutoff():
    atlas = pack(Volume(np.full((4, 4, 4), 255, dtype=np.uint8)))
    transfer = TransferFunction(threshold=0, opacity=1.0, window_level=128, window_width=256)

    frame = render_frame(atlas, Camera(), transfer, 4, 4, capabilities=FLAT)

    assert frame[2, 2, 3] >= DEFAULT_RAY_MARCH.alpha_cutoff
    assert frame[2, 2, 3] <= 1.0


def test_band_split_does_not_change_frame():
    atlas = _smooth_atlas()
    camera = Camera(rotation_x=0.4, rotation_y=-0.7, zoom=1.2)
    transfer = TransferFunction(threshold=20, opacity=0.6)

    single = RayIntegrator(config=replace(DEFAULT_RAY_MARCH, band_rows=64), max_workers=1)
    banded = RayIntegrator(config=replace(DEFAULT_RAY_MARCH, band_rows=1), max_workers=4)

    np.testing.assert_allclose(
        banded.render_frame(atlas, camera, transfer, 12, 9),
        single.render_frame(atlas, camera, transfer, 12, 9),
        atol=1e-6,
    )


def test_native_addressing_matches_atlas_addressing():
    atlas = _smooth_atlas()
    transfer = TransferFunction(threshold=0, opacity=0.3)
    native = Capabilities(supports_native_volume_addressing=True, uses_windowing=False, uses_lighting=False)

    via_atlas = render_frame(atlas, Camera(0.2, 0.5), transfer, 8, 8, capabilities=FLAT)
    via_native = render_frame(atlas, Camera(0.2, 0.5), transfer, 8, 8, capabilities=native)

    np.testing.assert_allclose(via_native, via_atlas, atol=1e-3)


def test_lighting_of_uniform_volume_is_ambient_only():
    atlas = pack(Volume(np.full((4, 4, 4), 200, dtype=np.uint8)))
    transfer = TransferFunction(threshold=0, opacity=0.2)
    lit = Capabilities(uses_windowing=False, uses_lighting=True)

    flat_pixel = render_frame(atlas, Camera(), transfer, 4, 4, capabilities=FLAT)[2, 2]
    lit_pixel = render_frame(atlas, Camera(), transfer, 4, 4, capabilities=lit)[2, 2]

    value = 200 / 255
    assert flat_pixel[0] / flat_pixel[3] == pytest.approx(value, rel=1e-4)
    assert lit_pixel[0] / lit_pixel[3] == pytest.approx(DEFAULT_RAY_MARCH.ambient * value, rel=1e-4)


def test_windowing_changes_visibility():
    atlas = pack(Volume(np.full((4, 4, 4), 100, dtype=np.uint8)))
    transfer = TransferFunction(threshold=110, opacity=0.5, window_level=100, window_width=2)
    windowed = Capabilities(uses_windowing=True, uses_lighting=False)

    # Windowed value 0.5 is above 110/255, raw value 100/255 is not
    assert render_frame(atlas, Camera(), transfer, 4, 4, capabilities=windowed)[2, 2, 3] > 0
    assert render_frame(atlas, Camera(), transfer, 4, 4, capabilities=FLAT)[2, 2, 3] == 0


def test_out_of_range_inputs_are_clamped(point_atlas):
    wild = TransferFunction(threshold=-50, opacity=7.0, window_level=128, window_width=0)
    tame = TransferFunction(threshold=0, opacity=1.0, window_level=128, window_width=1)

    np.testing.assert_array_equal(
        render_frame(point_atlas, Camera(zoom=50.0), wild, 5, 5),
        render_frame(point_atlas, Camera(zoom=3.0), tame, 5, 5),
    )


def test_render_does_not_modify_atlas(point_atlas):
    before = point_atlas.data.copy()

    render_frame(point_atlas, Camera(0.5, 0.5), SCENARIO_TRANSFER, 6, 6)

    np.testing.assert_array_equal(point_atlas.data, before)


def test_non_positive_frame_size_raises(point_atlas):
    with pytest.raises(ValueError):
        render_frame(point_atlas, Camera(), SCENARIO_TRANSFER, 0, 4)


def test_integrator_records_timing(point_atlas):
    integrator = RayIntegrator()

    integrator.render(point_atlas, Camera(), SCENARIO_TRANSFER, 3, 2)

    assert integrator.last_timing["pixels"] == 6
    assert "CPU" in integrator.name


def test_to_rgba8():
    frame = np.zeros((2, 3, 4), dtype=np.float32)
    frame[0, 0] = [1.0, 0.5, 0.0, 1.0]

    buffer = to_rgba8(frame)

    assert buffer.dtype == np.uint8
    assert buffer.shape == (24,)
    assert buffer[:4].tolist() == [255, 128, 0, 255]
