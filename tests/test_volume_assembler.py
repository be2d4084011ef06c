import numpy as np
import pytest

from core.errors import NoValidSlicesError, UnsupportedLayoutError
from loaders.dicom_parser import Slice
from rendering.volume import Volume, VolumeAssembler, assemble, normalize_to_uint8


def _slice(values, instance=0, rows=1, bits=8, source=""):
    dtype = np.uint16 if bits == 16 else np.uint8
    pixels = np.asarray(values, dtype=dtype)
    return Slice(
        rows=rows,
        columns=pixels.size // rows,
        bits_allocated=bits,
        instance_number=instance,
        pixel_data=pixels,
        source=source,
    )


def test_assemble_sorts_by_instance_number():
    slices = [_slice([30, 31], instance=3), _slice([10, 11], instance=1), _slice([20, 21], instance=2)]

    volume = assemble(slices)

    assert volume.dimensions == (2, 1, 3)
    np.testing.assert_array_equal(volume.data[:, 0, 0], [10, 20, 30])


def test_assemble_is_independent_of_input_order():
    slices = [_slice([i, i + 1, i + 2, i + 3], instance=i, rows=2) for i in range(6)]
    shuffled = [slices[i] for i in (4, 0, 5, 2, 1, 3)]

    np.testing.assert_array_equal(assemble(slices).data, assemble(shuffled).data)


def test_equal_instance_numbers_keep_input_order():
    volume = assemble([_slice([1], source="a"), _slice([2], source="b"), _slice([3], source="c")])

    np.testing.assert_array_equal(volume.flat, [1, 2, 3])


def test_16_bit_slices_use_global_min_max():
    slices = [_slice([0, 1000], instance=1, bits=16), _slice([500, 2000], instance=2, bits=16)]

    volume = assemble(slices)

    assert volume.data.dtype == np.uint8
    assert volume.source_bits == 16
    np.testing.assert_array_equal(volume.data[0, 0], [0, 127])
    np.testing.assert_array_equal(volume.data[1, 0], [64, 255])


def test_constant_16_bit_volume_maps_to_zero():
    result = normalize_to_uint8(np.full((2, 2, 2), 700, dtype=np.uint16))

    assert result.dtype == np.uint8
    assert not result.any()


def test_8_bit_values_pass_through():
    volume = assemble([_slice([0, 7, 255])])

    np.testing.assert_array_equal(volume.flat, [0, 7, 255])


def test_slices_without_pixels_are_filtered():
    broken = Slice(rows=1, columns=2, instance_number=0)
    short = Slice(rows=2, columns=2, pixel_data=np.zeros(3, dtype=np.uint8))

    volume = assemble([broken, _slice([5, 6], instance=1), short])

    assert volume.num_slices == 1


def test_no_valid_slices_raises():
    with pytest.raises(NoValidSlicesError):
        assemble([])
    with pytest.raises(NoValidSlicesError):
        assemble([Slice(rows=0, columns=4, pixel_data=np.zeros(4, dtype=np.uint8))])


def test_mismatched_layout_raises():
    slices = [_slice([1, 2, 3, 4], rows=2), _slice([1, 2, 3, 4], rows=1, instance=1)]

    with pytest.raises(UnsupportedLayoutError):
        assemble(slices)


def test_mismatched_bit_depth_raises():
    slices = [_slice([1, 2]), _slice([1, 2], instance=1, bits=16)]

    with pytest.raises(UnsupportedLayoutError):
        VolumeAssembler().assemble(slices)


def test_volume_carries_first_slice_window():
    first = _slice([1], instance=1)
    first.window_center = 40.0
    first.window_width = 400.0

    volume = assemble([_slice([2], instance=2), first])

    assert (volume.window_center, volume.window_width) == (40.0, 400.0)


def test_volume_is_read_only():
    volume = Volume(np.zeros((2, 2, 2), dtype=np.uint8))

    with pytest.raises(ValueError):
        volume.data[0, 0, 0] = 1


def test_volume_copies_caller_array():
    data = np.zeros((2, 2, 2), dtype=np.uint8)
    volume = Volume(data)

    data[0, 0, 0] = 5

    assert data.flags.writeable
    assert volume.data[0, 0, 0] == 0


def test_volume_requires_3d_data():
    with pytest.raises(ValueError):
        Volume(np.zeros((2, 2), dtype=np.uint8))


def test_flat_order_is_x_then_y_then_z():
    data = np.arange(2 * 3 * 4, dtype=np.uint8).reshape(2, 3, 4)
    volume = Volume(data)
    width, height, _ = volume.dimensions

    x, y, z = 3, 1, 1
    assert volume.flat[z * width * height + y * width + x] == data[z, y, x]
