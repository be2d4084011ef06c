import numpy as np
import pytest

from core.errors import NoValidSlicesError
from exporters.dicom import DICOMExporter
from loaders.series_loader import DicomSeriesLoader
from rendering.volume import Volume
from dicom_builders import slice_stream


def _write_series(directory, volume, **kwargs):
    return DICOMExporter(**kwargs).export(volume, directory)


def test_load_directory_written_by_exporter(tmp_path, random_volume):
    _write_series(tmp_path, random_volume)

    loader = DicomSeriesLoader()
    volume = loader.load(tmp_path)

    assert volume.dimensions == random_volume.dimensions
    np.testing.assert_array_equal(volume.data, random_volume.data)
    assert loader.last_timing["slices"] == random_volume.num_slices


def test_load_16_bit_series_normalizes(tmp_path):
    data = np.zeros((2, 2, 2), dtype=np.uint8)
    data[1] = 255
    data[0, 0, 1] = 51

    _write_series(tmp_path, Volume(data), bits_allocated=16)

    volume = DicomSeriesLoader().load(tmp_path)

    np.testing.assert_array_equal(volume.data, data)
    assert volume.source_bits == 16


def test_corrupt_file_does_not_affect_other_slices(tmp_path, random_volume):
    files = _write_series(tmp_path, random_volume)
    (tmp_path / "zz_garbage.dcm").write_bytes(b"\x00" * 128 + b"DICM" + b"\xff" * 3)
    truncated = files[-1].read_bytes()[:200]
    files[-1].write_bytes(truncated)

    volume = DicomSeriesLoader().load(tmp_path)

    assert volume.num_slices == random_volume.num_slices - 1
    np.testing.assert_array_equal(volume.data, random_volume.data[:-1])


def test_load_from_named_buffers_in_any_order():
    buffers = {
        "c": slice_stream(1, 2, [5, 6], instance=3),
        "a": slice_stream(1, 2, [1, 2], instance=1),
        "b": slice_stream(1, 2, [3, 4], instance=2),
    }

    volume = DicomSeriesLoader().load(buffers)

    np.testing.assert_array_equal(volume.flat, [1, 2, 3, 4, 5, 6])


def test_non_finite_instance_number_keeps_slice():
    buffers = {
        "a.dcm": slice_stream(2, 2, [1, 2, 3, 4], instance=1),
        "b.dcm": slice_stream(2, 2, [5, 6, 7, 8], instance="NaN"),
    }

    volume = DicomSeriesLoader().load(buffers)

    assert volume.num_slices == 2
    np.testing.assert_array_equal(volume.flat, [5, 6, 7, 8, 1, 2, 3, 4])


def test_decode_all_keeps_input_order():
    buffers = {str(i): slice_stream(1, 1, [i], instance=10 - i) for i in range(8)}

    slices = DicomSeriesLoader().decode_all(buffers)

    assert [s.source for s in slices] == [str(i) for i in range(8)]


def test_progress_reaches_one(tmp_path, random_volume):
    _write_series(tmp_path, random_volume)
    progress = []

    DicomSeriesLoader().load(tmp_path, progress_callback=progress.append)

    assert len(progress) == random_volume.num_slices
    assert progress[-1] == pytest.approx(1.0)


def test_files_without_extension_are_found(tmp_path):
    (tmp_path / "IM0001").write_bytes(slice_stream(1, 1, [9], instance=1))
    (tmp_path / ".hidden").write_bytes(b"ignored")

    loader = DicomSeriesLoader()

    assert [p.name for p in loader.find_files(tmp_path)] == ["IM0001"]
    assert loader.can_load(str(tmp_path))
    assert loader.load([tmp_path / "IM0001"]).flat.tolist() == [9]


def test_missing_source_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        DicomSeriesLoader().load(tmp_path / "missing")


def test_only_corrupt_files_raises(tmp_path):
    (tmp_path / "a.dcm").write_bytes(b"not a dicom file at all")

    with pytest.raises(NoValidSlicesError):
        DicomSeriesLoader().load(tmp_path)
