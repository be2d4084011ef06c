import numpy as np

from gui.workers import ExportWorker, LoadSeriesWorker, RenderWorker
from rendering.state import Camera, TransferFunction


def test_load_series_worker_emits_volume(qt_core_app, tmp_path, random_volume):
    from exporters.dicom import DICOMExporter

    DICOMExporter().export(random_volume, tmp_path)
    worker = LoadSeriesWorker(tmp_path)
    results, errors, progress = [], [], []
    worker.finished.connect(results.append)
    worker.error.connect(errors.append)
    worker.progress.connect(progress.append)

    worker.run()

    assert not errors
    np.testing.assert_array_equal(results[0].data, random_volume.data)
    assert progress[0] == 0.0
    assert progress[-1] == 1.0


def test_load_series_worker_reports_errors(qt_core_app, tmp_path):
    worker = LoadSeriesWorker(tmp_path / "missing")
    results, errors = [], []
    worker.finished.connect(results.append)
    worker.error.connect(errors.append)

    worker.run()

    assert not results
    assert "missing" in errors[0]


def test_render_worker_emits_frame(qt_core_app, point_atlas):
    transfer = TransferFunction(threshold=10, opacity=1.0)
    worker = RenderWorker(point_atlas, Camera(), transfer, 8, 8)
    frames = []
    worker.finished.connect(frames.append)

    worker.run()

    assert frames[0].shape == (8, 8, 4)
    assert frames[0][3, 4, 3] > 0


def test_render_worker_reports_invalid_size(qt_core_app, point_atlas):
    worker = RenderWorker(point_atlas, Camera(), TransferFunction(), 0, 8)
    errors = []
    worker.error.connect(errors.append)

    worker.run()

    assert len(errors) == 1


def test_export_worker_writes_series(qt_core_app, tmp_path, random_volume):
    worker = ExportWorker(random_volume, str(tmp_path))
    results = []
    worker.finished.connect(results.append)

    worker.run()

    assert len(results[0]) == random_volume.num_slices
    assert all(path.exists() for path in results[0])
