"""
Background Workers

QThread workers for long-running operations (series loading, frame
rendering, export) so a UI thread never blocks on them.
"""

import logging
import traceback
from typing import Optional

from PySide6.QtCore import QThread, Signal

from config import RayMarchConfig, DEFAULT_RAY_MARCH
from exporters.dicom import DICOMExporter
from loaders.series_loader import DicomSeriesLoader, SeriesSource
from rendering.atlas import Atlas
from rendering.raycaster import RayIntegrator
from rendering.state import Camera, Capabilities, TransferFunction, DEFAULT_CAPABILITIES
from rendering.volume import Volume


class LoadSeriesWorker(QThread):
    """Background worker for loading a DICOM series."""

    progress = Signal(float)
    finished = Signal(object)  # Emits Volume
    error = Signal(str)

    def __init__(self, source: SeriesSource, loader: Optional[DicomSeriesLoader] = None):
        super().__init__()
        self.source = source
        self.loader = loader or DicomSeriesLoader()

    def run(self):
        try:
            self.progress.emit(0.0)
            volume = self.loader.load(self.source, progress_callback=self.progress.emit)
            self.progress.emit(1.0)
            self.finished.emit(volume)

        except Exception as e:
            logging.error(f"Loading error: {e}\n{traceback.format_exc()}")
            self.error.emit(str(e))


class RenderWorker(QThread):
    """
    Background worker rendering one frame.

    Takes the atlas handle and state snapshots at construction, so a
    volume swap while it runs does not affect the frame.
    """

    finished = Signal(object)  # Emits (H, W, 4) float32 frame
    error = Signal(str)

    def __init__(
        self,
        atlas: Atlas,
        camera: Camera,
        transfer: TransferFunction,
        width: int,
        height: int,
        capabilities: Capabilities = DEFAULT_CAPABILITIES,
        config: RayMarchConfig = DEFAULT_RAY_MARCH,
        use_gpu: bool = False
    ):
        super().__init__()
        self.atlas = atlas
        self.camera = camera
        self.transfer = transfer
        self.width = width
        self.height = height
        self.capabilities = capabilities
        self.config = config
        self.use_gpu = use_gpu

    def run(self):
        try:
            integrator = RayIntegrator(
                capabilities=self.capabilities,
                config=self.config,
                use_gpu=self.use_gpu,
            )
            frame = integrator.render_frame(
                self.atlas, self.camera, self.transfer, self.width, self.height
            )
            self.finished.emit(frame)

        except Exception as e:
            logging.error(f"Render error: {e}\n{traceback.format_exc()}")
            self.error.emit(str(e))


class ExportWorker(QThread):
    """Background worker for DICOM export."""

    progress = Signal(float)
    finished = Signal(object)  # Emits list of file paths
    error = Signal(str)

    def __init__(
        self,
        volume: Volume,
        output_dir: str,
        window_center: float = 128.0,
        window_width: float = 256.0
    ):
        super().__init__()
        self.volume = volume
        self.output_dir = output_dir
        self.window_center = window_center
        self.window_width = window_width

    def run(self):
        try:
            exporter = DICOMExporter()
            files = exporter.export(
                self.volume,
                self.output_dir,
                window_center=self.window_center,
                window_width=self.window_width,
                progress_callback=self.progress.emit
            )
            self.finished.emit(files)

        except Exception as e:
            logging.error(f"Export error: {e}\n{traceback.format_exc()}")
            self.error.emit(str(e))
