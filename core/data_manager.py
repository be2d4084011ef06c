"""
Data Manager

Centralized data state management for the application.
"""

import logging
import threading
from typing import Optional

from PySide6.QtCore import QObject, Signal

from core.errors import VolumeRenderError
from loaders.series_loader import DicomSeriesLoader, SeriesSource
from rendering.atlas import Atlas, pack
from rendering.volume import Volume


class DataManager(QObject):
    """
    Manages application data state.

    Provides a centralized location for:
    - The current volume
    - The atlas packed from it
    - State change notifications via signals

    The atlas is published by swapping a single immutable handle under a
    lock. A frame that took a snapshot keeps rendering the atlas it got,
    even if a new series is loaded meanwhile.
    """

    # Signals
    volume_changed = Signal(object)  # Emits Volume or None
    atlas_changed = Signal(object)  # Emits Atlas or None
    load_failed = Signal(str)  # Emits error message

    def __init__(self, parent=None, loader: Optional[DicomSeriesLoader] = None):
        super().__init__(parent)

        self._lock = threading.Lock()
        self._loader = loader or DicomSeriesLoader()
        self._volume: Optional[Volume] = None
        self._atlas: Optional[Atlas] = None

    @property
    def volume(self) -> Optional[Volume]:
        """Current volume."""
        with self._lock:
            return self._volume

    @property
    def atlas(self) -> Optional[Atlas]:
        """Current atlas."""
        with self._lock:
            return self._atlas

    @property
    def has_volume(self) -> bool:
        """Whether a volume is loaded."""
        return self.volume is not None

    def snapshot(self) -> Optional[Atlas]:
        """Atlas handle to render one frame from."""
        return self.atlas

    def load_series(self, source: SeriesSource) -> bool:
        """
        Load a DICOM series and publish it.

        Args:
            source: Directory, list of files, or mapping of name to bytes

        Returns:
            True if loaded successfully
        """
        try:
            volume = self._loader.load(source)
        except (VolumeRenderError, OSError) as e:
            logging.error(f"Failed to load series: {e}")
            self.load_failed.emit(str(e))
            return False

        self.set_volume(volume)
        return True

    def set_volume(self, volume: Optional[Volume]) -> None:
        """
        Replace the current volume and its atlas.

        The atlas is packed before the swap so readers never see a
        volume without its matching atlas.

        Args:
            volume: Volume instance or None to clear
        """
        atlas = pack(volume) if volume is not None else None

        with self._lock:
            self._volume = volume
            self._atlas = atlas

        self.volume_changed.emit(volume)
        self.atlas_changed.emit(atlas)
        if volume is not None:
            logging.info(
                f"Volume set: {volume.dimensions}, atlas {atlas.atlas_width}x{atlas.atlas_height} "
                f"({atlas.tiles_per_row}x{atlas.tile_rows} tiles)"
            )

    def clear(self) -> None:
        """Clear all data."""
        self.set_volume(None)
        logging.info("Data cleared")
