"""
Base Render Backend

Abstract interface for executing the ray kernel over a raster.
"""

from abc import ABC, abstractmethod
from typing import Callable, List, Tuple

import numpy as np


# kernel(row_start, row_end) -> array (row_end - row_start, width, channels)
BandKernel = Callable[[int, int], object]


class RenderBackend(ABC):
    """Abstract base class for render backends."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name for logging."""
        pass

    @property
    @abstractmethod
    def xp(self):
        """Array module the kernel should compute with."""
        pass

    @abstractmethod
    def render(
        self,
        kernel: BandKernel,
        height: int,
        width: int,
        channels: int = 4,
        band_rows: int = 16
    ) -> np.ndarray:
        """
        Run a band kernel over every raster row.

        Args:
            kernel: Callable computing the pixels of rows [start, end)
            height: Raster height in pixels
            width: Raster width in pixels
            channels: Channels per pixel
            band_rows: Rows per work item

        Returns:
            Host (numpy) frame (height, width, channels), float32
        """
        pass

    @staticmethod
    def split_bands(height: int, band_rows: int) -> List[Tuple[int, int]]:
        """Partition [0, height) into consecutive row ranges."""
        band_rows = max(1, int(band_rows))
        return [(start, min(start + band_rows, height)) for start in range(0, height, band_rows)]
