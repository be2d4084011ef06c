"""
CPU Backend for Rendering

Runs the ray kernel with numpy, one row band per thread pool task.
"""

from typing import Optional
import concurrent.futures

import numpy as np

from .base import RenderBackend, BandKernel


class CPUBackend(RenderBackend):
    """
    CPU rendering using a ThreadPoolExecutor.

    Every band reads the same immutable inputs and writes only its own
    rows of the output frame.
    """

    def __init__(self, max_workers: Optional[int] = None):
        self.max_workers = max_workers or None

    @property
    def name(self) -> str:
        return "CPU (numpy)"

    @property
    def xp(self):
        return np

    def render(
        self,
        kernel: BandKernel,
        height: int,
        width: int,
        channels: int = 4,
        band_rows: int = 16
    ) -> np.ndarray:
        frame = np.zeros((height, width, channels), dtype=np.float32)
        bands = self.split_bands(height, band_rows)

        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_band = {
                executor.submit(kernel, start, end): (start, end)
                for start, end in bands
            }

            for future in concurrent.futures.as_completed(future_to_band):
                start, end = future_to_band[future]
                frame[start:end] = np.asarray(future.result()).reshape(end - start, width, channels)

        return frame
