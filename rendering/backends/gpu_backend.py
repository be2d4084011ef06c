"""
GPU Backend for Rendering

Runs the ray kernel on CuPy arrays, whole frame at once.
"""

import logging

import numpy as np

try:
    import cupy as cp
    HAS_CUPY = True
except ImportError:
    HAS_CUPY = False
    cp = None

from .base import RenderBackend, BandKernel


class GPUBackend(RenderBackend):
    """
    GPU-accelerated rendering using CuPy.

    All rays of a frame are marched together, so the raster is a single
    band regardless of ``band_rows``.
    """

    def __init__(self):
        if not HAS_CUPY:
            raise ImportError(
                "CuPy is required for GPU rendering. "
                "Install with: pip install cupy-cuda12x (or appropriate version)"
            )
        logging.info("GPU Backend initialized (CuPy)")

    @property
    def name(self) -> str:
        return "GPU (CuPy)"

    @property
    def xp(self):
        return cp

    def render(
        self,
        kernel: BandKernel,
        height: int,
        width: int,
        channels: int = 4,
        band_rows: int = 16
    ) -> np.ndarray:
        result = kernel(0, height)
        cp.cuda.Stream.null.synchronize()
        return cp.asnumpy(result).reshape(height, width, channels).astype(np.float32)
