"""
Slice Renderer

Renders a single windowed slice of an atlas as an opaque grayscale frame,
or as raw single-channel intensities for diagnostics.
"""

from typing import Optional

import numpy as np

from core.base import BaseRenderer
from .atlas import Atlas
from .sampler import AtlasSampler
from .state import TransferFunction


OUTPUT_MODES = ("rgba", "density")


class SliceRenderer(BaseRenderer):
    """
    Axial slice view.

    The slice is picked by a normalized position along z; in-plane
    lookups go through the atlas sampler so the frame can have any size.
    """

    def __init__(self, interpolation: str = "linear"):
        self.interpolation = interpolation

    @property
    def name(self) -> str:
        return "Slice renderer"

    @staticmethod
    def slice_index(atlas: Atlas, position: float) -> int:
        """Slice shown at a normalized position (clamped to the volume)."""
        position = float(np.clip(position, 0.0, 1.0))
        return int(min(atlas.depth - 1, np.floor(position * atlas.depth)))

    def render(
        self,
        atlas: Atlas,
        position: float,
        transfer: TransferFunction,
        width: Optional[int] = None,
        height: Optional[int] = None,
        output: str = "rgba"
    ) -> np.ndarray:
        """
        Render one slice.

        Args:
            atlas: Packed volume
            position: Slice position in [0, 1]
            transfer: Window and threshold to apply (opacity is ignored)
            width: Frame width (default: volume width)
            height: Frame height (default: volume height)
            output: 'rgba' for an opaque frame, 'density' for intensities

        Returns:
            (height, width, 4) or (height, width) float32 in [0, 1]
        """
        if output not in OUTPUT_MODES:
            raise ValueError(f"Unknown output mode '{output}', expected one of {OUTPUT_MODES}")

        vol_w, vol_h, _ = atlas.volume_size
        width = width or vol_w
        height = height or vol_h
        transfer = transfer.clamped()

        u = (np.arange(width, dtype=np.float32) + 0.5) / width
        # Same row convention as the ray integrator: row 0 is the top, v runs bottom-up
        v = 1.0 - (np.arange(height, dtype=np.float32) + 0.5) / height
        vv, uu = np.meshgrid(v, u, indexing='ij')

        sampler = AtlasSampler(atlas, interpolation=self.interpolation)
        density = sampler.sample_tile(uu, vv, self.slice_index(atlas, position))

        intensity = transfer.apply_window(density).astype(np.float32)
        intensity[intensity < transfer.threshold / 255.0] = 0.0

        if output == "density":
            return intensity

        frame = np.empty((height, width, 4), dtype=np.float32)
        frame[..., 0] = intensity
        frame[..., 1] = intensity
        frame[..., 2] = intensity
        frame[..., 3] = 1.0
        return frame

    def center_slice_preview(self, atlas: Atlas, transfer: TransferFunction) -> np.ndarray:
        """Opaque frame of the middle slice at volume resolution."""
        return self.render(atlas, 0.5, transfer)
