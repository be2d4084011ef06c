"""
Volume Sampler

Interpolated density lookups at normalized volume coordinates.

AtlasSampler reads slice tiles from an Atlas: bilinear within a tile and
linear across neighboring slices. NativeSampler reads the 3D array
directly with scipy's map_coordinates; both use the same coordinate
convention so they return the same densities.
"""

from typing import Sequence, Tuple

import numpy as np
from scipy import ndimage

from config import DEFAULT_RAY_MARCH
from .atlas import Atlas, unpack
from .state import Capabilities


INTERPOLATION_MODES = ("linear", "nearest")


class AtlasSampler:
    """
    Samples densities from atlas tiles.

    Works with numpy or cupy arrays; pass the array module as ``xp``.
    """

    def __init__(
        self,
        atlas: Atlas,
        interpolation: str = "linear",
        clamp: Tuple[float, float] = DEFAULT_RAY_MARCH.sample_clamp,
        xp=np
    ):
        """
        Initialize sampler.

        Args:
            atlas: Packed volume
            interpolation: 'linear' (texture style bilinear) or 'nearest'
            clamp: Per-axis coordinate clamp keeping lookups off tile edges
            xp: Array module (numpy or cupy)
        """
        if interpolation not in INTERPOLATION_MODES:
            raise ValueError(f"Unknown interpolation '{interpolation}', expected one of {INTERPOLATION_MODES}")
        self.atlas = atlas
        self.interpolation = interpolation
        self.clamp = clamp
        self.xp = xp
        self._data = xp.asarray(atlas.data, dtype=xp.float32)
        self._width, self._height, self._depth = atlas.volume_size

    def sample_points(self, points):
        """
        Sample densities at many points.

        Args:
            points: Array (..., 3) of x, y, z in [0, 1]

        Returns:
            Array (...) of densities in [0, 255]
        """
        xp = self.xp
        lo, hi = self.clamp
        p = xp.clip(xp.asarray(points, dtype=xp.float32), lo, hi)
        x, y, z = p[..., 0], p[..., 1], p[..., 2]

        slice_f = z * self._depth
        slice_idx = xp.floor(slice_f)
        frac = slice_f - slice_idx
        slice_idx = xp.clip(slice_idx.astype(xp.int32), 0, self._depth - 1)

        value1 = self._tile_lookup(x, y, slice_idx)
        next_idx = xp.minimum(slice_idx + 1, self._depth - 1)
        value2 = self._tile_lookup(x, y, next_idx)

        blend = (frac > 0) & (slice_idx < self._depth - 1)
        return xp.where(blend, value1 * (1 - frac) + value2 * frac, value1)

    def sample_tile(self, x, y, slice_index: int):
        """In-plane lookup at normalized (x, y) within one slice, no z blending."""
        xp = self.xp
        x = xp.clip(xp.asarray(x, dtype=xp.float32), 0.0, 1.0)
        y = xp.clip(xp.asarray(y, dtype=xp.float32), 0.0, 1.0)
        z = xp.full(x.shape, int(slice_index), dtype=xp.int32)
        return self._tile_lookup(x, y, z)

    def _tile_lookup(self, x, y, z):
        """2D lookup at (x, y) inside tile z, without bleeding into neighbors."""
        xp = self.xp
        w, h = self._width, self._height
        base_x = (z % self.atlas.tiles_per_row) * w
        base_y = (z // self.atlas.tiles_per_row) * h

        if self.interpolation == "nearest":
            xi = xp.clip(xp.floor(x * w).astype(xp.int32), 0, w - 1)
            yi = xp.clip(xp.floor(y * h).astype(xp.int32), 0, h - 1)
            return self._data[base_y + yi, base_x + xi]

        # Texel centers sit at (i + 0.5) / size
        u = xp.clip(x * w - 0.5, 0, w - 1)
        v = xp.clip(y * h - 0.5, 0, h - 1)
        x0 = xp.floor(u).astype(xp.int32)
        y0 = xp.floor(v).astype(xp.int32)
        x1 = xp.minimum(x0 + 1, w - 1)
        y1 = xp.minimum(y0 + 1, h - 1)
        wx = u - x0
        wy = v - y0

        d = self._data
        v00 = d[base_y + y0, base_x + x0]
        v01 = d[base_y + y0, base_x + x1]
        v10 = d[base_y + y1, base_x + x0]
        v11 = d[base_y + y1, base_x + x1]

        return (
            v00 * (1 - wx) * (1 - wy) +
            v01 * wx * (1 - wy) +
            v10 * (1 - wx) * wy +
            v11 * wx * wy
        )


class NativeSampler:
    """
    Samples densities from the unpacked 3D array.

    Uses linear map_coordinates with edge replication, which matches the
    atlas sampler's clamping and slice blending.
    """

    def __init__(
        self,
        atlas: Atlas,
        clamp: Tuple[float, float] = DEFAULT_RAY_MARCH.sample_clamp,
        xp=np
    ):
        self.atlas = atlas
        self.clamp = clamp
        self.xp = xp
        self._volume = xp.asarray(unpack(atlas), dtype=xp.float32)
        self._width, self._height, self._depth = atlas.volume_size

        if xp is np:
            self._map_coordinates = ndimage.map_coordinates
        else:
            import cupyx.scipy.ndimage
            self._map_coordinates = cupyx.scipy.ndimage.map_coordinates

    def sample_points(self, points):
        xp = self.xp
        lo, hi = self.clamp
        p = xp.clip(xp.asarray(points, dtype=xp.float32), lo, hi)
        shape = p.shape[:-1]
        p = p.reshape(-1, 3)

        coords = xp.stack([
            p[:, 2] * self._depth,
            p[:, 1] * self._height - 0.5,
            p[:, 0] * self._width - 0.5,
        ])
        values = self._map_coordinates(self._volume, coords, order=1, mode="nearest")
        return values.reshape(shape)


def make_sampler(atlas: Atlas, capabilities: Capabilities, interpolation: str = "linear", xp=np):
    """Pick the sampler matching the capability set."""
    if capabilities.supports_native_volume_addressing:
        return NativeSampler(atlas, xp=xp)
    return AtlasSampler(atlas, interpolation=interpolation, xp=xp)


def sample(atlas: Atlas, position: Sequence[float], interpolation: str = "linear") -> float:
    """
    Density at one normalized position.

    Args:
        atlas: Packed volume
        position: (x, y, z) in [0, 1]
        interpolation: 'linear' or 'nearest'

    Returns:
        Density in [0, 255]
    """
    sampler = AtlasSampler(atlas, interpolation=interpolation)
    return float(sampler.sample_points(np.asarray(position, dtype=np.float32)))
