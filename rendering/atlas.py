"""
Volume Atlas

Repacks a 3D volume into a 2D grid of slice tiles so the volume can be
addressed with 2D image lookups only, and records the geometry needed
to map atlas pixels back to voxels.
"""

from dataclasses import dataclass
from typing import Optional, Tuple
import math

import numpy as np

from .volume import Volume


@dataclass(frozen=True, eq=False)
class Atlas:
    """
    Tiled 2D layout of a volume.

    Slice z lives in tile (row = z // tiles_per_row, col = z % tiles_per_row).
    Tiles past the last slice are zero padding.

    Attributes:
        data: uint8 array (atlas_height, atlas_width)
        tiles_per_row: ceil(sqrt(depth))
        tile_rows: ceil(depth / tiles_per_row)
        volume_size: (width, height, depth) of the packed volume
    """
    data: np.ndarray
    tiles_per_row: int
    tile_rows: int
    volume_size: Tuple[int, int, int]

    def __post_init__(self):
        data = np.array(self.data, copy=True, order="C")
        data.setflags(write=False)
        object.__setattr__(self, "data", data)

    @property
    def atlas_width(self) -> int:
        return self.data.shape[1]

    @property
    def atlas_height(self) -> int:
        return self.data.shape[0]

    @property
    def depth(self) -> int:
        return self.volume_size[2]

    def tile_origin(self, z: int) -> Tuple[int, int]:
        """Atlas pixel (x, y) of the top-left corner of slice z."""
        width, height, _ = self.volume_size
        return (z % self.tiles_per_row) * width, (z // self.tiles_per_row) * height

    def atlas_coords(self, x: int, y: int, z: int) -> Tuple[int, int]:
        """Atlas pixel (x, y) holding voxel (x, y, z)."""
        ox, oy = self.tile_origin(z)
        return ox + x, oy + y

    def voxel_at(self, ax: int, ay: int) -> Optional[Tuple[int, int, int]]:
        """
        Inverse mapping of an atlas pixel.

        Returns:
            Voxel (x, y, z), or None for pixels in padding tiles
        """
        width, height, depth = self.volume_size
        col, x = divmod(ax, width)
        row, y = divmod(ay, height)
        z = row * self.tiles_per_row + col
        if z >= depth:
            return None
        return x, y, z

    def tile(self, z: int) -> np.ndarray:
        """View of slice z as (height, width)."""
        width, height, _ = self.volume_size
        ox, oy = self.tile_origin(z)
        return self.data[oy:oy + height, ox:ox + width]


def atlas_layout(depth: int) -> Tuple[int, int]:
    """(tiles_per_row, tile_rows) for a given slice count."""
    tiles_per_row = max(1, math.ceil(math.sqrt(depth)))
    tile_rows = max(1, math.ceil(depth / tiles_per_row))
    return tiles_per_row, tile_rows


def pack(volume: Volume) -> Atlas:
    """
    Repack a volume into a freshly allocated atlas.

    Args:
        volume: Assembled volume

    Returns:
        Atlas with one tile per slice
    """
    width, height, depth = volume.dimensions
    tiles_per_row, tile_rows = atlas_layout(depth)

    data = np.zeros((tile_rows * height, tiles_per_row * width), dtype=np.uint8)
    for z in range(depth):
        row, col = divmod(z, tiles_per_row)
        data[row * height:(row + 1) * height, col * width:(col + 1) * width] = volume.data[z]

    return Atlas(
        data=data,
        tiles_per_row=tiles_per_row,
        tile_rows=tile_rows,
        volume_size=(width, height, depth),
    )


def unpack(atlas: Atlas) -> np.ndarray:
    """Rebuild the (depth, height, width) array from an atlas."""
    return np.stack([atlas.tile(z) for z in range(atlas.depth)], axis=0)
