"""
Volume Data Structure

Defines the assembled 3D density field and the assembler that builds it
from decoded slices.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple, TYPE_CHECKING
import logging

import numpy as np

from core.errors import NoValidSlicesError, UnsupportedLayoutError

if TYPE_CHECKING:
    from loaders.dicom_parser import Slice


@dataclass(frozen=True, eq=False)
class Volume:
    """
    Assembled 3D density field with metadata.

    Attributes:
        data: uint8 array (depth, height, width), x varies fastest
        source_bits: Bit depth of the slices it was built from
        window_center: Window center of the first slice, if present
        window_width: Window width of the first slice, if present
    """
    data: np.ndarray  # Shape: (slices, height, width), dtype: uint8
    source_bits: int = 8
    window_center: Optional[float] = None
    window_width: Optional[float] = None

    def __post_init__(self):
        if np.ndim(self.data) != 3:
            raise ValueError(f"Volume data must be 3D, got shape {np.shape(self.data)}")
        # Own a read-only copy; the caller's array stays writable
        data = np.array(self.data, copy=True, order="C")
        data.setflags(write=False)
        object.__setattr__(self, "data", data)

    @property
    def dimensions(self) -> Tuple[int, int, int]:
        """(width, height, depth)"""
        depth, height, width = self.data.shape
        return width, height, depth

    @property
    def shape(self) -> Tuple[int, int, int]:
        return self.data.shape

    @property
    def num_slices(self) -> int:
        return self.data.shape[0]

    @property
    def flat(self) -> np.ndarray:
        """Flat buffer in x, then y, then z order."""
        return self.data.reshape(-1)

    def get_slice(self, index: int, axis: int = 0) -> np.ndarray:
        """Get a 2D slice along specified axis (0=axial, 1=coronal, 2=sagittal)."""
        if axis == 0:
            return self.data[index, :, :]
        elif axis == 1:
            return self.data[:, index, :]
        else:
            return self.data[:, :, index]


def normalize_to_uint8(data: np.ndarray) -> np.ndarray:
    """
    Remap the full array onto 0-255 using its global min/max.

    Values are rounded to nearest with exact halves going down
    (1000 of 0..2000 -> 127.5 -> 127).
    """
    values = data.astype(np.float64)
    vmin = float(values.min())
    vmax = float(values.max())
    scaled = (values - vmin) / max(1.0, vmax - vmin) * 255.0
    return np.clip(np.ceil(scaled - 0.5), 0, 255).astype(np.uint8)


class VolumeAssembler:
    """
    Orders decoded slices into one consistent volume.

    Slices are sorted by instance number (stable, so ties keep input
    order). All slices must share the first valid slice's rows, columns
    and bit depth.
    """

    def assemble(self, slices: Iterable["Slice"]) -> Volume:
        """
        Build a volume from slices.

        Args:
            slices: Decoded slices, in any order

        Returns:
            Volume with uint8 densities

        Raises:
            NoValidSlicesError: If no slice has pixel data, rows and columns
            UnsupportedLayoutError: If slices disagree on layout or bit depth
        """
        valid = self.filter_valid(slices)
        if not valid:
            raise NoValidSlicesError("No valid slices found")

        ordered = sorted(valid, key=lambda s: s.instance_number)
        first = ordered[0]
        rows, cols, bits = first.rows, first.columns, first.bits_allocated

        for s in ordered[1:]:
            if (s.rows, s.columns) != (rows, cols):
                raise UnsupportedLayoutError(
                    f"Slice {s.source or s.instance_number} is {s.columns}x{s.rows}, "
                    f"series is {cols}x{rows}"
                )
            if s.bits_allocated != bits:
                raise UnsupportedLayoutError(
                    f"Slice {s.source or s.instance_number} has {s.bits_allocated} bits allocated, "
                    f"series has {bits}"
                )

        stacked = np.stack([s.image() for s in ordered], axis=0)

        if bits == 16:
            data = normalize_to_uint8(stacked)
        else:
            data = stacked.astype(np.uint8, copy=False)

        logging.info(f"Assembled volume {cols}x{rows}x{len(ordered)} from {bits}-bit slices")

        return Volume(
            data=data,
            source_bits=bits,
            window_center=first.window_center,
            window_width=first.window_width,
        )

    @staticmethod
    def filter_valid(slices: Iterable["Slice"]) -> List["Slice"]:
        """Drop slices missing pixel data, rows or columns."""
        valid = []
        for s in slices:
            if s.is_valid:
                valid.append(s)
            else:
                logging.warning(
                    f"Skipping slice {s.source or s.instance_number}: "
                    f"rows={s.rows} columns={s.columns} "
                    f"pixels={None if s.pixel_data is None else s.pixel_data.size}"
                )
        return valid


def assemble(slices: Iterable["Slice"]) -> Volume:
    """Assemble slices with a default assembler."""
    return VolumeAssembler().assemble(slices)
