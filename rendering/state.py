"""
Render State Snapshots

Immutable per-frame inputs for the renderers: camera, transfer function
and the capability set selecting which parts of the ray integration run.
"""

from dataclasses import dataclass, replace
from typing import Tuple

import numpy as np

from config import DEFAULT_VIEWER


ZOOM_LIMITS: Tuple[float, float] = DEFAULT_VIEWER.zoom_limits
MIN_WINDOW_WIDTH = 1.0


@dataclass(frozen=True)
class TransferFunction:
    """
    Density to visibility mapping.

    Attributes:
        threshold: Densities with windowed value at or below threshold/255
            are invisible (0-255)
        opacity: Alpha scale (0-1)
        window_level: Center of the linear window on the 0-255 density scale
        window_width: Width of the linear window
    """
    threshold: float = DEFAULT_VIEWER.threshold
    opacity: float = DEFAULT_VIEWER.opacity
    window_level: float = DEFAULT_VIEWER.window_level
    window_width: float = DEFAULT_VIEWER.window_width

    def clamped(self) -> "TransferFunction":
        """Copy with every field forced into its valid range."""
        return replace(
            self,
            threshold=float(np.clip(self.threshold, 0.0, 255.0)),
            opacity=float(np.clip(self.opacity, 0.0, 1.0)),
            window_width=max(MIN_WINDOW_WIDTH, float(self.window_width)),
        )

    @property
    def window_min(self) -> float:
        return self.window_level - self.window_width / 2

    @property
    def window_max(self) -> float:
        return self.window_level + self.window_width / 2

    def apply_window(self, density, xp=np):
        """
        Linear window remap of raw densities to [0, 1].

        Args:
            density: Scalar or array of 0-255 densities
            xp: Array module (numpy or cupy)
        """
        return xp.clip((density - self.window_min) / self.window_width, 0.0, 1.0)


@dataclass(frozen=True)
class Camera:
    """
    View transform.

    Rotations are in radians and applied X first, then Y. Zoom scales the
    ray origins; larger values show a larger area.
    """
    rotation_x: float = 0.0
    rotation_y: float = 0.0
    zoom: float = 1.0

    def clamped(self) -> "Camera":
        lo, hi = ZOOM_LIMITS
        zoom = float(self.zoom) if np.isfinite(self.zoom) else 1.0
        return replace(self, zoom=float(np.clip(zoom, lo, hi)))

    def rotation_matrix(self) -> np.ndarray:
        """
        Ry(rotation_y) @ Rx(rotation_x).

        A positive rotation_x turns the view direction toward +y, a positive
        rotation_y toward +x.
        """
        cx, sx = np.cos(self.rotation_x), np.sin(self.rotation_x)
        cy, sy = np.cos(self.rotation_y), np.sin(self.rotation_y)
        rot_x = np.array([
            [1.0, 0.0, 0.0],
            [0.0, cx, sx],
            [0.0, -sx, cx],
        ])
        rot_y = np.array([
            [cy, 0.0, sy],
            [0.0, 1.0, 0.0],
            [-sy, 0.0, cy],
        ])
        return rot_y @ rot_x


@dataclass(frozen=True)
class Capabilities:
    """
    Feature switches for the ray integrator.

    Attributes:
        supports_native_volume_addressing: Sample a 3D array directly
            instead of going through atlas tiles
        uses_windowing: Apply the window level/width remap
        uses_lighting: Shade samples with gradient based diffuse lighting
    """
    supports_native_volume_addressing: bool = False
    uses_windowing: bool = True
    uses_lighting: bool = True


DEFAULT_CAPABILITIES = Capabilities()
