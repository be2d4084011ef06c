"""
Slice Viewer

Framework-agnostic state for the single slice view.
"""

from typing import Optional

import numpy as np

from config import ViewerConfig, DEFAULT_VIEWER
from rendering.atlas import Atlas
from rendering.slice_renderer import SliceRenderer
from rendering.state import TransferFunction


class SliceViewer:
    """
    Framework-agnostic slice viewer for a packed volume.

    The slice is selected by a normalized position along z, so the same
    position can be kept when a series with a different depth is loaded.
    """

    def __init__(self, config: ViewerConfig = DEFAULT_VIEWER, renderer: Optional[SliceRenderer] = None):
        self.config = config
        self._renderer = renderer or SliceRenderer()
        self._atlas: Optional[Atlas] = None
        self._position: float = 0.5
        self._threshold: float = config.threshold
        self._window_level: float = config.window_level
        self._window_width: float = config.window_width

    def set_atlas(self, atlas: Optional[Atlas]) -> None:
        """Set the packed volume to view; None clears the view."""
        self._atlas = atlas

    def set_position(self, position: float) -> None:
        """Set the normalized slice position, clamped to [0, 1]."""
        self._position = float(np.clip(position, 0.0, 1.0))

    def set_slice(self, index: int) -> None:
        """Select a slice by index."""
        if self._atlas is None:
            return
        depth = self._atlas.depth
        index = max(0, min(index, depth - 1))
        self._position = (index + 0.5) / depth

    def set_threshold(self, value: float) -> None:
        self._threshold = float(np.clip(value, 0.0, 255.0))

    def set_window(self, level: float, width: float) -> None:
        """Set window level and width for display."""
        self._window_level = float(level)
        self._window_width = max(1.0, float(width))

    def apply_window_preset(self, name: str) -> None:
        preset = self.config.window_presets[name]
        self.set_window(preset["level"], preset["width"])

    def drag(self, dx: float) -> None:
        """Scrub through slices by a horizontal drag of dx pixels."""
        self.set_position(self._position + dx * self.config.slice_drag_sensitivity)

    def wheel(self, delta: float) -> None:
        """Step one notch; scrolling down moves toward the first slice."""
        step = self.config.slice_wheel_step
        self.set_position(self._position + (-step if delta > 0 else step))

    def transfer_function(self) -> TransferFunction:
        return TransferFunction(
            threshold=self._threshold,
            window_level=self._window_level,
            window_width=self._window_width,
        )

    def render(self, width: Optional[int] = None, height: Optional[int] = None) -> Optional[np.ndarray]:
        """
        Render the current slice.

        Returns:
            (height, width, 4) float32 opaque frame, or None if nothing is loaded
        """
        if self._atlas is None:
            return None
        return self._renderer.render(
            self._atlas, self._position, self.transfer_function(), width, height
        )

    @property
    def num_slices(self) -> int:
        """Get total number of slices."""
        return self._atlas.depth if self._atlas is not None else 0

    @property
    def current_slice(self) -> int:
        """Index of the slice at the current position."""
        if self._atlas is None:
            return 0
        return SliceRenderer.slice_index(self._atlas, self._position)

    @property
    def position(self) -> float:
        return self._position

    @property
    def window_level(self) -> float:
        return self._window_level

    @property
    def window_width(self) -> float:
        return self._window_width
