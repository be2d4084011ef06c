"""
Volume Viewer

Framework-agnostic interactive state for the 3D volume view.
"""

from typing import Dict, Optional

import numpy as np

from config import ViewerConfig, DEFAULT_VIEWER
from rendering.state import Camera, TransferFunction


class VolumeViewer:
    """
    Framework-agnostic 3D volume viewer.

    Holds the camera and transfer function parameters a front end edits
    and clamps them on every change. Renderers never see this object:
    they get immutable snapshots from camera() and transfer_function().
    """

    # View presets mapping names to camera rotations (radians)
    VIEW_PRESETS = {
        "Front": {"rotation_x": 0.0, "rotation_y": 0.0},
        "Back": {"rotation_x": 0.0, "rotation_y": np.pi},
        "Left": {"rotation_x": 0.0, "rotation_y": -np.pi / 2},
        "Right": {"rotation_x": 0.0, "rotation_y": np.pi / 2},
        "Top": {"rotation_x": 1.57, "rotation_y": 0.0},
        "Bottom": {"rotation_x": -1.57, "rotation_y": 0.0},
        "Oblique": {"rotation_x": 0.5, "rotation_y": np.pi / 4},
    }

    def __init__(self, config: ViewerConfig = DEFAULT_VIEWER):
        self.config = config
        self._threshold: float = config.threshold
        self._opacity: float = config.opacity
        self._window_level: float = config.window_level
        self._window_width: float = config.window_width
        self._rotation_x: float = 0.0
        self._rotation_y: float = 0.0
        self._zoom: float = 1.0
        self._current_view: Optional[str] = "Front"

    def set_threshold(self, value: float) -> None:
        """Set the visibility threshold (0-255)."""
        self._threshold = float(np.clip(value, 0.0, 255.0))

    def set_opacity(self, value: float) -> None:
        """Set the alpha scale (0-1)."""
        self._opacity = float(np.clip(value, 0.0, 1.0))

    def set_window_level(self, value: float) -> None:
        self._window_level = float(value)

    def set_window_width(self, value: float) -> None:
        self._window_width = max(1.0, float(value))

    def set_window(self, level: float, width: float) -> None:
        """Set window level and width together."""
        self.set_window_level(level)
        self.set_window_width(width)

    def apply_window_preset(self, name: str) -> Dict[str, float]:
        """
        Apply a named window preset.

        Args:
            name: Key of ViewerConfig.window_presets

        Returns:
            The preset's level and width

        Raises:
            KeyError: If the preset does not exist
        """
        preset = self.config.window_presets[name]
        self.set_window(preset["level"], preset["width"])
        return preset

    def set_rotation(self, rotation_x: float, rotation_y: float) -> None:
        """Set both rotations in radians; X is clamped to avoid flipping over."""
        limit = self.config.rotation_x_limit
        self._rotation_x = float(np.clip(rotation_x, -limit, limit))
        self._rotation_y = float(rotation_y)
        self._current_view = None

    def set_zoom(self, value: float) -> None:
        lo, hi = self.config.zoom_limits
        if not np.isfinite(value):
            return
        self._zoom = float(np.clip(value, lo, hi))

    def set_view(self, view_name: str) -> Dict[str, float]:
        """
        Set the camera rotation to a preset.

        Args:
            view_name: Name of the view preset

        Returns:
            Dictionary with rotation_x and rotation_y values
        """
        preset = self.VIEW_PRESETS.get(view_name, self.VIEW_PRESETS["Front"])
        self.set_rotation(preset["rotation_x"], preset["rotation_y"])
        self._current_view = view_name if view_name in self.VIEW_PRESETS else "Front"
        return preset

    def drag(self, dx: float, dy: float) -> None:
        """Rotate by a pointer drag of (dx, dy) pixels."""
        step = self.config.drag_sensitivity
        self.set_rotation(self._rotation_x + dy * step, self._rotation_y + dx * step)

    def wheel(self, delta: float) -> None:
        """Zoom by a wheel delta; positive deltas zoom out."""
        self.set_zoom(self._zoom + delta * self.config.wheel_sensitivity)

    def reset(self) -> None:
        """Restore default parameters and the front view."""
        self.__init__(self.config)

    def camera(self) -> Camera:
        """Immutable camera snapshot."""
        return Camera(rotation_x=self._rotation_x, rotation_y=self._rotation_y, zoom=self._zoom)

    def transfer_function(self) -> TransferFunction:
        """Immutable transfer function snapshot."""
        return TransferFunction(
            threshold=self._threshold,
            opacity=self._opacity,
            window_level=self._window_level,
            window_width=self._window_width,
        )

    @property
    def threshold(self) -> float:
        return self._threshold

    @property
    def opacity(self) -> float:
        return self._opacity

    @property
    def window_level(self) -> float:
        return self._window_level

    @property
    def window_width(self) -> float:
        return self._window_width

    @property
    def rotation_x(self) -> float:
        return self._rotation_x

    @property
    def rotation_y(self) -> float:
        return self._rotation_y

    @property
    def zoom(self) -> float:
        return self._zoom

    @property
    def current_view(self) -> Optional[str]:
        """Name of the active view preset, None after free rotation."""
        return self._current_view
