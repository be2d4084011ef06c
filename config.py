"""
Volume Renderer Configuration

Contains constants and default settings for decoding, loading and rendering.
"""

from dataclasses import dataclass, field
from typing import Tuple


@dataclass
class DecoderConfig:
    """Configuration for the element stream decoder."""
    preamble_length: int = 128  # Bytes before the magic word
    magic: bytes = b"DICM"
    # VRs with a 2-byte reserved field and a 4-byte length
    long_form_vrs: Tuple[str, ...] = ("OB", "OW", "OF", "SQ", "UT", "UN")
    # VRs whose odd length never gets a padding byte
    unpadded_vrs: Tuple[str, ...] = ("SQ", "UT")


@dataclass
class LoaderConfig:
    """Configuration for series loading."""
    file_patterns: Tuple[str, ...] = ("*.dcm", "*.DCM", "*.dicom")
    max_workers: int = 0  # 0 = ThreadPoolExecutor default


@dataclass
class RayMarchConfig:
    """Configuration for the ray integrator."""
    step_size: float = 0.01  # World units per step
    max_steps: int = 200
    alpha_cutoff: float = 0.95  # Early ray termination
    gradient_offset: float = 0.01  # Central difference offset (volume coords)
    light_direction: Tuple[float, float, float] = (1.0, 1.0, -1.0)
    ambient: float = 0.3
    diffuse: float = 0.7
    sample_clamp: Tuple[float, float] = (0.001, 0.999)
    camera_distance: float = 2.0  # Ray origin offset in front of the volume
    band_rows: int = 16  # Raster rows per CPU work item


@dataclass
class ViewerConfig:
    """Configuration for interactive viewer state."""
    threshold: float = 100.0
    opacity: float = 0.8
    window_level: float = 128.0
    window_width: float = 256.0
    zoom_limits: Tuple[float, float] = (0.1, 3.0)
    rotation_x_limit: float = 1.57  # Avoid flipping over the poles
    drag_sensitivity: float = 0.01  # Radians per pixel
    wheel_sensitivity: float = 0.001  # Zoom per wheel unit
    slice_drag_sensitivity: float = 0.005  # Slice position per pixel
    slice_wheel_step: float = 0.05  # Slice position per wheel notch

    # Window presets on the normalized 0-255 density scale
    window_presets: dict = field(default_factory=lambda: {
        "Full Range": {"level": 128, "width": 256},
        "Dense": {"level": 192, "width": 128},
        "Soft": {"level": 96, "width": 160},
        "Narrow": {"level": 128, "width": 64},
    })


# Default configurations
DEFAULT_DECODER = DecoderConfig()
DEFAULT_LOADER = LoaderConfig()
DEFAULT_RAY_MARCH = RayMarchConfig()
DEFAULT_VIEWER = ViewerConfig()
