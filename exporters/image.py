"""
Frame Image Exporter

Converts rendered frames to QImage and writes them as image files.
"""

from pathlib import Path

import numpy as np
from PySide6.QtGui import QImage

from rendering.raycaster import to_rgba8


def frame_to_qimage(frame: np.ndarray) -> QImage:
    """
    Wrap a frame in a QImage.

    Args:
        frame: (H, W, 4) premultiplied RGBA or (H, W) intensity, floats in [0, 1]

    Returns:
        QImage owning a copy of the pixels
    """
    frame = np.asarray(frame)
    height, width = frame.shape[:2]

    if frame.ndim == 2:
        pixels = np.ascontiguousarray(np.clip(np.rint(frame * 255.0), 0, 255).astype(np.uint8))
        image = QImage(pixels.data, width, height, width, QImage.Format.Format_Grayscale8)
    else:
        pixels = np.ascontiguousarray(to_rgba8(frame).reshape(height, width, 4))
        image = QImage(pixels.data, width, height, width * 4, QImage.Format.Format_RGBA8888_Premultiplied)

    # QImage does not own the numpy buffer
    return image.copy()


def save_frame(frame: np.ndarray, path: str | Path) -> Path:
    """
    Save a frame to an image file; the format follows the suffix.

    Raises:
        OSError: If Qt could not write the file
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if not frame_to_qimage(frame).save(str(path)):
        raise OSError(f"Could not write image {path}")
    return path
