"""
Core Package

Contains abstract interfaces and the error hierarchy shared by the
loaders and renderers. The Qt-backed DataManager lives in
core.data_manager and is imported from there.
"""

from .base import (
    BaseLoader,
    BaseRenderer,
)
from .errors import (
    VolumeRenderError,
    FormatError,
    NoValidSlicesError,
    UnsupportedLayoutError,
)

__all__ = [
    'BaseLoader',
    'BaseRenderer',
    'VolumeRenderError',
    'FormatError',
    'NoValidSlicesError',
    'UnsupportedLayoutError',
]
