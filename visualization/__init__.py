"""
Visualization Package

Framework-agnostic viewer state for the volume and slice views.
"""

from .slice_viewer import SliceViewer
from .volume_viewer import VolumeViewer

__all__ = [
    'SliceViewer',
    'VolumeViewer',
]
