"""
Loaders Package

Contains the DICOM element stream parser and the series loader.
"""

from .dicom_parser import (
    DicomParser,
    Element,
    Slice,
    decode,
)
from .series_loader import DicomSeriesLoader

__all__ = [
    'DicomParser',
    'Element',
    'Slice',
    'decode',
    'DicomSeriesLoader',
]
