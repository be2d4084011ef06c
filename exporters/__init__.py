"""
Exporters Package

Contains exporters for DICOM series and rendered frames. The frame
exporter needs QtGui and is imported from exporters.image directly.
"""

from .dicom import DICOMExporter

__all__ = ['DICOMExporter']
