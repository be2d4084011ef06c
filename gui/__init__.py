"""
GUI Package

Background workers that let an external Qt front end load series and
render frames off the UI thread.
"""

from .workers import LoadSeriesWorker, RenderWorker, ExportWorker

__all__ = [
    'LoadSeriesWorker',
    'RenderWorker',
    'ExportWorker',
]
