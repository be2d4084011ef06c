"""
Error Types

Exception hierarchy shared by the loading and rendering pipeline.
"""


class VolumeRenderError(Exception):
    """Base class for all pipeline errors."""


class FormatError(VolumeRenderError):
    """
    Malformed or truncated element stream.

    Raised by the decoder only when nothing usable could be recovered;
    mid-stream damage is handled locally by returning a partial slice.
    """


class NoValidSlicesError(VolumeRenderError):
    """No usable slice remained after filtering. Fatal to a volume load."""


class UnsupportedLayoutError(VolumeRenderError):
    """Slices of one series disagree on rows, columns or bit depth."""
