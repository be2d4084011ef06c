"""
Render Backends

Provides CPU and GPU backends for running the per-pixel ray kernel.
"""

from typing import Optional

from .base import RenderBackend
from .cpu_backend import CPUBackend
from .gpu_backend import GPUBackend, HAS_CUPY


def get_backend(use_gpu: bool = False, max_workers: Optional[int] = None) -> RenderBackend:
    """
    Get the appropriate render backend.

    Args:
        use_gpu: Whether to use GPU acceleration
        max_workers: Thread count for the CPU backend (None = default)

    Returns:
        RenderBackend instance (GPU if available and requested, else CPU)
    """
    if use_gpu and HAS_CUPY:
        return GPUBackend()
    return CPUBackend(max_workers=max_workers)


__all__ = [
    'RenderBackend',
    'CPUBackend',
    'GPUBackend',
    'HAS_CUPY',
    'get_backend',
]
