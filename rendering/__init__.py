"""
Rendering package for slice-stack volumes.

Contains the volume assembler, atlas packing, density sampling and the
ray integrator with its CPU/GPU backends.
"""

from .volume import Volume, VolumeAssembler, assemble, normalize_to_uint8
from .atlas import Atlas, atlas_layout, pack, unpack
from .sampler import AtlasSampler, NativeSampler, make_sampler, sample
from .state import Camera, Capabilities, TransferFunction, DEFAULT_CAPABILITIES
from .raycaster import RayIntegrator, render_frame, to_rgba8
from .slice_renderer import SliceRenderer

__all__ = [
    "Volume",
    "VolumeAssembler",
    "assemble",
    "normalize_to_uint8",
    "Atlas",
    "atlas_layout",
    "pack",
    "unpack",
    "AtlasSampler",
    "NativeSampler",
    "make_sampler",
    "sample",
    "Camera",
    "Capabilities",
    "TransferFunction",
    "DEFAULT_CAPABILITIES",
    "RayIntegrator",
    "render_frame",
    "to_rgba8",
    "SliceRenderer",
]
