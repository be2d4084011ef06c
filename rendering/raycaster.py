"""
Volume Ray Caster

Direct volume rendering by ray marching through the unit cube
[-0.5, 0.5]^3 and compositing samples front to back.

One integrator covers every rendering variant; the Capabilities set
switches windowing, gradient lighting and native 3D addressing on and
off. Every pixel is computed independently from immutable inputs, so
backends are free to split the raster however they like.
"""

from functools import partial
from typing import Optional, Tuple
import logging
import time

import numpy as np

from config import RayMarchConfig, DEFAULT_RAY_MARCH
from core.base import BaseRenderer
from .atlas import Atlas
from .backends import get_backend
from .sampler import make_sampler
from .state import Camera, Capabilities, TransferFunction, DEFAULT_CAPABILITIES


# Central differences below this (density units) count as flat
MIN_GRADIENT = 1e-3


def build_rays(
    camera: Camera,
    width: int,
    height: int,
    row_start: int,
    row_end: int,
    config: RayMarchConfig = DEFAULT_RAY_MARCH,
    xp=np
) -> Tuple[object, object]:
    """
    Ray origins and directions for raster rows [row_start, row_end).

    Row 0 is the top of the frame. Screen coordinates run bottom-up, the
    view looks down +z from ``camera_distance`` in front of the volume,
    and both origin and direction are rotated by the camera.

    Returns:
        (origins, directions), each (n_rays, 3) float32
    """
    u = (xp.arange(width, dtype=xp.float32) + 0.5) / width
    v = 1.0 - (xp.arange(row_start, row_end, dtype=xp.float32) + 0.5) / height
    vv, uu = xp.meshgrid(v, u, indexing='ij')

    origins = xp.stack([
        uu - 0.5,
        vv - 0.5,
        xp.full(uu.shape, -config.camera_distance, dtype=xp.float32),
    ], axis=-1).reshape(-1, 3) * camera.zoom

    rotation = xp.asarray(camera.rotation_matrix(), dtype=xp.float32)
    origins = (origins @ rotation.T).astype(xp.float32)
    direction = rotation @ xp.asarray([0.0, 0.0, 1.0], dtype=xp.float32)
    directions = xp.broadcast_to(direction, origins.shape)
    return origins, directions


def intersect_box(origins, directions, xp=np):
    """
    Slab test against the unit cube centered at the origin.

    Returns:
        (t_near, t_far, hit) arrays; hit is False where t_near > t_far
        or the box lies behind the ray
    """
    safe = xp.where(xp.abs(directions) < 1e-12, 1e-12, directions)
    inv = 1.0 / safe
    t0 = (-0.5 - origins) * inv
    t1 = (0.5 - origins) * inv
    t_near = xp.max(xp.minimum(t0, t1), axis=1)
    t_far = xp.min(xp.maximum(t0, t1), axis=1)
    hit = (t_near <= t_far) & (t_far >= 0)
    return t_near, t_far, hit


def shade(sampler, coords, config: RayMarchConfig = DEFAULT_RAY_MARCH, xp=np):
    """
    Ambient plus Lambertian diffuse term from the density gradient.

    Points with no gradient (flat regions, up to rounding noise) get the
    ambient term only.
    """
    light = np.asarray(config.light_direction, dtype=np.float64)
    light = xp.asarray(light / np.linalg.norm(light), dtype=xp.float32)

    gradient = []
    for axis in range(3):
        delta = np.zeros(3, dtype=np.float32)
        delta[axis] = config.gradient_offset
        delta = xp.asarray(delta)
        gradient.append(sampler.sample_points(coords + delta) - sampler.sample_points(coords - delta))
    normal = xp.stack(gradient, axis=1)

    length = xp.linalg.norm(normal, axis=1, keepdims=True)
    flat = length <= MIN_GRADIENT
    normal = xp.where(flat, 0.0, normal / xp.where(flat, 1.0, length))
    diffuse = xp.maximum(normal @ light, 0.0)
    return config.ambient + config.diffuse * diffuse


def march_rays(
    sampler,
    origins,
    directions,
    transfer: TransferFunction,
    capabilities: Capabilities = DEFAULT_CAPABILITIES,
    config: RayMarchConfig = DEFAULT_RAY_MARCH,
    xp=np
):
    """
    Integrate color and opacity along each ray.

    Args:
        sampler: Object with sample_points(points) -> densities
        origins: (n, 3) ray origins in world space
        directions: (n, 3) ray directions
        transfer: Clamped transfer function
        capabilities: Which shading stages run

    Returns:
        (n, 4) premultiplied RGBA in [0, 1]
    """
    n_rays = origins.shape[0]
    accum = xp.zeros((n_rays, 4), dtype=xp.float32)

    t_near, t_far, hit = intersect_box(origins, directions, xp)
    t = xp.maximum(t_near, 0.0).astype(xp.float32)
    cutoff = transfer.threshold / 255.0

    for _ in range(config.max_steps):
        active = hit & (t < t_far) & (accum[:, 3] < config.alpha_cutoff)
        if not bool(active.any()):
            break
        idx = xp.nonzero(active)[0]

        coords = origins[idx] + directions[idx] * t[idx, None] + 0.5
        density = sampler.sample_points(coords)

        if capabilities.uses_windowing:
            value = transfer.apply_window(density, xp)
        else:
            value = xp.clip(density / 255.0, 0.0, 1.0)

        visible = value > cutoff
        if bool(visible.any()):
            vidx = idx[visible]
            value = value[visible]

            if capabilities.uses_lighting:
                lighting = shade(sampler, coords[visible], config, xp)
            else:
                lighting = xp.ones_like(value)

            alpha = value * transfer.opacity
            gray = value * lighting * alpha
            sample = xp.stack([gray, gray, gray, alpha], axis=1)
            accum[vidx] += (1.0 - accum[vidx, 3:4]) * sample

        t[idx] += config.step_size

    return xp.clip(accum, 0.0, 1.0)


class RayIntegrator(BaseRenderer):
    """
    Renders RGBA frames of an atlas for a camera and transfer function.

    Holds no per-frame state: every call takes fresh snapshots.
    """

    def __init__(
        self,
        capabilities: Capabilities = DEFAULT_CAPABILITIES,
        config: RayMarchConfig = DEFAULT_RAY_MARCH,
        interpolation: str = "linear",
        use_gpu: bool = False,
        max_workers: Optional[int] = None
    ):
        """
        Initialize ray integrator.

        Args:
            capabilities: Feature switches for the kernel
            config: Ray marching constants
            interpolation: In-slice interpolation of the atlas sampler
            use_gpu: Whether to use GPU acceleration (requires cupy)
            max_workers: Thread count for CPU rendering
        """
        self.capabilities = capabilities
        self.config = config
        self.interpolation = interpolation
        self._backend = get_backend(use_gpu=use_gpu, max_workers=max_workers)
        self._last_timing = None
        logging.info(f"RayIntegrator using backend: {self._backend.name}")

    @property
    def name(self) -> str:
        return f"Ray integrator ({self._backend.name})"

    @property
    def last_timing(self) -> Optional[dict]:
        return self._last_timing

    def render(self, atlas: Atlas, camera: Camera, transfer: TransferFunction,
               width: int, height: int) -> np.ndarray:
        return self.render_frame(atlas, camera, transfer, width, height)

    def render_frame(
        self,
        atlas: Atlas,
        camera: Camera,
        transfer: TransferFunction,
        width: int,
        height: int
    ) -> np.ndarray:
        """
        Render one frame.

        Args:
            atlas: Packed volume, not modified
            camera: View snapshot
            transfer: Transfer function snapshot
            width: Frame width in pixels
            height: Frame height in pixels

        Returns:
            float32 array (height, width, 4), premultiplied RGBA in [0, 1]
        """
        if width <= 0 or height <= 0:
            raise ValueError(f"Frame size must be positive, got {width}x{height}")

        start = time.perf_counter()
        camera = camera.clamped()
        transfer = transfer.clamped()
        xp = self._backend.xp
        sampler = make_sampler(atlas, self.capabilities, self.interpolation, xp=xp)

        kernel = partial(
            self._render_band,
            sampler=sampler,
            camera=camera,
            transfer=transfer,
            width=width,
            height=height,
            xp=xp,
        )
        frame = self._backend.render(kernel, height, width, 4, self.config.band_rows)

        self._last_timing = {
            'total': time.perf_counter() - start,
            'pixels': width * height,
            'backend': self._backend.name,
        }
        logging.debug(f"Rendered {width}x{height} frame in {self._last_timing['total']:.3f}s")
        return frame

    def _render_band(self, row_start, row_end, sampler, camera, transfer, width, height, xp):
        origins, directions = build_rays(camera, width, height, row_start, row_end, self.config, xp)
        colors = march_rays(sampler, origins, directions, transfer, self.capabilities, self.config, xp)
        return colors.reshape(row_end - row_start, width, 4)


def to_rgba8(frame: np.ndarray) -> np.ndarray:
    """Flat uint8 RGBA buffer from a float frame."""
    return np.clip(np.rint(np.asarray(frame) * 255.0), 0, 255).astype(np.uint8).reshape(-1)


def render_frame(
    atlas: Atlas,
    camera: Camera,
    transfer: TransferFunction,
    width: int,
    height: int,
    capabilities: Capabilities = DEFAULT_CAPABILITIES
) -> np.ndarray:
    """Render one frame on the CPU with default settings."""
    return RayIntegrator(capabilities=capabilities).render_frame(atlas, camera, transfer, width, height)
