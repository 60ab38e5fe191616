"""Thin-lens perspective camera.

The camera is placed with lookfrom/lookat/vup and a vertical field of view.
setup_camera() turns that description into a right-handed basis

    w = unit(lookfrom - lookat)   backward
    u = unit(vup x w)             right
    v = w x u                     up

and a viewport lying on the focus plane, focus_dist along -w. Primary rays
aim at a jittered point inside the pixel on that plane. With a nonzero
defocus angle they leave from a random point on a lens disk of radius
focus_dist * tan(defocus_angle / 2), so only the focus plane is sharp.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.lumen.camera.thin_lens import ThinLensCamera, setup_camera
    >>> setup_camera(
    ...     ThinLensCamera(
    ...         lookfrom=(13.0, 2.0, 3.0),
    ...         lookat=(0.0, 0.0, 0.0),
    ...         vup=(0.0, 1.0, 0.0),
    ...         vfov=20.0,
    ...         aspect_ratio=16.0 / 9.0,
    ...         defocus_angle=0.6,
    ...         focus_dist=10.0,
    ...     )
    ... )
"""

import logging
import math
from dataclasses import dataclass

import numpy as np
import taichi as ti
import taichi.math as tm

from src.lumen.core.ray import Ray, make_ray, random_in_unit_disk, vec3

logger = logging.getLogger(__name__)


@dataclass
class ThinLensCamera:
    """View description consumed by setup_camera().

    Attributes:
        lookfrom: Lens center in world space.
        lookat: Point the camera faces.
        vup: World "up" hint; must not be parallel to the view direction.
        vfov: Vertical field of view in degrees.
        aspect_ratio: Image width / height.
        defocus_angle: Full cone angle in degrees of rays through one pixel;
            0 gives a pinhole camera.
        focus_dist: Distance from lookfrom to the sharp plane.
    """

    lookfrom: tuple[float, float, float]
    lookat: tuple[float, float, float]
    vup: tuple[float, float, float]
    vfov: float
    aspect_ratio: float
    defocus_angle: float = 0.0
    focus_dist: float = 1.0


# =============================================================================
# Kernel-visible camera state
# =============================================================================

_camera_origin = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_u = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_v = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_w = ti.Vector.field(3, dtype=ti.f32, shape=())

# viewport spans and corner, all on the focus plane
_viewport_horizontal = ti.Vector.field(3, dtype=ti.f32, shape=())
_viewport_vertical = ti.Vector.field(3, dtype=ti.f32, shape=())
_lower_left_corner = ti.Vector.field(3, dtype=ti.f32, shape=())

_defocus_radius = ti.field(dtype=ti.f32, shape=())


def _unit(vector: np.ndarray, message: str) -> np.ndarray:
    norm = np.linalg.norm(vector)
    if norm == 0.0:
        raise ValueError(message)
    return vector / norm


def setup_camera(camera: ThinLensCamera) -> None:
    """Load a camera into the kernel-visible fields.

    Must be called before rendering and again whenever the view changes.

    Raises:
        ValueError: If focus_dist or aspect_ratio is not positive, lookfrom
            equals lookat, or vup is parallel to the view direction.
    """
    if camera.focus_dist <= 0.0:
        raise ValueError(f"focus_dist must be positive, got {camera.focus_dist}")
    if camera.aspect_ratio <= 0.0:
        raise ValueError(f"aspect_ratio must be positive, got {camera.aspect_ratio}")

    lookfrom = np.asarray(camera.lookfrom, dtype=np.float64)
    w = _unit(lookfrom - np.asarray(camera.lookat, dtype=np.float64), "lookfrom and lookat must differ")
    u = _unit(
        np.cross(np.asarray(camera.vup, dtype=np.float64), w),
        "vup must not be parallel to the view direction",
    )
    v = np.cross(w, u)

    viewport_height = 2.0 * math.tan(math.radians(camera.vfov) / 2.0) * camera.focus_dist
    horizontal = camera.aspect_ratio * viewport_height * u
    vertical = viewport_height * v
    lower_left = lookfrom - camera.focus_dist * w - 0.5 * (horizontal + vertical)

    defocus_radius = max(camera.focus_dist * math.tan(math.radians(camera.defocus_angle) / 2.0), 0.0)

    _camera_origin[None] = lookfrom.tolist()
    _camera_u[None] = u.tolist()
    _camera_v[None] = v.tolist()
    _camera_w[None] = w.tolist()
    _viewport_horizontal[None] = horizontal.tolist()
    _viewport_vertical[None] = vertical.tolist()
    _lower_left_corner[None] = lower_left.tolist()
    _defocus_radius[None] = defocus_radius

    logger.debug(
        "Camera %s -> %s, vfov=%s, lens radius=%.4f",
        camera.lookfrom,
        camera.lookat,
        camera.vfov,
        defocus_radius,
    )


# =============================================================================
# Ray generation
# =============================================================================


@ti.func
def viewport_point(s: ti.f32, t: ti.f32) -> vec3:
    """Focus-plane point at (s, t), with (0, 0) bottom-left and (1, 1) top-right."""
    return _lower_left_corner[None] + s * _viewport_horizontal[None] + t * _viewport_vertical[None]


@ti.func
def get_ray(s: ti.f32, t: ti.f32) -> Ray:
    """Unit-direction ray from the lens center through viewport_point(s, t)."""
    origin = _camera_origin[None]
    return make_ray(origin, tm.normalize(viewport_point(s, t) - origin))


@ti.func
def get_ray_with_samples(
    pixel_i: ti.i32,
    pixel_j: ti.i32,
    width: ti.i32,
    height: ti.i32,
    offset: tm.vec2,
    lens_sample: tm.vec2,
) -> Ray:
    """Primary ray for pixel (i, j) from caller-supplied random numbers.

    Args:
        pixel_i: Column, 0 at the left.
        pixel_j: Row, 0 at the bottom.
        width: Image width in pixels.
        height: Image height in pixels.
        offset: Jitter from the pixel center, in [-0.5, 0.5)^2.
        lens_sample: Point in the unit disk, scaled by the lens radius.
            Has no effect on a pinhole camera.
    """
    s = (ti.cast(pixel_i, ti.f32) + 0.5 + offset.x) / ti.cast(width, ti.f32)
    t = (ti.cast(pixel_j, ti.f32) + 0.5 + offset.y) / ti.cast(height, ti.f32)
    target = viewport_point(s, t)

    origin = _camera_origin[None]
    radius = _defocus_radius[None]
    if radius > 0.0:
        origin += radius * (lens_sample.x * _camera_u[None] + lens_sample.y * _camera_v[None])

    return make_ray(origin, tm.normalize(target - origin))


@ti.func
def get_ray_jittered(pixel_i: ti.i32, pixel_j: ti.i32, width: ti.i32, height: ti.i32) -> Ray:
    """get_ray_with_samples() with a uniform jitter and a uniform lens point."""
    offset = tm.vec2(ti.random(ti.f32) - 0.5, ti.random(ti.f32) - 0.5)
    lens_sample = tm.vec2(0.0)
    if _defocus_radius[None] > 0.0:
        disk = random_in_unit_disk()
        lens_sample = tm.vec2(disk.x, disk.y)
    return get_ray_with_samples(pixel_i, pixel_j, width, height, offset, lens_sample)


@ti.func
def get_camera_origin() -> vec3:
    return _camera_origin[None]


@ti.func
def get_camera_basis():
    """(u, v, w): right, up and backward unit vectors."""
    return _camera_u[None], _camera_v[None], _camera_w[None]


def get_camera_info() -> dict[str, tuple[float, float, float] | float]:
    """Snapshot of the loaded camera fields, for debugging and tests."""

    def read(field: ti.MatrixField) -> tuple[float, float, float]:
        vec = field[None]
        return (float(vec[0]), float(vec[1]), float(vec[2]))

    return {
        "origin": read(_camera_origin),
        "u": read(_camera_u),
        "v": read(_camera_v),
        "w": read(_camera_w),
        "horizontal": read(_viewport_horizontal),
        "vertical": read(_viewport_vertical),
        "lower_left": read(_lower_left_corner),
        "defocus_radius": float(_defocus_radius[None]),
    }
