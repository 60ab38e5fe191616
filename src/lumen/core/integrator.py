"""Monte Carlo radiance estimation and the shared render target.

A camera ray is followed from surface to surface. At each hit the sphere's
material either absorbs the ray or hands back a new direction and a color
attenuation. The path ends when the ray leaves the scene, which adds the
sky color scaled by every attenuation picked up on the way, or when it is
absorbed or uses up its bounces, which adds nothing.

In recursive form:

    L(ray, 0)     = 0
    L(ray, depth) = sky(ray.direction)                         on a miss
                  = 0                                          if absorbed
                  = attenuation * L(scattered, depth - 1)      otherwise

Taichi functions cannot call themselves, so radiance_with_bounces() unrolls
this into a loop over depth that carries the running product of
attenuations.

Pixel (i, j) counts columns from the left and rows from the bottom. Each
pixel keeps a running mean of its samples so rendering can resume at any
time.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.lumen.camera.thin_lens import setup_camera
    >>> from src.lumen.core.integrator import render_image, setup_render_target
    >>> from src.lumen.scene.presets import create_three_spheres_scene
    >>> scene, camera = create_three_spheres_scene()
    >>> setup_camera(camera)
    >>> setup_render_target(400, 300)
    >>> render_image(num_samples=10)
"""

import logging

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from src.lumen.camera.thin_lens import get_ray_jittered
from src.lumen.core.ray import Ray, make_ray
from src.lumen.core.sky import sky_radiance
from src.lumen.materials.dielectric import scatter_dielectric_by_id
from src.lumen.materials.lambertian import scatter_lambertian_by_id
from src.lumen.materials.metal import scatter_metal_by_id
from src.lumen.scene.intersection import intersect_scene
from src.lumen.scene.manager import (
    MaterialType,
    get_material_type,
    get_material_type_index,
)

logger = logging.getLogger(__name__)

vec3 = tm.vec3

MAX_DEPTH = 50

# hits closer than T_MIN are the surface the ray just left
T_MIN = 0.001
T_MAX = tm.inf

# Fields are allocated once at the largest size so kernels never recompile
MAX_IMAGE_WIDTH = 2048
MAX_IMAGE_HEIGHT = 2048
MAX_PIXEL_SAMPLES = 65536

_image_width = ti.field(dtype=ti.i32, shape=())
_image_height = ti.field(dtype=ti.i32, shape=())
_color_buffer = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))
_sample_count = ti.field(dtype=ti.i32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))
_pixel_samples = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PIXEL_SAMPLES)
_render_target_initialized = ti.field(dtype=ti.i32, shape=())


# =============================================================================
# Render target
# =============================================================================


def setup_render_target(width: int, height: int) -> None:
    """Select the active image size and zero the accumulators.

    Raises:
        ValueError: If either dimension is not positive or exceeds
            MAX_IMAGE_WIDTH / MAX_IMAGE_HEIGHT.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Image dimensions must be positive, got {width}x{height}")
    if width > MAX_IMAGE_WIDTH or height > MAX_IMAGE_HEIGHT:
        raise ValueError(
            f"{width}x{height} image is larger than the "
            f"{MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT} render target"
        )

    _image_width[None] = width
    _image_height[None] = height
    _render_target_initialized[None] = 1
    clear_render_target()


def clear_render_target() -> None:
    """Drop all accumulated samples, keeping the image size."""
    _color_buffer.fill(0.0)
    _sample_count.fill(0)


def get_image_dimensions() -> tuple[int, int]:
    """(width, height) of the active image."""
    return int(_image_width[None]), int(_image_height[None])


def _check_render_target_initialized() -> None:
    if not _render_target_initialized[None]:
        raise RuntimeError("No render target; call setup_render_target() first")


def get_image() -> "ti.MatrixField":
    """The full-size color field; only the active width x height is meaningful.

    Raises:
        RuntimeError: If no render target was set up.
    """
    _check_render_target_initialized()
    return _color_buffer


def get_sample_count() -> "ti.ScalarField":
    _check_render_target_initialized()
    return _sample_count


# =============================================================================
# Path tracing
# =============================================================================


@ti.func
def scatter_material(
    material_id: ti.i32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
):
    """Scatter off whatever material `material_id` names.

    Returns:
        (direction, attenuation, did_scatter). Ids that map to no known
        material type absorb the ray.
    """
    kind = get_material_type(material_id)
    slot = get_material_type_index(material_id)

    direction = vec3(0.0)
    attenuation = vec3(0.0)
    did_scatter = 0

    if kind == int(MaterialType.LAMBERTIAN):
        direction, attenuation, did_scatter = scatter_lambertian_by_id(slot, normal)
    elif kind == int(MaterialType.METAL):
        direction, attenuation, did_scatter = scatter_metal_by_id(slot, incident_direction, normal)
    elif kind == int(MaterialType.DIELECTRIC):
        direction, attenuation, did_scatter = scatter_dielectric_by_id(
            slot, incident_direction, normal, front_face
        )

    return direction, attenuation, did_scatter


@ti.func
def radiance_with_bounces(ray: Ray, depth: ti.i32):
    """Radiance carried back along `ray`, using at most `depth` scatter events.

    Returns:
        (color, bounces): non-negative linear RGB, and how many surfaces the
        path hit. depth <= 0 gives black and 0 bounces without any scene
        query.
    """
    color = vec3(0.0)
    throughput = vec3(1.0)
    origin = ray.origin
    direction = ray.direction
    bounces = 0
    alive = 1

    for _ in range(depth):
        if alive:
            rec = intersect_scene(origin, direction, T_MIN, T_MAX)
            if not rec.hit:
                color = throughput * sky_radiance(direction)
                alive = 0
            else:
                bounces += 1
                scattered, attenuation, did_scatter = scatter_material(
                    rec.material_id, direction, rec.normal, rec.front_face
                )
                if did_scatter:
                    throughput *= attenuation
                    origin = rec.point
                    direction = scattered
                else:
                    alive = 0

    return color, bounces


@ti.func
def radiance(ray: Ray, depth: ti.i32) -> vec3:
    color, _ = radiance_with_bounces(ray, depth)
    return color


@ti.func
def _sanitize(color: vec3) -> vec3:
    """Zero any NaN or infinite channel."""
    for c in ti.static(range(3)):
        if tm.isnan(color[c]) or tm.isinf(color[c]):
            color[c] = 0.0
    return color


@ti.func
def render_sample_impl(
    pixel_i: ti.i32, pixel_j: ti.i32, width: ti.i32, height: ti.i32, max_depth: ti.i32
) -> vec3:
    """One jittered camera sample for pixel (i, j)."""
    return _sanitize(radiance(get_ray_jittered(pixel_i, pixel_j, width, height), max_depth))


@ti.kernel
def _render_one_spp(width: ti.i32, height: ti.i32, max_depth: ti.i32):
    for i, j in ti.ndrange(width, height):
        sample = render_sample_impl(i, j, width, height, max_depth)
        _sample_count[i, j] += 1
        # incremental mean
        _color_buffer[i, j] += (sample - _color_buffer[i, j]) / ti.cast(_sample_count[i, j], ti.f32)


@ti.kernel
def _render_pixel_samples(
    pixel_i: ti.i32,
    pixel_j: ti.i32,
    width: ti.i32,
    height: ti.i32,
    num_samples: ti.i32,
    max_depth: ti.i32,
):
    for s in range(num_samples):
        _pixel_samples[s] = render_sample_impl(pixel_i, pixel_j, width, height, max_depth)


@ti.kernel
def _trace_ray_batch(
    origins: ti.types.ndarray(dtype=ti.f32, ndim=2),
    directions: ti.types.ndarray(dtype=ti.f32, ndim=2),
    depth: ti.i32,
    colors: ti.types.ndarray(dtype=ti.f32, ndim=2),
    bounces: ti.types.ndarray(dtype=ti.i32, ndim=1),
):
    for i in range(origins.shape[0]):
        ray = make_ray(
            vec3(origins[i, 0], origins[i, 1], origins[i, 2]),
            vec3(directions[i, 0], directions[i, 1], directions[i, 2]),
        )
        color, hits = radiance_with_bounces(ray, depth)
        for c in ti.static(range(3)):
            colors[i, c] = color[c]
        bounces[i] = hits


# =============================================================================
# Host API
# =============================================================================


def trace_rays(
    origins: npt.ArrayLike,
    directions: npt.ArrayLike,
    depth: int = MAX_DEPTH,
) -> tuple[npt.NDArray[np.float32], npt.NDArray[np.int32]]:
    """Radiance for arbitrary rays against the current scene and sky.

    Args:
        origins: (N, 3) ray origins.
        directions: (N, 3) nonzero ray directions.
        depth: Bounce limit applied to every ray.

    Returns:
        (colors, bounces) with shapes (N, 3) and (N,).

    Raises:
        ValueError: If the inputs are not matching (N, 3) arrays.
    """
    origins_arr = np.ascontiguousarray(origins, dtype=np.float32)
    directions_arr = np.ascontiguousarray(directions, dtype=np.float32)
    if origins_arr.ndim != 2 or origins_arr.shape[1] != 3:
        raise ValueError(f"origins must have shape (N, 3), got {origins_arr.shape}")
    if directions_arr.shape != origins_arr.shape:
        raise ValueError(
            f"directions shape {directions_arr.shape} does not match origins {origins_arr.shape}"
        )

    count = origins_arr.shape[0]
    colors = np.zeros((count, 3), dtype=np.float32)
    bounces = np.zeros(count, dtype=np.int32)
    if count:
        _trace_ray_batch(origins_arr, directions_arr, depth, colors, bounces)
    return colors, bounces


def render_pixel(
    pixel_i: int,
    pixel_j: int,
    num_samples: int = 1,
    max_depth: int = MAX_DEPTH,
) -> tuple[float, float, float]:
    """Mean of `num_samples` fresh samples of one pixel.

    The accumulation buffer is left untouched.

    Raises:
        RuntimeError: If no render target was set up.
        ValueError: If num_samples is outside [1, MAX_PIXEL_SAMPLES].
    """
    _check_render_target_initialized()
    if not 1 <= num_samples <= MAX_PIXEL_SAMPLES:
        raise ValueError(f"num_samples must be in [1, {MAX_PIXEL_SAMPLES}], got {num_samples}")

    width, height = get_image_dimensions()
    _render_pixel_samples(pixel_i, pixel_j, width, height, num_samples, max_depth)

    mean = _pixel_samples.to_numpy()[:num_samples].astype(np.float64).mean(axis=0)
    return (float(mean[0]), float(mean[1]), float(mean[2]))


def render_sample(pixel_i: int, pixel_j: int, max_depth: int = MAX_DEPTH) -> tuple[float, float, float]:
    return render_pixel(pixel_i, pixel_j, num_samples=1, max_depth=max_depth)


def render_image(num_samples: int = 1, max_depth: int = MAX_DEPTH) -> None:
    """Add `num_samples` samples to every pixel of the render target.

    Raises:
        RuntimeError: If no render target was set up.
    """
    _check_render_target_initialized()

    width, height = get_image_dimensions()
    logger.debug("Rendering %d spp at %dx%d (max_depth=%d)", num_samples, width, height, max_depth)

    for _ in range(num_samples):
        _render_one_spp(width, height, max_depth)


def get_total_samples() -> int:
    """Samples accumulated per pixel (every pixel has the same count)."""
    _check_render_target_initialized()
    return int(_sample_count[0, 0])


def get_normalized_image_numpy() -> npt.NDArray[np.float32]:
    """The accumulated image as (height, width, 3) float32, clipped to [0, 1].

    Row 0 of the result is the top of the picture.

    Raises:
        RuntimeError: If no render target was set up.
    """
    _check_render_target_initialized()

    width, height = get_image_dimensions()
    # buffer is indexed [column, row-from-bottom]
    pixels = _color_buffer.to_numpy()[:width, :height, :]
    pixels = np.flipud(pixels.transpose(1, 0, 2))
    return np.ascontiguousarray(np.clip(pixels, 0.0, 1.0), dtype=np.float32)
