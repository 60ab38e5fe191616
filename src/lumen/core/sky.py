"""Background radiance for rays that escape the scene.

Two sky models are supported:

- Gradient: a vertical blend from white at the horizon-down direction to
  light blue overhead, driven by the y component of the unit direction:
      a = 0.5 * (dir.y + 1)
      color = (1 - a) * white + a * (0.5, 0.7, 1.0)

- Environment map: an equirectangular image looked up by direction:
      u = 0.5 + atan2(dir.x, -dir.z) / (2 * pi)
      v = 0.5 - asin(dir.y) / pi
  using the nearest pixel, with u and v clamped into [0, 1]. Each channel
  is raised to 1/2.2 before it is returned.

The environment map is stored in a preallocated Taichi field so that
installing a new map never triggers kernel recompilation.

Example:
    >>> from src.lumen.core.sky import load_environment_map, set_environment_map
    >>> image = load_environment_map("studio.png")
    >>> set_environment_map(image)
    >>> # ... render ...
    >>> use_gradient_sky()
"""

import logging
from enum import IntEnum
from pathlib import Path

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm
from PIL import Image as PILImage

logger = logging.getLogger(__name__)

# Type alias for 3D vectors
vec3 = tm.vec3

# Gradient endpoints
SKY_WHITE = (1.0, 1.0, 1.0)
SKY_BLUE = (0.5, 0.7, 1.0)

# Exponent applied to environment map texels
ENV_MAP_EXPONENT = 1.0 / 2.2

# Preallocated environment map capacity (rows x columns)
MAX_ENV_MAP_WIDTH = 2048
MAX_ENV_MAP_HEIGHT = 1024


class SkyType(IntEnum):
    """Background model used for rays that miss every object."""

    GRADIENT = 0
    ENVIRONMENT_MAP = 1


_sky_type = ti.field(dtype=ti.i32, shape=())
_env_map = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_ENV_MAP_HEIGHT, MAX_ENV_MAP_WIDTH))
_env_width = ti.field(dtype=ti.i32, shape=())
_env_height = ti.field(dtype=ti.i32, shape=())


# =============================================================================
# Sky Evaluation (Taichi-side)
# =============================================================================


@ti.func
def gradient_sky(direction: vec3) -> vec3:
    """Evaluate the vertical gradient sky for a (not necessarily unit) direction."""
    unit_direction = tm.normalize(direction)
    a = 0.5 * (unit_direction.y + 1.0)
    white = vec3(SKY_WHITE[0], SKY_WHITE[1], SKY_WHITE[2])
    blue = vec3(SKY_BLUE[0], SKY_BLUE[1], SKY_BLUE[2])
    return (1.0 - a) * white + a * blue


@ti.func
def direction_to_uv(direction: vec3) -> tm.vec2:
    """Map a direction to clamped equirectangular (u, v) coordinates."""
    d = tm.normalize(direction)
    u = 0.5 + ti.atan2(d.x, -d.z) / (2.0 * tm.pi)
    v = 0.5 - ti.asin(tm.clamp(d.y, -1.0, 1.0)) / tm.pi
    return tm.vec2(tm.clamp(u, 0.0, 1.0), tm.clamp(v, 0.0, 1.0))


@ti.func
def sample_environment(direction: vec3) -> vec3:
    """Nearest-pixel lookup of the installed environment map.

    Args:
        direction: The escaping ray direction (any length).

    Returns:
        The texel color with each channel raised to 1/2.2.
    """
    uv = direction_to_uv(direction)
    width = _env_width[None]
    height = _env_height[None]
    px = tm.min(ti.cast(uv.x * ti.cast(width, ti.f32), ti.i32), width - 1)
    py = tm.min(ti.cast(uv.y * ti.cast(height, ti.f32), ti.i32), height - 1)
    texel = _env_map[py, px]
    return texel**ENV_MAP_EXPONENT


@ti.func
def sky_radiance(direction: vec3) -> vec3:
    """Background radiance seen along an escaping ray."""
    color = vec3(0.0, 0.0, 0.0)
    if _sky_type[None] == int(SkyType.ENVIRONMENT_MAP):
        color = sample_environment(direction)
    else:
        color = gradient_sky(direction)
    return color


# =============================================================================
# Sky Configuration (Python-side)
# =============================================================================


@ti.kernel
def _copy_env_map(pixels: ti.types.ndarray(dtype=ti.f32, ndim=3), height: ti.i32, width: ti.i32):
    for i, j in ti.ndrange(height, width):
        _env_map[i, j] = vec3(pixels[i, j, 0], pixels[i, j, 1], pixels[i, j, 2])


def use_gradient_sky() -> None:
    """Select the gradient sky for escaping rays."""
    _sky_type[None] = int(SkyType.GRADIENT)


def get_sky_type() -> SkyType:
    """Get the currently active sky model."""
    return SkyType(int(_sky_type[None]))


def set_environment_map(image: npt.NDArray) -> None:
    """Install an equirectangular environment map and select it as the sky.

    Args:
        image: Array of shape (height, width, 3). Floating-point arrays must
            hold values in [0, 1]; uint8 arrays are scaled by 1/255. Row 0 is
            the top of the map (straight up).

    Raises:
        ValueError: If the array has the wrong shape, exceeds the
            preallocated capacity, or holds values outside [0, 1].
    """
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Environment map must have shape (H, W, 3), got {image.shape}")

    height, width = int(image.shape[0]), int(image.shape[1])
    if height == 0 or width == 0:
        raise ValueError("Environment map must not be empty")
    if width > MAX_ENV_MAP_WIDTH or height > MAX_ENV_MAP_HEIGHT:
        raise ValueError(
            f"Environment map dimensions ({width}x{height}) exceed maximum supported "
            f"({MAX_ENV_MAP_WIDTH}x{MAX_ENV_MAP_HEIGHT})"
        )

    if image.dtype == np.uint8:
        pixels = image.astype(np.float32) / 255.0
    else:
        pixels = image.astype(np.float32)
        if pixels.min() < 0.0 or pixels.max() > 1.0:
            raise ValueError("Environment map values must lie in [0, 1]")

    _copy_env_map(np.ascontiguousarray(pixels), height, width)
    _env_width[None] = width
    _env_height[None] = height
    _sky_type[None] = int(SkyType.ENVIRONMENT_MAP)
    logger.info("Installed %dx%d environment map", width, height)


def load_environment_map(filepath: str | Path) -> npt.NDArray[np.float32]:
    """Read an image file into an environment map array.

    Args:
        filepath: Path to any image format Pillow can read.

    Returns:
        Float32 array of shape (height, width, 3) with values in [0, 1].

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    path = Path(filepath)
    if not path.is_file():
        raise FileNotFoundError(f"Environment map not found: {path}")

    with PILImage.open(path) as pil_image:
        rgb = pil_image.convert("RGB")
        pixels = np.asarray(rgb, dtype=np.float32) / 255.0

    logger.debug("Loaded environment map %s (%dx%d)", path, pixels.shape[1], pixels.shape[0])
    return pixels
