"""Batched, resumable rendering on top of the integrator.

Samples are added in batches. Between batches the caller hears about
progress through a callback or a generator and may stop. A batch always
finishes, so no path is cut short.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.lumen.core.progressive import ProgressiveRenderer
    >>> from src.lumen.scene.presets import create_three_spheres_scene
    >>> from src.lumen.camera.thin_lens import setup_camera
    >>>
    >>> scene, camera = create_three_spheres_scene()
    >>> setup_camera(camera)
    >>>
    >>> renderer = ProgressiveRenderer(400, 300, max_depth=50)
    >>> renderer.render(100)
    >>> image = renderer.get_image_uint8()
"""

import logging
from collections.abc import Callable, Generator
from typing import Any

import numpy as np
import numpy.typing as npt

from src.lumen.core.integrator import (
    MAX_DEPTH,
    clear_render_target,
    get_image,
    get_normalized_image_numpy,
    get_total_samples,
    render_image,
    setup_render_target,
)

logger = logging.getLogger(__name__)

# called as callback(samples_so_far, samples_when_done)
ProgressCallback = Callable[[int, int], None]


class ProgressiveRenderer:
    """Owns the render target size and bounce limit for a series of batches.

    Pixel data lives in the integrator's module-level fields, so only one
    renderer is meaningful at a time.
    """

    def __init__(self, width: int, height: int, max_depth: int = MAX_DEPTH) -> None:
        """Raises ValueError if max_depth < 0 or the size does not fit the render target."""
        if max_depth < 0:
            raise ValueError(f"max_depth must be non-negative, got {max_depth}")
        self._max_depth = max_depth
        self.resize(width, height)

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def max_depth(self) -> int:
        return self._max_depth

    @property
    def sample_count(self) -> int:
        """Samples accumulated per pixel so far."""
        return get_total_samples()

    def reset(self) -> None:
        """Discard accumulated samples but keep the size."""
        clear_render_target()

    def resize(self, width: int, height: int) -> None:
        """Change the image size; accumulated samples are discarded."""
        setup_render_target(width, height)
        self._width = width
        self._height = height

    def render(
        self,
        num_samples: int = 1,
        batch_size: int = 1,
        callback: ProgressCallback | None = None,
    ) -> None:
        """Add `num_samples` samples per pixel, calling `callback` after each batch."""
        for done, target in self.render_progressive(num_samples, batch_size):
            if callback is not None:
                callback(done, target)

    def render_progressive(
        self,
        num_samples: int = 1,
        batch_size: int = 1,
    ) -> Generator[tuple[int, int], None, None]:
        """Add `num_samples` samples per pixel, yielding after each batch.

        Closing the generator early skips the remaining batches.

        Yields:
            (samples_so_far, samples_when_done)
        """
        if num_samples <= 0:
            return
        batch_size = max(1, batch_size)
        target = self.sample_count + num_samples
        logger.debug("Adding %d spp in batches of %d", num_samples, batch_size)

        for start in range(0, num_samples, batch_size):
            render_image(min(batch_size, num_samples - start), self._max_depth)
            yield self.sample_count, target

    def get_image(self) -> Any:
        """The integrator's full-size color field."""
        return get_image()

    def get_image_numpy(self) -> npt.NDArray[np.float32]:
        """Linear colors as (height, width, 3) float32 in [0, 1], top row first."""
        return get_normalized_image_numpy()

    def get_image_uint8(self) -> npt.NDArray[np.uint8]:
        """Display-ready (height, width, 3) uint8 pixels, gamma 2 encoded."""
        from src.lumen.preview.export import encode_gamma2

        return encode_gamma2(self.get_image_numpy())

    def __repr__(self) -> str:
        return (
            f"ProgressiveRenderer({self.width}x{self.height}, "
            f"max_depth={self.max_depth}, samples={self.sample_count})"
        )
