"""Turning linear renders into 8-bit PNG files.

The integrator produces linear RGB. Display values use a gamma of 2, i.e. a
square root, then scale to [0, 255] and truncate:

    byte = uint8(clamp(255 * sqrt(c), 0, 255))

Example:
    >>> from src.lumen.preview.export import save_png
    >>> from src.lumen.core.progressive import ProgressiveRenderer
    >>>
    >>> renderer = ProgressiveRenderer(400, 300)
    >>> renderer.render(100)
    >>> save_png(renderer, "output.png")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

if TYPE_CHECKING:
    from src.lumen.core.progressive import ProgressiveRenderer

logger = logging.getLogger(__name__)


def encode_gamma2(image: npt.ArrayLike) -> npt.NDArray[np.uint8]:
    """Encode linear colors to 8-bit display values with a gamma-2 curve.

    Negative inputs and NaN map to 0; values above 1 saturate at 255.

    Args:
        image: Linear color values of any shape.

    Returns:
        Array of the same shape with dtype uint8.
    """
    linear = np.nan_to_num(np.asarray(image, dtype=np.float64), nan=0.0, posinf=1.0)
    encoded = 255.0 * np.sqrt(np.maximum(linear, 0.0))
    return np.clip(encoded, 0.0, 255.0).astype(np.uint8)


def save_png_from_array(image: npt.NDArray[np.float32], filepath: str | Path) -> None:
    """Save a linear (H, W, 3) image as a gamma-2 encoded 8-bit PNG.

    Raises:
        ValueError: If the array is not of shape (H, W, 3).
    """
    image = np.asarray(image)
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected image of shape (H, W, 3), got {image.shape}")

    pil_image = PILImage.fromarray(encode_gamma2(image))
    pil_image.save(filepath)
    logger.debug("Wrote %dx%d image to %s", image.shape[1], image.shape[0], filepath)


def save_png(renderer: ProgressiveRenderer, filepath: str | Path) -> None:
    """Save the renderer's current image as a gamma-2 encoded 8-bit PNG."""
    save_png_from_array(renderer.get_image_numpy(), filepath)


def compute_rmse(
    image_a: npt.NDArray[np.floating],
    image_b: npt.NDArray[np.floating],
) -> float:
    """Root mean squared per-channel difference; shapes must be equal."""
    if image_a.shape != image_b.shape:
        raise ValueError(f"Cannot compare images of shape {image_a.shape} and {image_b.shape}")
    return float(np.sqrt(np.mean(np.square(image_a.astype(np.float64) - image_b.astype(np.float64)))))
