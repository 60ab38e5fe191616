"""Preview module for image output.

Components:
    export: Gamma-2 encoding and PNG export via Pillow

Example:
    >>> from src.lumen.preview import save_png
    >>> from src.lumen.core.progressive import ProgressiveRenderer
    >>>
    >>> renderer = ProgressiveRenderer(400, 300)
    >>> renderer.render(100)
    >>> save_png(renderer, "output.png")
"""

from src.lumen.preview.export import (
    compute_rmse,
    encode_gamma2,
    save_png,
    save_png_from_array,
)

__all__ = [
    "encode_gamma2",
    "save_png",
    "save_png_from_array",
    "compute_rmse",
]
