"""Camera models. thin_lens is a look-at perspective camera with optional depth of field."""

from .thin_lens import (
    ThinLensCamera,
    get_camera_basis,
    get_camera_info,
    get_camera_origin,
    get_ray,
    get_ray_jittered,
    get_ray_with_samples,
    setup_camera,
    viewport_point,
)

__all__ = [
    "ThinLensCamera",
    "setup_camera",
    "get_ray",
    "get_ray_with_samples",
    "get_ray_jittered",
    "viewport_point",
    "get_camera_origin",
    "get_camera_basis",
    "get_camera_info",
]
