"""Geometric primitives. Spheres are the only shape; scenes scan them linearly."""

from .sphere import HitRecord, Sphere, hit_sphere, make_sphere, set_face_normal

__all__ = [
    "Sphere",
    "HitRecord",
    "hit_sphere",
    "make_sphere",
    "set_face_normal",
]
