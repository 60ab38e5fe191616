"""Preset sphere scenes.

Two ready-made scenes are provided:

- Three spheres: a blue diffuse sphere between a hollow glass sphere (glass
  shell around an air bubble) and a fuzzy gold metal sphere, resting on a
  large yellow-green ground sphere.
- Random spheres: a grey ground sphere covered by a grid of small spheres
  with randomly chosen materials (80% diffuse, 15% metal, 5% glass) and
  three large feature spheres (glass, diffuse, mirror).

Both scenes use the gradient sky.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.lumen.scene.presets import create_random_spheres_scene
    >>> from src.lumen.camera.thin_lens import setup_camera
    >>>
    >>> scene, camera = create_random_spheres_scene(seed=7)
    >>> setup_camera(camera)
"""

import numpy as np

from src.lumen.camera.thin_lens import ThinLensCamera
from src.lumen.scene.manager import SceneManager

# Random scene grid spans [-GRID_EXTENT, GRID_EXTENT) along x and z
GRID_EXTENT = 11

SMALL_SPHERE_RADIUS = 0.2

# Small spheres closer than this to the metal feature sphere are skipped
FEATURE_CLEARANCE = 0.9

# Small metal albedo is uniform per channel, then scaled; green-tinted
METAL_ALBEDO_SCALE = np.array([0.5, 1.0, 0.5])


def create_three_spheres_scene(
    aspect_ratio: float = 4.0 / 3.0,
) -> tuple[SceneManager, ThinLensCamera]:
    """Create the three-spheres scene viewed from a distance.

    Args:
        aspect_ratio: Width divided by height of the target image.

    Returns:
        A tuple of (scene, camera).
    """
    scene = SceneManager()

    scene.add_lambertian_sphere((0.0, 0.0, -1.2), 0.5, albedo=(0.1, 0.2, 0.5))
    # Air bubble inside the glass shell: ior relative to the glass
    scene.add_dielectric_sphere((-1.0, 0.0, -1.0), 0.4, ior=1.0 / 1.33)
    scene.add_dielectric_sphere((-1.0, 0.0, -1.0), 0.5, ior=1.5)
    scene.add_metal_sphere((1.0, 0.0, -1.0), 0.5, albedo=(0.8, 0.6, 0.2), fuzz=0.2)
    scene.add_lambertian_sphere((0.0, -100.5, -1.0), 100.0, albedo=(0.8, 0.8, 0.0))

    camera = ThinLensCamera(
        lookfrom=(13.0, 2.0, 3.0),
        lookat=(0.0, 0.0, 0.0),
        vup=(0.0, 1.0, 0.0),
        vfov=35.0,
        aspect_ratio=aspect_ratio,
    )
    return scene, camera


def create_random_spheres_scene(
    seed: int | None = None,
    aspect_ratio: float = 16.0 / 9.0,
    defocus_angle: float = 0.6,
    focus_dist: float = 10.0,
) -> tuple[SceneManager, ThinLensCamera]:
    """Create the random-spheres scene.

    Args:
        seed: Seed for the placement and material generator. None draws a
            fresh seed from the operating system.
        aspect_ratio: Width divided by height of the target image.
        defocus_angle: Lens cone angle in degrees (0 disables depth of field).
        focus_dist: Distance to the plane of perfect focus.

    Returns:
        A tuple of (scene, camera).
    """
    rng = np.random.default_rng(seed)
    scene = SceneManager()

    scene.add_lambertian_sphere((0.0, -1000.0, 0.0), 1000.0, albedo=(0.5, 0.5, 0.5))

    feature_point = np.array([4.0, SMALL_SPHERE_RADIUS, 0.0])
    for a in range(-GRID_EXTENT, GRID_EXTENT):
        for b in range(-GRID_EXTENT, GRID_EXTENT):
            choose_mat = rng.random()
            center = np.array(
                [a + 0.9 * rng.random(), SMALL_SPHERE_RADIUS, b + 0.9 * rng.random()]
            )

            if np.linalg.norm(center - feature_point) <= FEATURE_CLEARANCE:
                continue

            center_tuple = (float(center[0]), float(center[1]), float(center[2]))
            if choose_mat < 0.8:
                albedo = rng.random(3) * rng.random(3)
                scene.add_lambertian_sphere(
                    center_tuple, SMALL_SPHERE_RADIUS, albedo=tuple(float(c) for c in albedo)
                )
            elif choose_mat < 0.95:
                albedo = rng.random(3) * METAL_ALBEDO_SCALE
                fuzz = float(rng.random())
                scene.add_metal_sphere(
                    center_tuple,
                    SMALL_SPHERE_RADIUS,
                    albedo=tuple(float(c) for c in albedo),
                    fuzz=fuzz,
                )
            else:
                scene.add_dielectric_sphere(center_tuple, SMALL_SPHERE_RADIUS, ior=1.5)

    scene.add_dielectric_sphere((0.0, 1.0, 0.0), 1.0, ior=1.5)
    scene.add_lambertian_sphere((-4.0, 1.0, 0.0), 1.0, albedo=(0.4, 0.2, 0.1))
    scene.add_metal_sphere((4.0, 1.0, 0.0), 1.0, albedo=(0.7, 0.6, 0.5), fuzz=0.0)

    camera = ThinLensCamera(
        lookfrom=(13.0, 2.0, 3.0),
        lookat=(0.0, 0.0, 0.0),
        vup=(0.0, 1.0, 0.0),
        vfov=20.0,
        aspect_ratio=aspect_ratio,
        defocus_angle=defocus_angle,
        focus_dist=focus_dist,
    )
    return scene, camera
