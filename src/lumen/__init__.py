"""lumen: a Taichi path tracer for scenes built from spheres.

Each pixel averages many random light paths. A path bounces between spheres
until it escapes to the sky, is absorbed, or runs out of bounces.

Subpackages:
    core: Rays, sky, the radiance integrator and progressive rendering
    geometry: The sphere primitive
    materials: Lambertian, metal and dielectric scattering
    scene: Sphere storage, SceneManager and preset scenes
    camera: Thin-lens camera with jitter and defocus blur
    preview: Gamma encoding and PNG export
"""

__version__ = "0.1.0"
