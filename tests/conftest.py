"""Pytest configuration for path tracer tests.

Provides shared fixtures for all test modules, including Taichi
initialization which must happen once per session.
"""

import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Repeated ti.init() calls reset the runtime and invalidate fields that
    modules created at import time.
    """
    ti.init(arch=ti.cpu, random_seed=42)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Reset spheres, materials, sky and render target around each test."""
    # Import here so Taichi is initialized before the fields are created
    from src.lumen.core.integrator import clear_render_target
    from src.lumen.core.sky import use_gradient_sky
    from src.lumen.materials.dielectric import clear_dielectric_materials
    from src.lumen.materials.lambertian import clear_lambertian_materials
    from src.lumen.materials.metal import clear_metal_materials
    from src.lumen.scene.intersection import clear_scene
    from src.lumen.scene.manager import _clear_material_tracking

    def _clear_all():
        clear_scene()
        clear_lambertian_materials()
        clear_metal_materials()
        clear_dielectric_materials()
        _clear_material_tracking()
        use_gradient_sky()
        clear_render_target()

    _clear_all()

    yield

    _clear_all()
