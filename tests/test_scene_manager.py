"""Unit tests for the SceneManager.

Tests cover:
- Unified material IDs across material types
- Kernel-side material type lookup
- Sphere placement and validation
- Sky selection
- Serialization round trip through dictionaries
"""

import numpy as np
import pytest
import taichi as ti


class TestMaterialRegistration:
    """Tests for unified material registration."""

    def test_material_ids_are_sequential_across_types(self):
        from src.lumen.scene.manager import MaterialType, SceneManager

        scene = SceneManager()
        diffuse = scene.add_lambertian_material((0.5, 0.5, 0.5))
        metal = scene.add_metal_material((0.8, 0.8, 0.8), fuzz=0.2)
        glass = scene.add_dielectric_material(1.5)
        diffuse_2 = scene.add_lambertian_material((0.1, 0.2, 0.3))

        assert (diffuse, metal, glass, diffuse_2) == (0, 1, 2, 3)
        assert scene.get_material_count() == 4
        assert scene.get_material_type_python(glass) == MaterialType.DIELECTRIC
        assert scene.get_material_info(diffuse_2).type_index == 1
        assert scene.get_material_info(99) is None

    def test_metal_params_record_clamped_fuzz(self):
        from src.lumen.scene.manager import SceneManager

        scene = SceneManager()
        mat_id = scene.add_metal_material((0.8, 0.8, 0.8), fuzz=1.7)
        assert scene.get_material_info(mat_id).params["fuzz"] == 1.0

    def test_kernel_lookup_matches_python(self):
        from src.lumen.scene.manager import (
            MaterialType,
            SceneManager,
            get_material_type,
            get_material_type_index,
        )

        scene = SceneManager()
        scene.add_dielectric_material(1.5)
        scene.add_metal_material((0.5, 0.5, 0.5))
        scene.add_metal_material((0.6, 0.6, 0.6))

        types = ti.field(dtype=ti.i32, shape=4)
        indices = ti.field(dtype=ti.i32, shape=4)

        @ti.kernel
        def test_kernel():
            for i in range(4):
                types[i] = get_material_type(i)
                indices[i] = get_material_type_index(i)

        test_kernel()
        assert types[0] == int(MaterialType.DIELECTRIC)
        assert types[1] == int(MaterialType.METAL)
        assert types[2] == int(MaterialType.METAL)
        assert indices[2] == 1
        # Unregistered id
        assert types[3] == -1
        assert indices[3] == -1

    def test_clear_resets_everything(self):
        from src.lumen.core.sky import SkyType, get_sky_type
        from src.lumen.scene.manager import SceneManager

        scene = SceneManager()
        scene.add_lambertian_sphere((0, 0, -1), 0.5, (0.5, 0.5, 0.5))
        scene.set_environment_map(np.full((4, 8, 3), 0.5, dtype=np.float32))

        scene.clear()
        assert scene.get_material_count() == 0
        assert scene.get_sphere_count() == 0
        assert scene.materials == []
        assert scene.spheres == []
        assert get_sky_type() == SkyType.GRADIENT


class TestSpherePlacement:
    """Tests for adding spheres through the manager."""

    def test_convenience_methods_create_material_and_sphere(self):
        from src.lumen.scene.manager import MaterialType, SceneManager

        scene = SceneManager()
        s0, m0 = scene.add_lambertian_sphere((0, 0, -1), 0.5, (0.5, 0.5, 0.5))
        s1, m1 = scene.add_metal_sphere((1, 0, -1), 0.5, (0.8, 0.6, 0.2), fuzz=0.3)
        s2, m2 = scene.add_dielectric_sphere((-1, 0, -1), 0.5, ior=1.5)

        assert (s0, s1, s2) == (0, 1, 2)
        assert (m0, m1, m2) == (0, 1, 2)
        assert scene.get_material_type_python(m1) == MaterialType.METAL
        assert scene.get_sphere_count() == 3

    def test_shared_material(self):
        from src.lumen.scene.manager import SceneManager

        scene = SceneManager()
        mat_id = scene.add_lambertian_material((0.5, 0.5, 0.5))
        scene.add_sphere_with_material((0, 0, -1), 0.5, mat_id)
        scene.add_sphere_with_material((0, 0, -3), 0.5, mat_id)

        assert scene.get_material_count() == 1
        assert [s.material_id for s in scene.spheres] == [mat_id, mat_id]

    @pytest.mark.parametrize("material_id", [-1, 1, 100])
    def test_invalid_material_id_raises(self, material_id):
        from src.lumen.scene.manager import SceneManager

        scene = SceneManager()
        scene.add_lambertian_material((0.5, 0.5, 0.5))
        with pytest.raises(ValueError):
            scene.add_sphere((0, 0, -1), 0.5, material_id)

    def test_non_positive_radius_raises(self):
        from src.lumen.scene.manager import SceneManager

        scene = SceneManager()
        mat_id = scene.add_lambertian_material((0.5, 0.5, 0.5))
        with pytest.raises(ValueError):
            scene.add_sphere((0, 0, -1), 0.0, mat_id)

    def test_capacity_constants(self):
        from src.lumen.scene.manager import MAX_MATERIALS, SceneManager
        from src.lumen.scene.intersection import MAX_SPHERES

        assert SceneManager.get_max_spheres() == MAX_SPHERES
        assert SceneManager.get_max_materials() == MAX_MATERIALS


class TestSerialization:
    """Tests for to_dict/from_dict and to_config/from_config."""

    def test_round_trip_through_dict(self):
        from src.lumen.scene.manager import MaterialType, SceneManager

        scene = SceneManager()
        scene.add_lambertian_sphere((0, -100.5, -1), 100.0, (0.8, 0.8, 0.0))
        scene.add_metal_sphere((1, 0, -1), 0.5, (0.8, 0.6, 0.2), fuzz=0.2)
        scene.add_dielectric_sphere((-1, 0, -1), 0.5, ior=1.5)
        data = scene.to_dict()

        restored = SceneManager()
        restored.from_dict(data)

        assert restored.get_sphere_count() == 3
        assert restored.get_material_count() == 3
        assert restored.get_material_type_python(1) == MaterialType.METAL
        assert restored.get_material_info(1).params["fuzz"] == 0.2
        assert restored.spheres[0].radius == 100.0
        assert restored.to_dict() == data

    def test_dict_format(self):
        from src.lumen.scene.manager import SceneManager

        scene = SceneManager()
        scene.add_dielectric_sphere((0, 1, 0), 1.0, ior=1.5)
        data = scene.to_dict()

        assert data["materials"] == [{"type": "dielectric", "ior": 1.5}]
        assert data["spheres"] == [{"center": [0, 1, 0], "radius": 1.0, "material_id": 0}]

    def test_unknown_material_type_raises(self):
        from src.lumen.scene.manager import SceneManager

        scene = SceneManager()
        with pytest.raises(ValueError, match="Unknown material type"):
            scene.from_dict({"materials": [{"type": "emissive"}], "spheres": []})

    @pytest.mark.parametrize(
        "data",
        [
            {"materials": [{"type": "lambertian"}, {"type": "emissive"}], "spheres": []},
            {"materials": [{"type": "metal", "albedo": [1.2, 0.5, 0.5]}], "spheres": []},
            {"materials": [{"type": "dielectric", "ior": 0.0}], "spheres": []},
            {
                "materials": [{"type": "lambertian"}],
                "spheres": [{"center": [0, 0, -1], "radius": 0.0, "material_id": 0}],
            },
            {
                "materials": [{"type": "lambertian"}],
                "spheres": [
                    {"center": [0, 0, -1], "radius": 0.5, "material_id": 0},
                    {"center": [1, 0, -1], "radius": 0.5, "material_id": 1},
                ],
            },
            {
                "materials": [{"type": "lambertian"}],
                "spheres": [{"center": [0, 0], "radius": 0.5, "material_id": 0}],
            },
        ],
    )
    def test_rejected_config_leaves_scene_untouched(self, data):
        from src.lumen.scene.manager import SceneManager

        scene = SceneManager()
        scene.add_lambertian_sphere((0, -100.5, -1), 100.0, (0.8, 0.8, 0.0))
        scene.add_metal_sphere((1, 0, -1), 0.5, (0.8, 0.6, 0.2), fuzz=0.2)
        before = scene.to_dict()

        with pytest.raises(ValueError):
            scene.from_dict(data)

        assert scene.get_sphere_count() == 2
        assert scene.get_material_count() == 2
        assert scene.to_dict() == before
