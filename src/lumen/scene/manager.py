"""Scene building on top of the sphere store and material registries.

Every material, whatever its type, gets a unified material id. Two Taichi
fields map that id to its MaterialType and to its slot in the per-type
registry, which is all the radiance kernel needs to dispatch a scatter.

SceneManager is the Python front end: it creates materials, places spheres,
picks the sky, and round-trips the scene through plain dictionaries.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.lumen.scene.manager import SceneManager
    >>> scene = SceneManager()
    >>> red = scene.add_lambertian_material(albedo=(0.8, 0.3, 0.3))
    >>> scene.add_sphere(center=(0, 0, -1), radius=0.5, material_id=red)
"""

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from src.lumen.core.sky import set_environment_map, use_gradient_sky
from src.lumen.materials.dielectric import (
    MAX_DIELECTRIC_MATERIALS,
    add_dielectric_material,
    clear_dielectric_materials,
)
from src.lumen.materials.lambertian import (
    MAX_LAMBERTIAN_MATERIALS,
    add_lambertian_material,
    clear_lambertian_materials,
    validate_albedo,
)
from src.lumen.materials.metal import (
    MAX_METAL_MATERIALS,
    add_metal_material,
    clamp_fuzz,
    clear_metal_materials,
)
from src.lumen.scene.intersection import (
    MAX_SPHERES,
    add_sphere,
    clear_scene,
    get_sphere_count,
)

logger = logging.getLogger(__name__)

vec3 = tm.vec3


class MaterialType(IntEnum):
    """Closed set of surface kinds the integrator knows how to scatter."""

    LAMBERTIAN = 0
    METAL = 1
    DIELECTRIC = 2


MAX_MATERIALS = MAX_LAMBERTIAN_MATERIALS + MAX_METAL_MATERIALS + MAX_DIELECTRIC_MATERIALS

# unified material id -> MaterialType / slot in that type's registry
material_types = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
material_type_indices = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())


def _clear_material_tracking() -> None:
    num_materials[None] = 0


@ti.func
def _is_known_material(material_id: ti.i32) -> ti.i32:
    return 0 <= material_id < num_materials[None]


@ti.func
def get_material_type(material_id: ti.i32) -> ti.i32:
    """MaterialType value of a material id, or -1 if the id is unknown."""
    kind = -1
    if _is_known_material(material_id):
        kind = material_types[material_id]
    return kind


@ti.func
def get_material_type_index(material_id: ti.i32) -> ti.i32:
    """Registry slot of a material id, or -1 if the id is unknown."""
    slot = -1
    if _is_known_material(material_id):
        slot = material_type_indices[material_id]
    return slot


def _register_material(material_type: MaterialType, type_index: int) -> int:
    material_id = int(num_materials[None])
    if material_id >= MAX_MATERIALS:
        raise RuntimeError(f"Material table is full ({MAX_MATERIALS} materials)")
    material_types[material_id] = int(material_type)
    material_type_indices[material_id] = type_index
    num_materials[None] = material_id + 1
    return material_id


@dataclass
class MaterialInfo:
    """Python-side record of a registered material.

    `params` holds the values actually stored, e.g. fuzz after clamping.
    """

    material_id: int
    material_type: MaterialType
    type_index: int
    params: dict[str, Any]


@dataclass
class SphereInfo:
    sphere_index: int
    center: tuple[float, float, float]
    radius: float
    material_id: int


@dataclass
class SceneConfig:
    """Serializable scene: material dicts tagged by "type", then sphere dicts."""

    materials: list[dict[str, Any]] = field(default_factory=list)
    spheres: list[dict[str, Any]] = field(default_factory=list)


def _triple(values: Any) -> tuple[float, float, float]:
    x, y, z = values
    return (float(x), float(y), float(z))


def _check_config(config: SceneConfig) -> None:
    """Reject a config that from_config() could only partly load.

    Raises:
        ValueError: On an unknown material type, invalid values, or a
            sphere referring to a material the config does not define.
        RuntimeError: If the config exceeds a registry or the sphere store.
    """
    limits = {
        "lambertian": MAX_LAMBERTIAN_MATERIALS,
        "metal": MAX_METAL_MATERIALS,
        "dielectric": MAX_DIELECTRIC_MATERIALS,
    }
    counts = dict.fromkeys(limits, 0)

    for position, entry in enumerate(config.materials):
        kind = str(entry.get("type", "")).lower()
        if kind not in limits:
            raise ValueError(f"Unknown material type {kind!r}")
        if kind == "dielectric":
            ior = entry.get("ior", 1.5)
            if ior <= 0.0:
                raise ValueError(f"Material {position}: refractive index must be positive, got {ior}")
        else:
            validate_albedo(_triple(entry.get("albedo", (0.5, 0.5, 0.5))))
        counts[kind] += 1

    for kind, count in counts.items():
        if count > limits[kind]:
            raise RuntimeError(f"Config holds {count} {kind} materials, limit is {limits[kind]}")
    if len(config.spheres) > MAX_SPHERES:
        raise RuntimeError(f"Config holds {len(config.spheres)} spheres, limit is {MAX_SPHERES}")

    for position, entry in enumerate(config.spheres):
        _triple(entry.get("center", (0.0, 0.0, 0.0)))
        radius = entry.get("radius", 1.0)
        if radius <= 0.0:
            raise ValueError(f"Sphere {position}: radius must be positive, got {radius}")
        material_id = entry.get("material_id", 0)
        if not 0 <= material_id < len(config.materials):
            raise ValueError(f"Sphere {position}: unknown material id {material_id}")


class SceneManager:
    """Builds the global scene state read by the render kernels.

    Only one scene exists at a time since spheres and materials live in
    module-level Taichi fields. Creating a SceneManager wipes that state.
    Build the scene completely before rendering.

    Attributes:
        materials: MaterialInfo per unified material id, in id order.
        spheres: SphereInfo per sphere, in insertion order.

    Example:
        >>> scene = SceneManager()
        >>> scene.add_lambertian_sphere((0, -100.5, -1), 100, albedo=(0.8, 0.8, 0.0))
        >>> scene.add_metal_sphere((1, 0, -1), 0.5, albedo=(0.8, 0.6, 0.2), fuzz=0.3)
        >>> scene.add_dielectric_sphere((-1, 0, -1), 0.5, ior=1.5)
    """

    def __init__(self) -> None:
        self.materials: list[MaterialInfo] = []
        self.spheres: list[SphereInfo] = []
        self.clear()

    def clear(self) -> None:
        """Remove all spheres and materials and go back to the gradient sky."""
        clear_scene()
        clear_lambertian_materials()
        clear_metal_materials()
        clear_dielectric_materials()
        _clear_material_tracking()
        use_gradient_sky()
        self.materials.clear()
        self.spheres.clear()

    # -------------------------------------------------------------------------
    # Materials
    # -------------------------------------------------------------------------

    def _track(self, material_type: MaterialType, type_index: int, **params: Any) -> int:
        material_id = _register_material(material_type, type_index)
        self.materials.append(MaterialInfo(material_id, material_type, type_index, params))
        logger.debug("Material id %d -> %s slot %d", material_id, material_type.name, type_index)
        return material_id

    def add_lambertian_material(self, albedo: tuple[float, float, float]) -> int:
        """Create a diffuse material and return its unified id.

        Raises:
            ValueError: If the albedo is not three values in [0, 1].
            RuntimeError: If a registry is full.
        """
        return self._track(MaterialType.LAMBERTIAN, add_lambertian_material(albedo), albedo=albedo)

    def add_metal_material(self, albedo: tuple[float, float, float], fuzz: float = 0.0) -> int:
        """Create a metal material and return its unified id.

        Fuzz outside [0, 1] is clamped with a warning.

        Raises:
            ValueError: If the albedo is not three values in [0, 1].
            RuntimeError: If a registry is full.
        """
        type_index = add_metal_material(albedo, fuzz)
        return self._track(MaterialType.METAL, type_index, albedo=albedo, fuzz=clamp_fuzz(fuzz))

    def add_dielectric_material(self, ior: float = 1.5) -> int:
        """Create a dielectric material and return its unified id.

        Raises:
            ValueError: If ior <= 0.
            RuntimeError: If a registry is full.
        """
        return self._track(MaterialType.DIELECTRIC, add_dielectric_material(ior), ior=ior)

    def get_material_count(self) -> int:
        return int(num_materials[None])

    def get_material_info(self, material_id: int) -> MaterialInfo | None:
        if 0 <= material_id < len(self.materials):
            return self.materials[material_id]
        return None

    def get_material_type_python(self, material_id: int) -> MaterialType | None:
        """Host-side counterpart of the get_material_type() Taichi function."""
        info = self.get_material_info(material_id)
        return None if info is None else info.material_type

    # -------------------------------------------------------------------------
    # Spheres
    # -------------------------------------------------------------------------

    def add_sphere(
        self,
        center: tuple[float, float, float],
        radius: float,
        material_id: int,
    ) -> int:
        """Place a sphere shaded by an existing material.

        Returns:
            The sphere's slot index.

        Raises:
            ValueError: If material_id was never issued or radius <= 0.
            RuntimeError: If the scene already holds MAX_SPHERES spheres.
        """
        if not 0 <= material_id < num_materials[None]:
            raise ValueError(f"Unknown material id {material_id}")

        sphere_index = add_sphere(vec3(*center), radius, material_id)
        self.spheres.append(SphereInfo(sphere_index, center, radius, material_id))
        return sphere_index

    def add_sphere_with_material(
        self,
        center: tuple[float, float, float],
        radius: float,
        material_id: int,
    ) -> tuple[int, int]:
        """add_sphere() returning (sphere_index, material_id)."""
        return self.add_sphere(center, radius, material_id), material_id

    def add_lambertian_sphere(
        self,
        center: tuple[float, float, float],
        radius: float,
        albedo: tuple[float, float, float],
    ) -> tuple[int, int]:
        """Create a diffuse material and a sphere using it.

        Returns:
            (sphere_index, material_id)
        """
        return self.add_sphere_with_material(center, radius, self.add_lambertian_material(albedo))

    def add_metal_sphere(
        self,
        center: tuple[float, float, float],
        radius: float,
        albedo: tuple[float, float, float],
        fuzz: float = 0.0,
    ) -> tuple[int, int]:
        return self.add_sphere_with_material(center, radius, self.add_metal_material(albedo, fuzz))

    def add_dielectric_sphere(
        self,
        center: tuple[float, float, float],
        radius: float,
        ior: float = 1.5,
    ) -> tuple[int, int]:
        return self.add_sphere_with_material(center, radius, self.add_dielectric_material(ior))

    def get_sphere_count(self) -> int:
        return get_sphere_count()

    # -------------------------------------------------------------------------
    # Sky
    # -------------------------------------------------------------------------

    def use_gradient_sky(self) -> None:
        use_gradient_sky()

    def set_environment_map(self, image: npt.NDArray) -> None:
        """Light escaping rays from an equirectangular image instead of the gradient.

        Raises:
            ValueError: If the image is not (H, W, 3) or exceeds the map size.
        """
        set_environment_map(image)

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_config(self) -> SceneConfig:
        return SceneConfig(
            materials=[{"type": m.material_type.name.lower(), **m.params} for m in self.materials],
            spheres=[
                {"center": list(s.center), "radius": s.radius, "material_id": s.material_id}
                for s in self.spheres
            ],
        )

    def from_config(self, config: SceneConfig) -> None:
        """Replace the current scene (sky included) with `config`.

        The whole config is checked first, so a rejected config leaves the
        current scene untouched.

        Raises:
            ValueError: On an unknown material type, invalid values, or a
                dangling material id.
            RuntimeError: If the config does not fit the fixed capacities.
        """
        _check_config(config)
        self.clear()

        for entry in config.materials:
            kind = str(entry.get("type", "")).lower()
            if kind == "lambertian":
                self.add_lambertian_material(_triple(entry.get("albedo", (0.5, 0.5, 0.5))))
            elif kind == "metal":
                self.add_metal_material(
                    _triple(entry.get("albedo", (0.8, 0.8, 0.8))), entry.get("fuzz", 0.0)
                )
            else:
                self.add_dielectric_material(entry.get("ior", 1.5))

        for entry in config.spheres:
            self.add_sphere(
                _triple(entry.get("center", (0.0, 0.0, 0.0))),
                entry.get("radius", 1.0),
                entry.get("material_id", 0),
            )

    def to_dict(self) -> dict[str, Any]:
        config = self.to_config()
        return {"materials": config.materials, "spheres": config.spheres}

    def from_dict(self, data: dict[str, Any]) -> None:
        self.from_config(SceneConfig(data.get("materials", []), data.get("spheres", [])))

    @staticmethod
    def get_max_spheres() -> int:
        return MAX_SPHERES

    @staticmethod
    def get_max_materials() -> int:
        return MAX_MATERIALS
