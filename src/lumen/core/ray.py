"""Rays, reflection and refraction helpers, and Monte Carlo direction sampling.

Everything here is a Taichi function meant to be called from kernels. The
rejection samplers loop a fixed number of times, so call them from inside a
kernel's outer for loop.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> ray = Ray(origin=ti.math.vec3(0.0), direction=ti.math.vec3(0.0, 0.0, -1.0))
    >>> ray_at(ray, 5.0)  # (0, 0, -5)
"""

import taichi as ti
import taichi.math as tm

vec3 = tm.vec3

# |v|^2 below this counts as a zero vector
NEAR_ZERO_EPSILON = 1e-8

# The cube-to-ball acceptance rate is about 52%, so 100 tries practically
# never all fail
MAX_REJECTION_ATTEMPTS = 100


@ti.dataclass
class Ray:
    """origin + t * direction; direction is nonzero but not necessarily unit."""

    origin: vec3
    direction: vec3


@ti.func
def ray_at(ray: Ray, t: ti.f32) -> vec3:
    return ray.origin + t * ray.direction


@ti.func
def make_ray(origin: vec3, direction: vec3) -> Ray:
    return Ray(origin=origin, direction=direction)


@ti.func
def dot(a: vec3, b: vec3) -> ti.f32:
    return tm.dot(a, b)


@ti.func
def cross(a: vec3, b: vec3) -> vec3:
    return tm.cross(a, b)


@ti.func
def length_squared(v: vec3) -> ti.f32:
    return dot(v, v)


@ti.func
def length(v: vec3) -> ti.f32:
    return ti.sqrt(length_squared(v))


@ti.func
def normalize(v: vec3) -> vec3:
    """v / |v|; v must not be the zero vector."""
    return v / length(v)


@ti.func
def near_zero(v: vec3) -> ti.i32:
    """1 if |v|^2 < NEAR_ZERO_EPSILON, else 0."""
    return ti.select(length_squared(v) < NEAR_ZERO_EPSILON, 1, 0)


# =============================================================================
# Surface interaction
# =============================================================================


@ti.func
def reflect(incident: vec3, normal: vec3) -> vec3:
    """Mirror `incident` about a unit `normal`: v - 2 (v . n) n."""
    return incident - 2.0 * tm.dot(incident, normal) * normal


@ti.func
def refract(incident: vec3, normal: vec3, eta: ti.f32) -> vec3:
    """Bend a unit direction through a boundary by Snell's law.

    Args:
        incident: Unit incoming direction.
        normal: Unit normal facing against `incident`.
        eta: n_incident / n_transmitted.

    Returns:
        The unit transmitted direction. If no transmitted direction exists
        (total internal reflection) the zero vector is returned; callers
        normally rule that case out first.
    """
    cos_i = tm.min(-tm.dot(incident, normal), 1.0)
    sin2_t = eta * eta * (1.0 - cos_i * cos_i)
    transmitted = vec3(0.0)
    if sin2_t <= 1.0:
        transmitted = eta * incident + (eta * cos_i - ti.sqrt(1.0 - sin2_t)) * normal
    return transmitted


@ti.func
def schlick_reflectance(cosine: ti.f32, eta: ti.f32) -> ti.f32:
    """Schlick's Fresnel term r0 + (1 - r0)(1 - cosine)^5.

    r0 = ((1 - eta) / (1 + eta))^2 is the reflectance at normal incidence.
    """
    r0 = ((1.0 - eta) / (1.0 + eta)) ** 2
    return r0 + (1.0 - r0) * (1.0 - cosine) ** 5


# =============================================================================
# Random sampling
# =============================================================================


@ti.func
def _random_signed() -> ti.f32:
    return 2.0 * ti.random(ti.f32) - 1.0


@ti.func
def random_in_unit_sphere() -> vec3:
    """Uniform point in the unit ball by rejection from the [-1, 1]^3 cube.

    Candidates too close to the origin are also rejected so the result can
    be normalized safely. If every attempt fails, +y is returned.
    """
    p = vec3(0.0, 1.0, 0.0)
    searching = True
    for _ in range(MAX_REJECTION_ATTEMPTS):
        if searching:
            candidate = vec3(_random_signed(), _random_signed(), _random_signed())
            d2 = length_squared(candidate)
            if NEAR_ZERO_EPSILON < d2 <= 1.0:
                p = candidate
                searching = False
    return p


@ti.func
def random_unit_vector() -> vec3:
    """Uniform direction on the unit sphere."""
    return tm.normalize(random_in_unit_sphere())


@ti.func
def random_on_hemisphere(normal: vec3) -> vec3:
    """Uniform unit vector with dot(result, normal) >= 0."""
    v = random_unit_vector()
    if tm.dot(v, normal) < 0.0:
        v = -v
    return v


@ti.func
def random_in_unit_disk() -> vec3:
    """Uniform point (x, y, 0) with x^2 + y^2 < 1, used for lens sampling."""
    p = vec3(0.0)
    searching = True
    for _ in range(MAX_REJECTION_ATTEMPTS):
        if searching:
            candidate = vec3(_random_signed(), _random_signed(), 0.0)
            if candidate.x * candidate.x + candidate.y * candidate.y < 1.0:
                p = candidate
                searching = False
    return p
