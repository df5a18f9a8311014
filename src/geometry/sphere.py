# geometry/sphere.py
from core.vector import Vector3
from geometry.hittable import Geometry, GeometryType

class Sphere(Geometry):
    """
    Represents a sphere defined by its center, radius, and material.
    Internally a radius-0.5 sphere scaled by 2 * radius.
    """
    geometry_type = GeometryType.SPHERE

    def __init__(self, center: Vector3, radius: float, material_id: int):
        if radius <= 0.0:
            raise ValueError(f"Sphere radius must be positive, got {radius}")
        d = 2.0 * radius
        super().__init__(material_id, translation=(center.x, center.y, center.z), scale=(d, d, d))
        self.center = center
        self.radius = radius
