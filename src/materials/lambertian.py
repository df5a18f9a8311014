# materials/lambertian.py
from core.vector import Vector3
from materials.material import Material, MaterialType

class Lambertian(Material):
    """
    Lambertian diffuse material. The albedo is the base color.
    """
    material_type = MaterialType.DIFFUSE

    def __init__(self, albedo: Vector3):
        super().__init__(albedo)
