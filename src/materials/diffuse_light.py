# materials/diffuse_light.py
from core.vector import Vector3
from materials.material import Material, MaterialType

class DiffuseLight(Material):
    """
    Emissive material. Radiance is color * emittance; hitting it ends the path.
    """
    material_type = MaterialType.EMITTING

    def __init__(self, color: Vector3, emittance: float = 1.0):
        if emittance < 0.0:
            raise ValueError(f"Emittance must be non-negative, got {emittance}")
        super().__init__(color, emittance=emittance)
