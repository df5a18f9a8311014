# src/materials/dielectric.py
from core.vector import Vector3
from materials.material import Material, MaterialType

class Dielectric(Material):
    """
    Smooth glass-like surface: Fresnel-weighted choice between perfect
    reflection and refraction. The color tints both lobes.
    """
    material_type = MaterialType.SPECULAR

    def __init__(self, ref_idx: float, color: Vector3 = None):
        if ref_idx <= 0.0:
            raise ValueError(f"Index of refraction must be positive, got {ref_idx}")
        super().__init__(color if color is not None else Vector3(1.0, 1.0, 1.0), ior=ref_idx)
