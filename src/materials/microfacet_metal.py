# materials/microfacet_metal.py
from core.vector import Vector3
from materials.material import Material, MaterialType

class MicrofacetMetal(Material):
    """GGX microfacet conductor; the albedo doubles as the normal-incidence Fresnel F0."""
    material_type = MaterialType.MICROFACET

    def __init__(self, albedo: Vector3, roughness: float):
        super().__init__(albedo, roughness=min(max(roughness, 0.0), 1.0))
