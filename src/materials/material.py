# materials/material.py
from enum import IntEnum
from core.vector import Vector3

class MaterialType(IntEnum):
    """Tag stored per material; device code dispatches on these values."""
    DIFFUSE = 0
    EMITTING = 1
    SPECULAR = 2
    MICROFACET = 3

class Material:
    """
    Flat material record: a type tag plus every parameter any family may need.
    Subclasses only pick the tag and fill the fields they use.
    """
    material_type = None

    def __init__(self, color: Vector3, emittance: float = 0.0,
                 roughness: float = 0.0, ior: float = 1.0):
        if self.material_type is None:
            raise ValueError(f"{type(self).__name__} does not define a material type")
        self.color = color
        self.emittance = emittance
        self.roughness = roughness
        self.ior = ior

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(color={self.color}, emittance={self.emittance}, "
                f"roughness={self.roughness}, ior={self.ior})")
