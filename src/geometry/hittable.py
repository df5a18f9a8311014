# geometry/hittable.py
from enum import IntEnum
import numpy as np
from core.aabb import AABB
from core.utils import build_transform, transform_points

class GeometryType(IntEnum):
    SPHERE = 0
    BOX = 1
    MESH = 2

# Corners of the object-space bounds shared by the analytic shapes
# (sphere of radius 0.5, cube of side 1, both centred on the origin).
UNIT_CORNERS = np.array([[x, y, z] for x in (-0.5, 0.5) for y in (-0.5, 0.5) for z in (-0.5, 0.5)],
                        dtype=np.float32)

class Geometry:
    """
    A scene object: a shape in object space placed by a model-to-world
    transform, plus the id of the material it is made of.
    """
    geometry_type = None

    def __init__(self, material_id: int, translation=(0.0, 0.0, 0.0),
                 rotation=(0.0, 0.0, 0.0), scale=(1.0, 1.0, 1.0)):
        self.material_id = material_id
        self.transform, self.inverse_transform, self.inverse_transpose = \
            build_transform(translation, rotation, scale)

    def primitive_count(self) -> int:
        return 1

    def primitive_bounds(self, offset: int) -> AABB:
        """World-space bounds of primitive `offset` of this object."""
        return AABB.from_points(transform_points(self.transform, UNIT_CORNERS))
