# geometry/box.py
from core.vector import Vector3
from geometry.hittable import Geometry, GeometryType

class Box(Geometry):
    """Unit cube stretched to `size`, rotated (degrees) and moved to `center`."""
    geometry_type = GeometryType.BOX

    def __init__(self, center: Vector3, size: Vector3, material_id: int,
                 rotation=(0.0, 0.0, 0.0)):
        super().__init__(material_id,
                         translation=(center.x, center.y, center.z),
                         rotation=rotation,
                         scale=(size.x, size.y, size.z))
        self.center = center
        self.size = size
