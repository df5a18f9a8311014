# geometry/mesh.py
import numpy as np
from core.aabb import AABB
from core.utils import transform_points
from geometry.hittable import Geometry, GeometryType

class TriangleMesh(Geometry):
    """
    Indexed triangle mesh. Vertices are in object space; the transform places
    the whole mesh in the world.
    """
    geometry_type = GeometryType.MESH

    def __init__(self, vertices, indices, material_id: int, translation=(0.0, 0.0, 0.0),
                 rotation=(0.0, 0.0, 0.0), scale=(1.0, 1.0, 1.0)):
        super().__init__(material_id, translation, rotation, scale)
        self.vertices = np.ascontiguousarray(vertices, dtype=np.float32).reshape(-1, 3)
        self.indices = np.ascontiguousarray(indices, dtype=np.int32).reshape(-1, 3)
        if len(self.indices) == 0:
            raise ValueError("TriangleMesh needs at least one triangle")
        if self.indices.min() < 0 or self.indices.max() >= len(self.vertices):
            raise ValueError("TriangleMesh index out of range")

    def primitive_count(self) -> int:
        return len(self.indices)

    def primitive_bounds(self, offset: int) -> AABB:
        corners = self.vertices[self.indices[offset]]
        return AABB.from_points(transform_points(self.transform, corners))

def quad(corner, edge_u, edge_v):
    """Vertices and indices for a two-triangle parallelogram."""
    corner = np.asarray(corner, dtype=np.float32)
    edge_u = np.asarray(edge_u, dtype=np.float32)
    edge_v = np.asarray(edge_v, dtype=np.float32)
    vertices = np.array([corner, corner + edge_u, corner + edge_u + edge_v, corner + edge_v],
                        dtype=np.float32)
    indices = np.array([[0, 1, 2], [0, 2, 3]], dtype=np.int32)
    return vertices, indices
