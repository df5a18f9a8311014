from geometry.hittable import Geometry, GeometryType
from geometry.sphere import Sphere
from geometry.box import Box
from geometry.mesh import TriangleMesh, quad
from geometry.bvh import FlatBVH, build_bvh, validate_bvh
from geometry.world import SceneData, World
