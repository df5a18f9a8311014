# renderer/cuda_geometry.py

from numba import cuda, float32
from .cuda_utils import EPSILON, dot, cross_inplace, normalize_inplace, transform_point, transform_direction
import math

T_MIN = 1e-4

GEOM_SPHERE = 0
GEOM_BOX = 1
GEOM_MESH = 2

@cuda.jit(device=True)
def ray_sphere_intersect(ray_origin, ray_dir, out_normal):
    """
    Object-space test against the sphere of radius 0.5 at the origin.
    ray_dir must be normalized. Returns t or -1.0; out_normal is the outward normal.
    """
    half_b = dot(ray_dir, ray_origin)
    c = dot(ray_origin, ray_origin) - 0.25
    discriminant = half_b * half_b - c

    if discriminant < 0:
        return -1.0

    sqrtd = math.sqrt(discriminant)
    root = -half_b - sqrtd
    if root < T_MIN:
        root = -half_b + sqrtd
        if root < T_MIN:
            return -1.0

    for i in range(3):
        out_normal[i] = ray_origin[i] + root * ray_dir[i]
    normalize_inplace(out_normal)
    return root

@cuda.jit(device=True)
def ray_box_intersect(ray_origin, ray_dir, out_normal):
    """
    Object-space slab test against the unit cube centred on the origin.
    Returns the nearest positive t (the exit face when starting inside) or -1.0.
    """
    t_near = -1e30
    t_far = 1e30
    near_axis = -1
    far_axis = -1
    for i in range(3):
        d = ray_dir[i]
        if abs(d) < EPSILON:
            if ray_origin[i] < -0.5 or ray_origin[i] > 0.5:
                return -1.0
            continue
        t1 = (-0.5 - ray_origin[i]) / d
        t2 = (0.5 - ray_origin[i]) / d
        lo = min(t1, t2)
        hi = max(t1, t2)
        if lo > t_near:
            t_near = lo
            near_axis = i
        if hi < t_far:
            t_far = hi
            far_axis = i

    if t_far < t_near or t_far < T_MIN:
        return -1.0

    t = t_near
    axis = near_axis
    if t_near < T_MIN:
        t = t_far
        axis = far_axis
    if axis < 0:
        return -1.0

    for i in range(3):
        out_normal[i] = 0.0
    if ray_origin[axis] + t * ray_dir[axis] > 0.0:
        out_normal[axis] = 1.0
    else:
        out_normal[axis] = -1.0
    return t

@cuda.jit(device=True)
def ray_triangle_intersect(ray_origin, ray_dir, v0, v1, v2, out_normal):
    """
    Ray-triangle intersection using the Möller-Trumbore algorithm.
    Two-sided; out_normal is the unnormalized face normal (v1-v0) x (v2-v0).
    Returns the intersection distance t, or -1.0.
    """
    edge1 = cuda.local.array(3, dtype=float32)
    edge2 = cuda.local.array(3, dtype=float32)
    h = cuda.local.array(3, dtype=float32)
    s = cuda.local.array(3, dtype=float32)
    q = cuda.local.array(3, dtype=float32)

    for i in range(3):
        edge1[i] = v1[i] - v0[i]
        edge2[i] = v2[i] - v0[i]

    cross_inplace(h, ray_dir, edge2)
    a = dot(edge1, h)

    if abs(a) < EPSILON:  # Ray is parallel to triangle, no intersection
        return -1.0

    f = 1.0 / a
    for i in range(3):
        s[i] = ray_origin[i] - v0[i]

    u = f * dot(s, h)
    if u < 0.0 or u > 1.0:
        return -1.0

    cross_inplace(q, s, edge1)
    v = f * dot(ray_dir, q)
    if v < 0.0 or (u + v) > 1.0:
        return -1.0

    t = f * dot(edge2, q)
    if t < T_MIN:
        return -1.0

    cross_inplace(out_normal, edge1, edge2)
    return t

@cuda.jit(device=True)
def intersect_object(obj, tri, ray_origin, ray_dir,
                     obj_types, obj_transforms, obj_inv_transforms, obj_inv_transposes,
                     triangles, vertices, out_point, out_normal):
    """
    Intersect a world-space ray with object `obj` (triangle `tri` for meshes,
    ignored otherwise). The ray is moved to object space, tested there and the
    hit point and normal are brought back to world space.

    Returns the world-space distance t, or -1.0 on a miss.
    """
    local_origin = cuda.local.array(3, dtype=float32)
    local_dir = cuda.local.array(3, dtype=float32)
    local_normal = cuda.local.array(3, dtype=float32)
    local_point = cuda.local.array(3, dtype=float32)

    transform_point(obj_inv_transforms[obj], ray_origin, local_origin)
    transform_direction(obj_inv_transforms[obj], ray_dir, local_dir)
    normalize_inplace(local_dir)

    kind = obj_types[obj]
    t_local = -1.0
    if kind == GEOM_SPHERE:
        t_local = ray_sphere_intersect(local_origin, local_dir, local_normal)
    elif kind == GEOM_BOX:
        t_local = ray_box_intersect(local_origin, local_dir, local_normal)
    elif tri >= 0:
        t_local = ray_triangle_intersect(local_origin, local_dir,
                                         vertices[triangles[tri, 0]],
                                         vertices[triangles[tri, 1]],
                                         vertices[triangles[tri, 2]],
                                         local_normal)
    if t_local <= 0.0:
        return -1.0

    for i in range(3):
        local_point[i] = local_origin[i] + t_local * local_dir[i]
    transform_point(obj_transforms[obj], local_point, out_point)
    transform_direction(obj_inv_transposes[obj], local_normal, out_normal)
    normalize_inplace(out_normal)

    dist_sq = 0.0
    for i in range(3):
        d = out_point[i] - ray_origin[i]
        dist_sq += d * d
    return math.sqrt(dist_sq)

@cuda.jit(device=True)
def aabb_hit(ray_origin, ray_dir_inv, box_min, box_max, t_min, t_max):
    """Slab test with a precomputed inverse direction."""
    for i in range(3):
        t0 = (box_min[i] - ray_origin[i]) * ray_dir_inv[i]
        t1 = (box_max[i] - ray_origin[i]) * ray_dir_inv[i]
        if ray_dir_inv[i] < 0.0:
            temp = t0
            t0 = t1
            t1 = temp
        t_min = t0 if t0 > t_min else t_min
        t_max = t1 if t1 < t_max else t_max
        if t_max < t_min:
            return False
    return True
