# renderer/cuda_intersect.py

from numba import cuda, float32
from .cuda_utils import INFINITY, EPSILON
from .cuda_geometry import GEOM_MESH, intersect_object, aabb_hit

# States of the stackless BVH walk
FROM_PARENT = 0
FROM_SIBLING = 1
FROM_CHILD = 2

@cuda.jit(device=True)
def write_intersection(idx, best_t, best_obj, best_point, best_normal,
                       obj_materials, material_types,
                       isect_t, isect_material, isect_point, isect_normal, isect_material_type,
                       flags):
    """Store the winning hit (or the no-hit record) and the validity flag."""
    if best_obj < 0:
        isect_t[idx] = -1.0
        isect_material[idx] = -1
        isect_material_type[idx] = -1
        flags[idx] = 0
        return
    mat = obj_materials[best_obj]
    isect_t[idx] = best_t
    isect_material[idx] = mat
    isect_material_type[idx] = material_types[mat]
    for i in range(3):
        isect_point[idx, i] = best_point[i]
        isect_normal[idx, i] = best_normal[i]
    flags[idx] = 1

@cuda.jit
def intersect_brute_force_kernel(num_paths, ray_origins, ray_dirs,
                                 obj_types, obj_transforms, obj_inv_transforms, obj_inv_transposes,
                                 obj_materials, obj_tri_start, obj_tri_end,
                                 triangles, vertices, material_types,
                                 isect_t, isect_material, isect_point, isect_normal, isect_material_type,
                                 flags):
    """
    One thread per active path: test every object (every triangle of a mesh)
    and keep the nearest positive hit.
    """
    idx = cuda.grid(1)
    if idx >= num_paths:
        return

    hit_point = cuda.local.array(3, dtype=float32)
    hit_normal = cuda.local.array(3, dtype=float32)
    best_point = cuda.local.array(3, dtype=float32)
    best_normal = cuda.local.array(3, dtype=float32)

    origin = ray_origins[idx]
    direction = ray_dirs[idx]
    best_t = INFINITY
    best_obj = -1

    for obj in range(obj_types.shape[0]):
        if obj_types[obj] == GEOM_MESH:
            for tri in range(obj_tri_start[obj], obj_tri_end[obj]):
                t = intersect_object(obj, tri, origin, direction,
                                     obj_types, obj_transforms, obj_inv_transforms, obj_inv_transposes,
                                     triangles, vertices, hit_point, hit_normal)
                if t > 0.0 and t < best_t:
                    best_t = t
                    best_obj = obj
                    for i in range(3):
                        best_point[i] = hit_point[i]
                        best_normal[i] = hit_normal[i]
        else:
            t = intersect_object(obj, -1, origin, direction,
                                 obj_types, obj_transforms, obj_inv_transforms, obj_inv_transposes,
                                 triangles, vertices, hit_point, hit_normal)
            if t > 0.0 and t < best_t:
                best_t = t
                best_obj = obj
                for i in range(3):
                    best_point[i] = hit_point[i]
                    best_normal[i] = hit_normal[i]

    write_intersection(idx, best_t, best_obj, best_point, best_normal,
                       obj_materials, material_types,
                       isect_t, isect_material, isect_point, isect_normal, isect_material_type,
                       flags)

@cuda.jit(device=True)
def near_child(node, ray_origin, bbox_min, bbox_max, left, right):
    """The child whose box centre is closer to the ray origin (left on ties)."""
    l = left[node]
    r = right[node]
    dl = 0.0
    dr = 0.0
    for i in range(3):
        cl = (bbox_min[l, i] + bbox_max[l, i]) * 0.5 - ray_origin[i]
        cr = (bbox_min[r, i] + bbox_max[r, i]) * 0.5 - ray_origin[i]
        dl += cl * cl
        dr += cr * cr
    if dr < dl:
        return r
    return l

@cuda.jit(device=True)
def sibling_of(node, left, right, parent):
    p = parent[node]
    if left[p] == node:
        return right[p]
    return left[p]

@cuda.jit(device=True)
def test_leaf(node, ray_origin, ray_dir, best_t, best_obj, best_point, best_normal,
              prim_start, prim_end, prim_objects, prim_offsets,
              obj_types, obj_transforms, obj_inv_transforms, obj_inv_transposes,
              obj_tri_start, triangles, vertices, hit_point, hit_normal):
    """Test every primitive of a leaf; returns the (possibly improved) best hit."""
    for p in range(prim_start[node], prim_end[node]):
        obj = prim_objects[p]
        tri = -1
        if obj_types[obj] == GEOM_MESH:
            tri = obj_tri_start[obj] + prim_offsets[p]
        t = intersect_object(obj, tri, ray_origin, ray_dir,
                             obj_types, obj_transforms, obj_inv_transforms, obj_inv_transposes,
                             triangles, vertices, hit_point, hit_normal)
        if t > 0.0 and t < best_t:
            best_t = t
            best_obj = obj
            for i in range(3):
                best_point[i] = hit_point[i]
                best_normal[i] = hit_normal[i]
    return best_t, best_obj

@cuda.jit
def intersect_bvh_kernel(num_paths, ray_origins, ray_dirs,
                         obj_types, obj_transforms, obj_inv_transforms, obj_inv_transposes,
                         obj_materials, obj_tri_start, obj_tri_end,
                         triangles, vertices, material_types,
                         bbox_min, bbox_max, left, right, parent, prim_start, prim_end,
                         prim_objects, prim_offsets,
                         isect_t, isect_material, isect_point, isect_normal, isect_material_type,
                         flags, visit_log, log_length):
    """
    Stackless BVH traversal driven by parent links and a three-state walk:

      FROM_PARENT   just descended into `curr`
      FROM_SIBLING  arrived from the near sibling
      FROM_CHILD    climbing back up through `curr`

    The near child (box centre closest to the ray origin) is always visited
    before its sibling, so hits found early shrink the box tests of the far
    side. When log_length > 0 the node entered at each step is written to
    visit_log[idx, step] for inspection.
    """
    idx = cuda.grid(1)
    if idx >= num_paths:
        return

    hit_point = cuda.local.array(3, dtype=float32)
    hit_normal = cuda.local.array(3, dtype=float32)
    best_point = cuda.local.array(3, dtype=float32)
    best_normal = cuda.local.array(3, dtype=float32)
    ray_dir_inv = cuda.local.array(3, dtype=float32)

    origin = ray_origins[idx]
    direction = ray_dirs[idx]
    best_t = INFINITY
    best_obj = -1

    for i in range(3):
        if abs(direction[i]) > EPSILON:
            ray_dir_inv[i] = 1.0 / direction[i]
        elif direction[i] < 0.0:
            ray_dir_inv[i] = -1.0 / EPSILON
        else:
            ray_dir_inv[i] = 1.0 / EPSILON

    step = 0
    if left[0] == -1:
        # Single-leaf tree: nothing to walk
        if log_length > 0:
            visit_log[idx, 0] = 0
        if aabb_hit(origin, ray_dir_inv, bbox_min[0], bbox_max[0], 0.0, best_t):
            best_t, best_obj = test_leaf(0, origin, direction, best_t, best_obj, best_point, best_normal,
                                         prim_start, prim_end, prim_objects, prim_offsets,
                                         obj_types, obj_transforms, obj_inv_transforms, obj_inv_transposes,
                                         obj_tri_start, triangles, vertices, hit_point, hit_normal)
    else:
        curr = near_child(0, origin, bbox_min, bbox_max, left, right)
        state = FROM_PARENT
        while True:
            if step < log_length:
                visit_log[idx, step] = curr
            step += 1

            if state == FROM_CHILD:
                if curr == 0:
                    break
                p = parent[curr]
                if curr == near_child(p, origin, bbox_min, bbox_max, left, right):
                    curr = sibling_of(curr, left, right, parent)
                    state = FROM_SIBLING
                else:
                    curr = p
                    state = FROM_CHILD
                continue

            box_hit = aabb_hit(origin, ray_dir_inv, bbox_min[curr], bbox_max[curr], 0.0, best_t)
            if box_hit and left[curr] != -1:
                curr = near_child(curr, origin, bbox_min, bbox_max, left, right)
                state = FROM_PARENT
                continue

            if box_hit:
                best_t, best_obj = test_leaf(curr, origin, direction, best_t, best_obj, best_point, best_normal,
                                             prim_start, prim_end, prim_objects, prim_offsets,
                                             obj_types, obj_transforms, obj_inv_transforms, obj_inv_transposes,
                                             obj_tri_start, triangles, vertices, hit_point, hit_normal)

            if state == FROM_PARENT:
                curr = sibling_of(curr, left, right, parent)
                state = FROM_SIBLING
            else:
                curr = parent[curr]
                state = FROM_CHILD

    write_intersection(idx, best_t, best_obj, best_point, best_normal,
                       obj_materials, material_types,
                       isect_t, isect_material, isect_point, isect_normal, isect_material_type,
                       flags)
