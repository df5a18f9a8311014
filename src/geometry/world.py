# src/geometry/world.py
import logging
from typing import List, Optional
import numpy as np
from camera.camera import Camera
from geometry.bvh import FlatBVH, build_bvh
from geometry.hittable import Geometry, GeometryType
from materials.material import Material, MaterialType

logger = logging.getLogger(__name__)

class SceneData:
    """
    Flat, upload-ready scene arrays. Everything the renderer reads lives here;
    nothing in it changes once a render has started.
    """
    def __init__(self, camera: Camera, max_depth: int,
                 object_types, object_transforms, object_inverse_transforms,
                 object_inverse_transposes, object_materials, object_tri_start, object_tri_end,
                 triangles, vertices, prim_objects, prim_offsets, bvh: Optional[FlatBVH],
                 material_types, material_colors, material_emittance,
                 material_roughness, material_ior):
        self.camera = camera
        self.max_depth = max_depth
        self.object_types = object_types
        self.object_transforms = object_transforms
        self.object_inverse_transforms = object_inverse_transforms
        self.object_inverse_transposes = object_inverse_transposes
        self.object_materials = object_materials
        self.object_tri_start = object_tri_start
        self.object_tri_end = object_tri_end
        self.triangles = triangles
        self.vertices = vertices
        self.prim_objects = prim_objects
        self.prim_offsets = prim_offsets
        self.bvh = bvh
        self.material_types = material_types
        self.material_colors = material_colors
        self.material_emittance = material_emittance
        self.material_roughness = material_roughness
        self.material_ior = material_ior

    @property
    def num_objects(self) -> int:
        return len(self.object_types)

    @property
    def num_triangles(self) -> int:
        return len(self.triangles)

    @property
    def num_pixels(self) -> int:
        return self.camera.width * self.camera.height

class World:
    """
    Collects materials and objects and compiles them into SceneData.
    """
    def __init__(self):
        self.materials: List[Material] = []
        self.objects: List[Geometry] = []

    def add_material(self, material: Material) -> int:
        if not isinstance(material, Material) or not isinstance(material.material_type, MaterialType):
            raise ValueError(f"Unsupported material {material!r}")
        self.materials.append(material)
        return len(self.materials) - 1

    def add(self, obj: Geometry) -> int:
        if not 0 <= obj.material_id < len(self.materials):
            raise ValueError(f"Object references unknown material {obj.material_id}")
        self.objects.append(obj)
        return len(self.objects) - 1

    def clear(self):
        self.materials.clear()
        self.objects.clear()

    def compile_materials(self):
        n = len(self.materials)
        types = np.zeros(n, dtype=np.int32)
        colors = np.zeros((n, 3), dtype=np.float32)
        emittance = np.zeros(n, dtype=np.float32)
        roughness = np.zeros(n, dtype=np.float32)
        ior = np.ones(n, dtype=np.float32)
        for i, mat in enumerate(self.materials):
            types[i] = int(mat.material_type)
            colors[i] = mat.color.to_array()
            emittance[i] = mat.emittance
            roughness[i] = mat.roughness
            ior[i] = mat.ior
        return types, colors, emittance, roughness, ior

    def compile(self, camera: Camera, max_depth: int, build_accelerator: bool = True,
                max_leaf_size: int = 2) -> SceneData:
        """
        Flatten the world into arrays. Analytic shapes become one primitive
        (local offset -1); each mesh triangle becomes one primitive.
        """
        if len(self.objects) == 0:
            raise ValueError("World contains no objects")
        if max_depth < 1:
            raise ValueError(f"max_depth must be >= 1, got {max_depth}")

        n = len(self.objects)
        object_types = np.zeros(n, dtype=np.int32)
        transforms = np.zeros((n, 4, 4), dtype=np.float32)
        inverse_transforms = np.zeros((n, 4, 4), dtype=np.float32)
        inverse_transposes = np.zeros((n, 4, 4), dtype=np.float32)
        object_materials = np.zeros(n, dtype=np.int32)
        tri_start = np.zeros(n, dtype=np.int32)
        tri_end = np.zeros(n, dtype=np.int32)

        triangle_blocks = []
        vertex_blocks = []
        triangle_count = 0
        vertex_count = 0
        prim_objects = []
        prim_offsets = []
        prim_boxes = []

        for obj_idx, obj in enumerate(self.objects):
            object_types[obj_idx] = int(obj.geometry_type)
            transforms[obj_idx] = obj.transform
            inverse_transforms[obj_idx] = obj.inverse_transform
            inverse_transposes[obj_idx] = obj.inverse_transpose
            object_materials[obj_idx] = obj.material_id

            if obj.geometry_type == GeometryType.MESH:
                tri_start[obj_idx] = triangle_count
                triangle_blocks.append(obj.indices + vertex_count)
                vertex_blocks.append(obj.vertices)
                triangle_count += len(obj.indices)
                vertex_count += len(obj.vertices)
                tri_end[obj_idx] = triangle_count
                for k in range(obj.primitive_count()):
                    prim_objects.append(obj_idx)
                    prim_offsets.append(k)
                    prim_boxes.append(obj.primitive_bounds(k))
            else:
                prim_objects.append(obj_idx)
                prim_offsets.append(-1)
                prim_boxes.append(obj.primitive_bounds(0))

        if triangle_blocks:
            triangles = np.ascontiguousarray(np.vstack(triangle_blocks), dtype=np.int32)
            vertices = np.ascontiguousarray(np.vstack(vertex_blocks), dtype=np.float32)
        else:
            triangles = np.zeros((0, 3), dtype=np.int32)
            vertices = np.zeros((0, 3), dtype=np.float32)

        prim_objects = np.array(prim_objects, dtype=np.int32)
        prim_offsets = np.array(prim_offsets, dtype=np.int32)

        bvh = None
        if build_accelerator:
            bvh = build_bvh(prim_boxes, max_leaf_size)
            prim_objects = np.ascontiguousarray(prim_objects[bvh.order])
            prim_offsets = np.ascontiguousarray(prim_offsets[bvh.order])
            logger.info("BVH built: %d nodes over %d primitives", bvh.num_nodes, len(prim_boxes))

        logger.info("Compiled world: %d objects, %d triangles, %d materials",
                    n, triangle_count, len(self.materials))

        return SceneData(camera, max_depth,
                         object_types, transforms, inverse_transforms, inverse_transposes,
                         object_materials, tri_start, tri_end,
                         triangles, vertices, prim_objects, prim_offsets, bvh,
                         *self.compile_materials())
