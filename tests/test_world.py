# tests/test_world.py
"""Host-side scene description, transforms and BVH construction."""
import math
import numpy as np
import pytest
from core.aabb import AABB
from core.utils import build_transform, transform_points
from core.vector import Vector3
from camera.camera import Camera
from geometry import (Box, GeometryType, Sphere, TriangleMesh, World, build_bvh, quad,
                      validate_bvh)
from materials.dielectric import Dielectric
from materials.diffuse_light import DiffuseLight
from materials.lambertian import Lambertian
from materials.material import Material, MaterialType
from materials.microfacet_metal import MicrofacetMetal

def random_boxes(count, seed):
    rng = np.random.default_rng(seed)
    boxes = []
    for _ in range(count):
        lo = rng.uniform(-10, 10, size=3)
        boxes.append(AABB(lo, lo + rng.uniform(0.1, 2.0, size=3)))
    return boxes

class TestBVHBuilder:
    @pytest.mark.parametrize("count,leaf", [(1, 2), (2, 1), (7, 2), (33, 4), (100, 1)])
    def test_structure_is_valid(self, count, leaf):
        boxes = random_boxes(count, seed=count)
        bvh = build_bvh(boxes, max_leaf_size=leaf)
        validate_bvh(bvh, count)
        assert sorted(bvh.order.tolist()) == list(range(count))
        is_leaf = bvh.left == -1
        assert np.all(bvh.prim_end[is_leaf] - bvh.prim_start[is_leaf] <= leaf)

    def test_parents_enclose_children_and_leaves_enclose_primitives(self):
        boxes = random_boxes(40, seed=9)
        bvh = build_bvh(boxes, max_leaf_size=2)
        for i in range(bvh.num_nodes):
            node = AABB(bvh.bbox_min[i], bvh.bbox_max[i])
            if bvh.left[i] == -1:
                for slot in range(bvh.prim_start[i], bvh.prim_end[i]):
                    assert node.contains(boxes[bvh.order[slot]])
            else:
                for child in (bvh.left[i], bvh.right[i]):
                    assert node.contains(AABB(bvh.bbox_min[child], bvh.bbox_max[child]))
                    assert bvh.parent[child] == i

    def test_single_primitive_is_a_root_leaf(self):
        bvh = build_bvh(random_boxes(1, seed=0))
        assert bvh.num_nodes == 1
        assert bvh.left[0] == -1 and bvh.parent[0] == -1

    def test_rejects_empty_input(self):
        with pytest.raises(ValueError):
            build_bvh([])

    def test_validate_catches_broken_links(self):
        bvh = build_bvh(random_boxes(8, seed=2))
        bvh.parent[bvh.left[0]] = 5
        with pytest.raises(ValueError):
            validate_bvh(bvh, 8)

class TestTransforms:
    def test_inverse_and_normals(self):
        m, inv, inv_t = build_transform((1, 2, 3), (10, 20, 30), (2, 3, 4))
        np.testing.assert_allclose(m @ inv, np.identity(4), atol=1e-5)
        np.testing.assert_allclose(inv_t, inv.T)

    def test_rotation_order_is_x_then_y_then_z(self):
        m, _, _ = build_transform(rotation=(90, 90, 0))
        # x rotation leaves the x axis alone, then y sends it to -z
        np.testing.assert_allclose(transform_points(m, [1, 0, 0])[0], [0, 0, -1], atol=1e-6)

    def test_zero_scale_is_rejected(self):
        with pytest.raises(ValueError):
            build_transform(scale=(1, 0, 1))

class TestWorld:
    def test_compile_flattens_objects_and_primitives(self, camera_factory):
        world = World()
        white = world.add_material(Lambertian(Vector3(0.7, 0.7, 0.7)))
        light = world.add_material(DiffuseLight(Vector3(1, 1, 1), 5.0))
        world.add(Sphere(Vector3(0, 0, 0), 1.0, white))
        vertices, indices = quad((0, 2, 0), (1, 0, 0), (0, 0, 1))
        world.add(TriangleMesh(vertices, indices, light))
        world.add(TriangleMesh(vertices, indices, light, translation=(3, 0, 0)))
        scene = world.compile(camera_factory(), max_depth=5)

        assert scene.num_objects == 3
        assert scene.num_triangles == 4
        assert scene.num_pixels == 64
        assert scene.max_depth == 5
        np.testing.assert_array_equal(scene.object_types,
                                      [GeometryType.SPHERE, GeometryType.MESH, GeometryType.MESH])
        np.testing.assert_array_equal(scene.object_tri_start[1:], [0, 2])
        np.testing.assert_array_equal(scene.object_tri_end[1:], [2, 4])
        # Indices of the second mesh point at its own vertices
        assert scene.triangles[2:].min() == 4
        np.testing.assert_array_equal(scene.material_types, [MaterialType.DIFFUSE, MaterialType.EMITTING])
        np.testing.assert_allclose(scene.material_emittance, [0.0, 5.0])

        # Primitive table in BVH order: one sphere (offset -1) and four triangles
        pairs = sorted(zip(scene.prim_objects.tolist(), scene.prim_offsets.tolist()))
        assert pairs == [(0, -1), (1, 0), (1, 1), (2, 0), (2, 1)]
        validate_bvh(scene.bvh, 5)

    def test_sphere_bounds_follow_the_transform(self):
        bounds = Sphere(Vector3(1, 2, 3), 0.5, 0).primitive_bounds(0)
        np.testing.assert_allclose(bounds.minimum, [0.5, 1.5, 2.5])
        np.testing.assert_allclose(bounds.maximum, [1.5, 2.5, 3.5])

    def test_mesh_bounds_are_per_triangle(self):
        vertices, indices = quad((0, 0, 0), (2, 0, 0), (0, 2, 0))
        mesh = TriangleMesh(vertices, indices, 0, translation=(0, 0, 1))
        first = mesh.primitive_bounds(0)
        np.testing.assert_allclose(first.minimum, [0, 0, 1])
        np.testing.assert_allclose(first.maximum, [2, 2, 1])

    def test_material_parameters(self):
        world = World()
        world.add_material(MicrofacetMetal(Vector3(0.9, 0.9, 0.9), roughness=1.7))
        world.add_material(Dielectric(1.33))
        types, colors, emittance, roughness, ior = world.compile_materials()
        np.testing.assert_array_equal(types, [MaterialType.MICROFACET, MaterialType.SPECULAR])
        np.testing.assert_allclose(roughness, [1.0, 0.0])
        np.testing.assert_allclose(ior, [1.0, 1.33], rtol=1e-6)

    def test_invalid_input(self, camera_factory):
        world = World()
        with pytest.raises(ValueError):
            world.compile(camera_factory(), max_depth=3)
        with pytest.raises(ValueError):
            world.add(Sphere(Vector3(0, 0, 0), 1.0, 0))
        with pytest.raises(ValueError):
            world.add_material(Material(Vector3(1, 1, 1)))
        mat = world.add_material(Lambertian(Vector3(1, 1, 1)))
        world.add(Box(Vector3(0, 0, 0), Vector3(1, 1, 1), mat))
        with pytest.raises(ValueError):
            world.compile(camera_factory(), max_depth=0)
        with pytest.raises(ValueError):
            Sphere(Vector3(0, 0, 0), -1.0, mat)
        with pytest.raises(ValueError):
            TriangleMesh(np.zeros((3, 3)), [[0, 1, 3]], mat)
        with pytest.raises(ValueError):
            DiffuseLight(Vector3(1, 1, 1), emittance=-1.0)

class TestCamera:
    def test_basis_is_orthonormal(self):
        camera = Camera(Vector3(0, 0, 0), yaw=0.3, pitch=-0.2, fov=math.radians(60), width=16, height=9)
        f, r, u = (v.to_array() for v in (camera.forward, camera.right, camera.up))
        for v in (f, r, u):
            assert np.linalg.norm(v) == pytest.approx(1.0, abs=1e-5)
        assert abs(f @ r) < 1e-5 and abs(f @ u) < 1e-5 and abs(r @ u) < 1e-5

    def test_look_at_points_at_target(self):
        camera = Camera.look_at(Vector3(1, 2, 3), Vector3(4, 0, -1), math.radians(45), 8, 8)
        expected = np.array([3, -2, -4], dtype=np.float32)
        np.testing.assert_allclose(camera.forward.to_array(), expected / np.linalg.norm(expected), atol=1e-5)

    def test_pixel_length_spans_the_field_of_view(self):
        camera = Camera(Vector3(0, 0, 0), 0.0, 0.0, math.radians(90), 20, 10)
        assert camera.pixel_length[1] * 10 == pytest.approx(2.0)
        assert camera.pixel_length[0] * 20 == pytest.approx(4.0)

    def test_bad_resolution(self):
        with pytest.raises(ValueError):
            Camera(Vector3(0, 0, 0), 0.0, 0.0, 1.0, 0, 10)

def test_device_tags_match_host_enums():
    from renderer import cuda_bsdf, cuda_geometry
    assert (cuda_geometry.GEOM_SPHERE, cuda_geometry.GEOM_BOX, cuda_geometry.GEOM_MESH) == \
        (GeometryType.SPHERE, GeometryType.BOX, GeometryType.MESH)
    assert (cuda_bsdf.MAT_DIFFUSE, cuda_bsdf.MAT_EMITTING, cuda_bsdf.MAT_SPECULAR, cuda_bsdf.MAT_MICROFACET) == \
        (MaterialType.DIFFUSE, MaterialType.EMITTING, MaterialType.SPECULAR, MaterialType.MICROFACET)
