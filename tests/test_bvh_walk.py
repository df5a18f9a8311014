# tests/test_bvh_walk.py
"""Visit order of the stackless three-state BVH walk on a hand-built tree."""
import numpy as np
import pytest
from core.vector import Vector3
from geometry.bvh import FlatBVH, validate_bvh
from geometry.sphere import Sphere
from geometry.world import World
from materials.lambertian import Lambertian
from renderer.raytracer import PathTracer

LOG = 10

def five_node_tree():
    """
    Root 0 with a leaf (1) on the -x side and an inner node (2) on the +x
    side whose leaves are 3 (near) and 4 (far). Boxes straddle the x axis.
    """
    bbox_min = np.array([[-4, -1, -1], [-4, -1, -1], [1, -1, -1], [1, -1, -1], [3, -1, -1]], dtype=np.float32)
    bbox_max = np.array([[4, 1, 1], [-1, 1, 1], [4, 1, 1], [2, 1, 1], [4, 1, 1]], dtype=np.float32)
    left = np.array([1, -1, 3, -1, -1], dtype=np.int32)
    right = np.array([2, -1, 4, -1, -1], dtype=np.int32)
    parent = np.array([-1, 0, 0, 2, 2], dtype=np.int32)
    prim_start = np.array([0, 0, 0, 1, 2], dtype=np.int32)
    prim_end = np.array([0, 1, 0, 2, 3], dtype=np.int32)
    order = np.arange(3, dtype=np.int32)
    return FlatBVH(bbox_min, bbox_max, left, right, parent, prim_start, prim_end, order)

def tracer_for(centers, camera_factory, small_settings):
    world = World()
    grey = world.add_material(Lambertian(Vector3(0.5, 0.5, 0.5)))
    for c in centers:
        world.add(Sphere(c, 0.3, grey))
    scene = world.compile(camera_factory(), max_depth=2, build_accelerator=False)
    scene.bvh = five_node_tree()
    scene.prim_objects = np.arange(3, dtype=np.int32)
    scene.prim_offsets = -np.ones(3, dtype=np.int32)
    tracer = PathTracer(dict(small_settings, use_bvh=True))
    tracer.initialize(scene)
    return tracer

# Spheres far above the boxes: only the node boxes are crossed, never a primitive
OFF_PATH = [Vector3(-2.5, 10, 0), Vector3(1.5, 12, 0), Vector3(3.5, 14, 0)]

def walk(tracer, origin, direction):
    result = tracer.trace_rays([origin], [direction], log_length=LOG)
    log = result["visit_log"][0]
    return [int(v) for v in log if v >= 0], result

def test_hand_tree_is_valid():
    validate_bvh(five_node_tree(), 3)

def test_walk_along_positive_x(camera_factory, small_settings):
    tracer = tracer_for(OFF_PATH, camera_factory, small_settings)
    order, result = walk(tracer, (-10, 0, 0), (1, 0, 0))
    assert order == [1, 2, 3, 4, 2, 0]
    assert result["flags"][0] == 0
    assert result["isect_t"][0] == -1.0

def test_walk_along_negative_x_visits_near_side_first(camera_factory, small_settings):
    tracer = tracer_for(OFF_PATH, camera_factory, small_settings)
    order, _ = walk(tracer, (10, 0, 0), (-1, 0, 0))
    assert order == [2, 4, 3, 2, 1, 0]

def test_walk_when_every_box_is_missed(camera_factory, small_settings):
    tracer = tracer_for(OFF_PATH, camera_factory, small_settings)
    order, result = walk(tracer, (-10, 5, 0), (1, 0, 0))
    assert order == [1, 2, 0]
    assert result["flags"][0] == 0

def test_walk_reports_nearest_primitive(camera_factory, small_settings):
    # Second sphere now sits on the ray inside leaf 3
    centers = [OFF_PATH[0], Vector3(1.5, 0, 0), OFF_PATH[2]]
    tracer = tracer_for(centers, camera_factory, small_settings)
    order, result = walk(tracer, (-10, 0, 0), (1, 0, 0))
    assert order == [1, 2, 3, 4, 2, 0]
    assert result["flags"][0] == 1
    assert result["isect_t"][0] == pytest.approx(11.2, abs=1e-3)
    np.testing.assert_allclose(result["isect_normal"][0], [-1, 0, 0], atol=1e-4)
