# tests/conftest.py
# Kernels run on the numba CUDA simulator so the suite works without a GPU.
# The variable must be set before numba is imported anywhere.
import os
os.environ.setdefault("NUMBA_ENABLE_CUDASIM", "1")

import math
import pytest
import numpy as np
from core.vector import Vector3
from camera.camera import Camera
from geometry.world import World
from geometry.sphere import Sphere
from geometry.box import Box
from geometry.mesh import TriangleMesh, quad
from materials.lambertian import Lambertian
from materials.diffuse_light import DiffuseLight
from materials.dielectric import Dielectric
from materials.microfacet_metal import MicrofacetMetal
from config import load_settings

@pytest.fixture
def small_settings():
    """Tiny frames and small blocks keep the simulator fast."""
    return load_settings(width=8, height=8, max_depth=4, iterations=1,
                         threads_per_block=32, tile_size=(8, 8))

@pytest.fixture
def serial_settings(small_settings):
    """
    One thread per block for scenes with many objects: the simulator swaps
    the cuda module per thread and larger blocks can race on it.
    """
    return dict(small_settings, threads_per_block=1, tile_size=(1, 1))

def make_camera(width=8, height=8, position=Vector3(0, 0, 5), target=Vector3(0, 0, 0), fov_degrees=40.0):
    return Camera.look_at(position, target, math.radians(fov_degrees), width, height)

@pytest.fixture
def mixed_world():
    """Boxes, spheres and a mesh with every material family."""
    world = World()
    white = world.add_material(Lambertian(Vector3(0.7, 0.7, 0.7)))
    light = world.add_material(DiffuseLight(Vector3(1.0, 1.0, 1.0), emittance=4.0))
    glass = world.add_material(Dielectric(1.5))
    metal = world.add_material(MicrofacetMetal(Vector3(0.9, 0.8, 0.6), roughness=0.4))

    world.add(Box(Vector3(0, -1.5, 0), Vector3(6.0, 0.2, 6.0), white))
    world.add(Box(Vector3(1.0, -0.5, -1.0), Vector3(1.0, 2.0, 1.0), white, rotation=(0.0, 30.0, 0.0)))
    world.add(Sphere(Vector3(-1.0, -0.4, 0.0), 0.6, glass))
    world.add(Sphere(Vector3(0.6, 0.8, 0.5), 0.4, metal))
    vertices, indices = quad((-1.0, 2.0, -1.0), (2.0, 0.0, 0.0), (0.0, 0.0, 2.0))
    world.add(TriangleMesh(vertices, indices, light))
    return world

@pytest.fixture
def light_world():
    """A single huge emitting sphere around the camera: every ray hits the light."""
    world = World()
    light = world.add_material(DiffuseLight(Vector3(0.5, 0.25, 1.0), emittance=1.0))
    world.add(Sphere(Vector3(0, 0, 0), 50.0, light))
    return world

@pytest.fixture
def camera_factory():
    return make_camera
