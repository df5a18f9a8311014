# renderer/buffers.py
import numpy as np
from numba import cuda

class PathBuffer:
    """
    Struct-of-arrays storage for path segments and their intersection
    records, all sized to the frame's pixel count.

    Path segment: ray origin/direction, throughput, owning pixel and the
    per-path remaining-bounce counter.
    Intersection: t (-1 when there is no hit), material id, hit point,
    shading normal and the material type cached for sorting.
    """
    def __init__(self, capacity: int):
        self.capacity = capacity
        self.origin = cuda.device_array((capacity, 3), dtype=np.float32)
        self.direction = cuda.device_array((capacity, 3), dtype=np.float32)
        self.throughput = cuda.device_array((capacity, 3), dtype=np.float32)
        self.pixel_index = cuda.device_array(capacity, dtype=np.int32)
        self.remaining_bounces = cuda.device_array(capacity, dtype=np.int32)

        self.isect_t = cuda.device_array(capacity, dtype=np.float32)
        self.isect_material = cuda.device_array(capacity, dtype=np.int32)
        self.isect_point = cuda.device_array((capacity, 3), dtype=np.float32)
        self.isect_normal = cuda.device_array((capacity, 3), dtype=np.float32)
        self.isect_material_type = cuda.device_array(capacity, dtype=np.int32)

    def path_arrays(self):
        return (self.origin, self.direction, self.throughput, self.pixel_index, self.remaining_bounces)

    def intersection_arrays(self):
        return (self.isect_t, self.isect_material, self.isect_point, self.isect_normal,
                self.isect_material_type)

    def arrays(self):
        return self.path_arrays() + self.intersection_arrays()

    def to_host(self, n: int) -> dict:
        """Copy the first n entries of every field to the host (for inspection and tests)."""
        names = ("origin", "direction", "throughput", "pixel_index", "remaining_bounces",
                 "isect_t", "isect_material", "isect_point", "isect_normal", "isect_material_type")
        return {name: array.copy_to_host()[:n] for name, array in zip(names, self.arrays())}

class PathBufferPair:
    """
    Two PathBuffers used ping-pong style: a stage reads `current`, the
    compactor writes `spare`, then swap() makes the compacted one current.
    """
    def __init__(self, capacity: int):
        self.buffers = (PathBuffer(capacity), PathBuffer(capacity))
        self.current_index = 0

    @property
    def current(self) -> PathBuffer:
        return self.buffers[self.current_index]

    @property
    def spare(self) -> PathBuffer:
        return self.buffers[1 - self.current_index]

    def swap(self):
        self.current_index = 1 - self.current_index

    def reset(self):
        self.current_index = 0
