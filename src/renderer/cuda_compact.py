# renderer/cuda_compact.py
"""
Stream compaction of the active path set.

Each surviving path's output slot is the exclusive prefix sum of the
validity flags. The scan runs per block in shared memory; block totals are
scanned recursively and added back. Survivors are then scattered into the
spare buffer and the pair is swapped.
"""
import math
import numpy as np
from numba import cuda, int32

SCAN_BLOCK = 128

@cuda.jit
def block_scan_kernel(values, out, block_sums, n):
    """Exclusive scan inside each block (Hillis-Steele in shared memory)."""
    temp = cuda.shared.array(shape=SCAN_BLOCK, dtype=int32)
    tid = cuda.threadIdx.x
    gid = cuda.grid(1)

    v = 0
    if gid < n:
        v = values[gid]
    temp[tid] = v
    cuda.syncthreads()

    offset = 1
    while offset < SCAN_BLOCK:
        add = 0
        if tid >= offset:
            add = temp[tid - offset]
        cuda.syncthreads()
        temp[tid] += add
        cuda.syncthreads()
        offset *= 2

    if gid < n:
        out[gid] = temp[tid] - v
    if tid == SCAN_BLOCK - 1:
        block_sums[cuda.blockIdx.x] = temp[tid]

@cuda.jit
def add_block_offsets_kernel(out, block_offsets, n):
    gid = cuda.grid(1)
    if gid < n:
        out[gid] += block_offsets[cuda.blockIdx.x]

def allocate_scan_scratch(capacity: int):
    """
    Block-sum and block-offset arrays for every recursion level of a scan
    over at most capacity values.
    """
    levels = []
    blocks = math.ceil(capacity / SCAN_BLOCK)
    while True:
        levels.append((cuda.device_array(blocks, dtype=np.int32),
                       cuda.device_array(blocks, dtype=np.int32)))
        if blocks <= 1:
            return levels
        blocks = math.ceil(blocks / SCAN_BLOCK)

def exclusive_scan(d_values, d_out, n, scratch=None, level=0):
    """
    Exclusive prefix sum of the first n entries of d_values into d_out.
    scratch comes from allocate_scan_scratch; without it one is allocated.
    """
    if scratch is None:
        scratch = allocate_scan_scratch(n)
    blocks = math.ceil(n / SCAN_BLOCK)
    d_sums, d_offsets = scratch[level]
    block_scan_kernel[blocks, SCAN_BLOCK](d_values, d_out, d_sums, n)
    if blocks > 1:
        exclusive_scan(d_sums, d_offsets, blocks, scratch, level + 1)
        add_block_offsets_kernel[blocks, SCAN_BLOCK](d_out, d_offsets, n)

@cuda.jit
def type_flags_kernel(n, material_types, material_type, flags):
    idx = cuda.grid(1)
    if idx < n:
        flags[idx] = 1 if material_types[idx] == material_type else 0

@cuda.jit
def scatter_paths_kernel(n, flags, slots, base,
                         src_origin, src_dir, src_throughput, src_pixel, src_bounces,
                         src_t, src_material, src_point, src_normal, src_material_type,
                         dst_origin, dst_dir, dst_throughput, dst_pixel, dst_bounces,
                         dst_t, dst_material, dst_point, dst_normal, dst_material_type):
    """Copy every flagged path (and its intersection record) to base + slot."""
    idx = cuda.grid(1)
    if idx >= n or flags[idx] == 0:
        return
    j = base + slots[idx]
    for i in range(3):
        dst_origin[j, i] = src_origin[idx, i]
        dst_dir[j, i] = src_dir[idx, i]
        dst_throughput[j, i] = src_throughput[idx, i]
        dst_point[j, i] = src_point[idx, i]
        dst_normal[j, i] = src_normal[idx, i]
    dst_pixel[j] = src_pixel[idx]
    dst_bounces[j] = src_bounces[idx]
    dst_t[j] = src_t[idx]
    dst_material[j] = src_material[idx]
    dst_material_type[j] = src_material_type[idx]

class Compactor:
    """
    Owns the scan scratch arrays (sized to the frame's pixel count) and
    shrinks the active set held in a PathBufferPair.
    """
    def __init__(self, capacity: int, num_material_types: int, threads_per_block: int = 128):
        self.capacity = capacity
        self.num_material_types = num_material_types
        self.threads_per_block = threads_per_block
        self.d_slots = cuda.device_array(capacity, dtype=np.int32)
        self.d_type_flags = cuda.device_array(capacity, dtype=np.int32)
        self.scan_scratch = allocate_scan_scratch(capacity)

    def blocks(self, n: int) -> int:
        return math.ceil(n / self.threads_per_block)

    def count(self, d_flags, d_slots, n: int) -> int:
        return int(d_slots[n - 1]) + int(d_flags[n - 1])

    def scatter(self, n, d_flags, d_slots, base, src, dst):
        scatter_paths_kernel[self.blocks(n), self.threads_per_block](
            n, d_flags, d_slots, base, *src.arrays(), *dst.arrays())

    def compact(self, paths, d_flags, n: int, sort_by_material: bool = False) -> int:
        """
        Drop the paths whose flag is 0, swap buffers and return the new active
        count. With sort_by_material the survivors are additionally grouped by
        material type (stable within each type).
        """
        if n <= 0:
            return 0
        exclusive_scan(d_flags, self.d_slots, n, self.scan_scratch)
        active = self.count(d_flags, self.d_slots, n)
        self.scatter(n, d_flags, self.d_slots, 0, paths.current, paths.spare)
        paths.swap()

        if sort_by_material and active > 1:
            self.sort_by_material(paths, active)
        return active

    def sort_by_material(self, paths, n: int):
        """One counting pass per material type; all n paths are valid."""
        base = 0
        src = paths.current
        for material_type in range(self.num_material_types):
            type_flags_kernel[self.blocks(n), self.threads_per_block](
                n, src.isect_material_type, material_type, self.d_type_flags)
            exclusive_scan(self.d_type_flags, self.d_slots, n, self.scan_scratch)
            group = self.count(self.d_type_flags, self.d_slots, n)
            if group > 0:
                self.scatter(n, self.d_type_flags, self.d_slots, base, src, paths.spare)
            base += group
        paths.swap()
