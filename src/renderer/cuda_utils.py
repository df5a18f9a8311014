# renderer/cuda_utils.py

from numba import cuda, float32, int64
import math

INFINITY = 1e20
EPSILON = 1e-8

UINT32_MASK = 0xFFFFFFFF

# -------------------------------------------------------------------------
# Vector helpers on 3-element arrays
@cuda.jit(device=True)
def normalize_inplace(v):
    """Normalize a vector on the GPU in-place."""
    length_sq = v[0] * v[0] + v[1] * v[1] + v[2] * v[2]
    if length_sq > 0.0:
        length = math.sqrt(length_sq)
        v[0] /= length
        v[1] /= length
        v[2] /= length

@cuda.jit(device=True)
def dot(v1, v2):
    """Compute dot product on the GPU."""
    return v1[0]*v2[0] + v1[1]*v2[1] + v1[2]*v2[2]

@cuda.jit(device=True)
def cross_inplace(out, v1, v2):
    """Compute cross product on the GPU, storing result in out."""
    temp0 = v1[1] * v2[2] - v1[2] * v2[1]
    temp1 = v1[2] * v2[0] - v1[0] * v2[2]
    temp2 = v1[0] * v2[1] - v1[1] * v2[0]
    out[0] = temp0
    out[1] = temp1
    out[2] = temp2

@cuda.jit(device=True)
def has_nan(v):
    return math.isnan(v[0]) or math.isnan(v[1]) or math.isnan(v[2])

@cuda.jit(device=True)
def transform_point(m, p, out):
    """out = (m @ [p, 1]).xyz for a 4x4 affine matrix."""
    for i in range(3):
        out[i] = m[i, 0] * p[0] + m[i, 1] * p[1] + m[i, 2] * p[2] + m[i, 3]

@cuda.jit(device=True)
def transform_direction(m, v, out):
    """out = (m @ [v, 0]).xyz"""
    for i in range(3):
        out[i] = m[i, 0] * v[0] + m[i, 1] * v[1] + m[i, 2] * v[2]

# -------------------------------------------------------------------------
# Shading frame
@cuda.jit(device=True)
def build_onb(normal, tangent, bitangent):
    """
    Build an orthonormal basis (tangent, bitangent, normal) around a unit normal.
    """
    if abs(normal[0]) > 0.1:
        tangent[0] = normal[1]
        tangent[1] = -normal[0]
        tangent[2] = 0.0
    else:
        tangent[0] = 0.0
        tangent[1] = normal[2]
        tangent[2] = -normal[1]
    normalize_inplace(tangent)
    cross_inplace(bitangent, normal, tangent)

@cuda.jit(device=True)
def to_local(v, tangent, bitangent, normal, out):
    x = dot(v, tangent)
    y = dot(v, bitangent)
    z = dot(v, normal)
    out[0] = x
    out[1] = y
    out[2] = z

@cuda.jit(device=True)
def to_world(v, tangent, bitangent, normal, out):
    for i in range(3):
        out[i] = v[0] * tangent[i] + v[1] * bitangent[i] + v[2] * normal[i]

# -------------------------------------------------------------------------
# Reproducible random numbers.
# A 32-bit integer hash turns (iteration, pixel, depth) into a seed for a
# linear congruential generator. State lives in an int64 local array and is
# always masked back to 32 bits.
@cuda.jit(device=True)
def hash_u32(a):
    a = int64(a) & UINT32_MASK
    a = ((a + 0x7ed55d16) + (a << 12)) & UINT32_MASK
    a = ((a ^ 0xc761c23c) ^ (a >> 19)) & UINT32_MASK
    a = ((a + 0x165667b1) + (a << 5)) & UINT32_MASK
    a = ((a + 0xd3a2646c) ^ (a << 9)) & UINT32_MASK
    a = ((a + 0xfd7046c5) + (a << 3)) & UINT32_MASK
    a = ((a ^ 0xb55a4f09) ^ (a >> 16)) & UINT32_MASK
    return a

@cuda.jit(device=True)
def seed_rng(state, iteration, index, depth):
    h = hash_u32((1 << 31) | ((depth & 0x1FF) << 22) | (iteration & 0x3FFFFF)) ^ hash_u32(index)
    state[0] = h & UINT32_MASK

@cuda.jit(device=True)
def rand_uniform(state):
    """Uniform float in [0, 1); advances the generator."""
    s = (state[0] * 1664525 + 1013904223) & UINT32_MASK
    state[0] = s
    return float32(s >> 8) * float32(1.0 / 16777216.0)
