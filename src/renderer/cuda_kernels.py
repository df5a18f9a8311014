# renderer/cuda_kernels.py

from numba import cuda, float32, int64
import math
from .cuda_utils import (dot, normalize_inplace, has_nan, build_onb, to_local, to_world,
                         seed_rng, rand_uniform)
from .cuda_bsdf import MAT_EMITTING, MAT_SPECULAR, bsdf_sample

# Offset applied along the normal to new ray origins
RAY_EPSILON = 1e-3

SENTINEL_COLOR = (255, 0, 255)

@cuda.jit
def generate_paths_kernel(width, height, cam_position, cam_view, cam_right, cam_up,
                          pixel_length, iteration, max_depth, jitter,
                          ray_origins, ray_dirs, throughput, pixel_index, remaining_bounces,
                          isect_t):
    """
    One thread per pixel: a camera ray through the pixel centre, optionally
    jittered inside the pixel footprint with the (pixel, iteration, depth 0)
    random stream. Throughput starts white.
    """
    x, y = cuda.grid(2)
    if x >= width or y >= height:
        return

    idx = x + y * width
    jx = 0.0
    jy = 0.0
    if jitter:
        state = cuda.local.array(1, dtype=int64)
        seed_rng(state, iteration, idx, 0)
        jx = rand_uniform(state) - 0.5
        jy = rand_uniform(state) - 0.5

    sx = pixel_length[0] * (float32(x) - float32(width) * 0.5 + 0.5 + jx)
    sy = pixel_length[1] * (float32(y) - float32(height) * 0.5 + 0.5 + jy)

    direction = ray_dirs[idx]
    for i in range(3):
        ray_origins[idx, i] = cam_position[i]
        direction[i] = cam_view[i] + cam_right[i] * sx - cam_up[i] * sy
        throughput[idx, i] = 1.0
    normalize_inplace(direction)

    pixel_index[idx] = idx
    remaining_bounces[idx] = max_depth
    isect_t[idx] = -1.0

@cuda.jit
def scatter_kernel(num_paths, iteration, depth,
                   ray_origins, ray_dirs, throughput, pixel_index, remaining_bounces,
                   isect_t, isect_material, isect_point, isect_normal, isect_material_type,
                   material_types, material_colors, material_emittance,
                   material_roughness, material_ior,
                   image, flags):
    """
    Shade every active path at its hit point.

    Emitters end the path and add throughput * color * emittance to the
    image. Other materials sample a new direction in the local frame of the
    hit normal, weight the throughput by f * |cos| / pdf and move the ray
    origin off the surface to the side the new direction leaves on.
    """
    idx = cuda.grid(1)
    if idx >= num_paths:
        return

    mat = isect_material[idx]
    mat_type = material_types[mat]
    color = material_colors[mat]
    beta = throughput[idx]

    if mat_type == MAT_EMITTING:
        emittance = material_emittance[mat]
        for i in range(3):
            beta[i] = beta[i] * color[i] * emittance
        if not has_nan(beta):
            pixel = pixel_index[idx]
            for i in range(3):
                cuda.atomic.add(image, (pixel, i), beta[i])
        flags[idx] = 0
        return

    state = cuda.local.array(1, dtype=int64)
    seed_rng(state, iteration, pixel_index[idx], depth)

    normal = cuda.local.array(3, dtype=float32)
    tangent = cuda.local.array(3, dtype=float32)
    bitangent = cuda.local.array(3, dtype=float32)
    wo = cuda.local.array(3, dtype=float32)
    wo_local = cuda.local.array(3, dtype=float32)
    wi_local = cuda.local.array(3, dtype=float32)
    f = cuda.local.array(3, dtype=float32)

    direction = ray_dirs[idx]
    for i in range(3):
        normal[i] = isect_normal[idx, i]
        wo[i] = -direction[i]

    # Dielectrics need the true outward normal to tell entering from exiting;
    # the reflective lobes work on the side the path arrived from.
    if mat_type != MAT_SPECULAR and dot(wo, normal) < 0.0:
        for i in range(3):
            normal[i] = -normal[i]

    build_onb(normal, tangent, bitangent)
    to_local(wo, tangent, bitangent, normal, wo_local)

    pdf = bsdf_sample(mat_type, wo_local, color, material_roughness[mat], material_ior[mat],
                      state, wi_local, f)
    remaining_bounces[idx] -= 1
    if pdf <= 0.0:
        flags[idx] = 0
        return

    cos_wi = abs(wi_local[2])
    for i in range(3):
        beta[i] = beta[i] * f[i] * cos_wi / pdf

    to_world(wi_local, tangent, bitangent, normal, direction)
    normalize_inplace(direction)

    side = RAY_EPSILON
    if dot(direction, normal) < 0.0:
        side = -RAY_EPSILON
    for i in range(3):
        ray_origins[idx, i] = isect_point[idx, i] + normal[i] * side
    flags[idx] = 1

@cuda.jit
def accumulate_kernel(num_paths, throughput, pixel_index, image):
    """Fold the throughput of paths still alive after the last bounce into the image."""
    idx = cuda.grid(1)
    if idx >= num_paths:
        return
    beta = throughput[idx]
    if has_nan(beta):
        return
    pixel = pixel_index[idx]
    for i in range(3):
        cuda.atomic.add(image, (pixel, i), beta[i])

@cuda.jit
def display_kernel(width, height, image, iterations, out_pixels):
    """
    Average the accumulated radiance and map it to 8 bits per channel.
    Pixels holding NaN or inf are painted with the sentinel colour.
    """
    x, y = cuda.grid(2)
    if x >= width or y >= height:
        return
    idx = x + y * width
    invalid = False
    for i in range(3):
        v = image[idx, i]
        if math.isnan(v) or math.isinf(v):
            invalid = True
    if invalid:
        out_pixels[x, y, 0] = SENTINEL_COLOR[0]
        out_pixels[x, y, 1] = SENTINEL_COLOR[1]
        out_pixels[x, y, 2] = SENTINEL_COLOR[2]
        return
    for i in range(3):
        v = min(255.0, max(0.0, image[idx, i] / iterations * 255.0))
        out_pixels[x, y, i] = int(v)
