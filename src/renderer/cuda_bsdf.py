# renderer/cuda_bsdf.py
"""
BSDF samplers. Everything works in the local shading frame where the
normal is +z. Each sampler receives wo (pointing away from the surface,
towards where the path came from), writes the sampled wi and the BSDF value
f, and returns the pdf of that sample. A pdf <= 0 means the sample is
unusable and the path ends.
"""

from numba import cuda, float32
import math
from .cuda_utils import rand_uniform, normalize_inplace

MAT_DIFFUSE = 0
MAT_EMITTING = 1
MAT_SPECULAR = 2
MAT_MICROFACET = 3

MIN_COS = 1e-6
MIN_ALPHA = 1e-3

@cuda.jit(device=True)
def sample_diffuse(wo, color, state, out_wi, out_f):
    """Cosine-weighted hemisphere sample of a Lambertian surface."""
    u1 = rand_uniform(state)
    u2 = rand_uniform(state)
    r = math.sqrt(u1)
    theta = 2.0 * math.pi * u2
    out_wi[0] = r * math.cos(theta)
    out_wi[1] = r * math.sin(theta)
    out_wi[2] = math.sqrt(max(0.0, 1.0 - u1))

    # The PDF for cosine-weighted hemisphere is: pdf = cos(theta)/pi.
    pdf = out_wi[2] / math.pi
    for i in range(3):
        out_f[i] = color[i] / math.pi
    return pdf

@cuda.jit(device=True)
def fresnel_dielectric(cos_i, cos_t, eta):
    """Unpolarized Fresnel reflectance; eta is eta_incident / eta_transmitted."""
    r_s = (eta * cos_i - cos_t) / (eta * cos_i + cos_t)
    r_p = (cos_i - eta * cos_t) / (cos_i + eta * cos_t)
    return 0.5 * (r_s * r_s + r_p * r_p)

@cuda.jit(device=True)
def sample_specular(wo, color, ior, state, out_wi, out_f):
    """
    Perfect Fresnel dielectric: reflect with probability F, refract otherwise.
    The side is taken from the sign of wo.z against the outward normal.
    """
    cos_o = wo[2]
    entering = cos_o > 0.0
    eta = 1.0 / ior if entering else ior
    side = 1.0 if entering else -1.0
    cos_i = abs(cos_o)

    sin2_t = eta * eta * max(0.0, 1.0 - cos_i * cos_i)
    cos_t = 0.0
    if sin2_t >= 1.0:
        fresnel = 1.0  # total internal reflection
    else:
        cos_t = math.sqrt(1.0 - sin2_t)
        fresnel = fresnel_dielectric(cos_i, cos_t, eta)

    if rand_uniform(state) < fresnel:
        out_wi[0] = -wo[0]
        out_wi[1] = -wo[1]
        out_wi[2] = wo[2]
        pdf = fresnel
    else:
        for i in range(2):
            out_wi[i] = -eta * wo[i]
        out_wi[2] = -eta * wo[2] + (eta * cos_i - cos_t) * side
        normalize_inplace(out_wi)
        pdf = 1.0 - fresnel

    cos_wi = abs(out_wi[2])
    if cos_wi < MIN_COS:
        return 0.0
    for i in range(3):
        out_f[i] = color[i] * pdf / cos_wi
    return pdf

@cuda.jit(device=True)
def ggx_d(cos_h, alpha2):
    denom = cos_h * cos_h * (alpha2 - 1.0) + 1.0
    return alpha2 / (math.pi * denom * denom)

@cuda.jit(device=True)
def smith_g1(cos_v, alpha2):
    return 2.0 * cos_v / (cos_v + math.sqrt(alpha2 + (1.0 - alpha2) * cos_v * cos_v))

@cuda.jit(device=True)
def sample_microfacet(wo, color, roughness, state, out_wi, out_f):
    """
    GGX (Trowbridge-Reitz) sampling of the half vector, mirrored about it.
    pdf(wi) = D(h) cos(theta_h) / (4 |wo.h|); Schlick Fresnel with F0 = color.
    """
    if wo[2] < MIN_COS:
        return 0.0
    alpha = max(roughness * roughness, MIN_ALPHA)
    alpha2 = alpha * alpha

    u1 = rand_uniform(state)
    u2 = rand_uniform(state)
    phi = 2.0 * math.pi * u2
    cos_h = math.sqrt((1.0 - u1) / (1.0 + (alpha2 - 1.0) * u1))
    sin_h = math.sqrt(max(0.0, 1.0 - cos_h * cos_h))

    h = cuda.local.array(3, dtype=float32)
    h[0] = sin_h * math.cos(phi)
    h[1] = sin_h * math.sin(phi)
    h[2] = cos_h

    wo_h = wo[0] * h[0] + wo[1] * h[1] + wo[2] * h[2]
    if wo_h <= 0.0:
        return 0.0
    for i in range(3):
        out_wi[i] = 2.0 * wo_h * h[i] - wo[i]
    if out_wi[2] < MIN_COS:
        return 0.0

    d = ggx_d(cos_h, alpha2)
    pdf = d * cos_h / (4.0 * wo_h)
    g = smith_g1(wo[2], alpha2) * smith_g1(out_wi[2], alpha2)
    schlick = math.pow(1.0 - wo_h, 5)
    for i in range(3):
        fresnel = color[i] + (1.0 - color[i]) * schlick
        out_f[i] = fresnel * d * g / (4.0 * wo[2] * out_wi[2])
    return pdf

@cuda.jit(device=True)
def bsdf_sample(mat_type, wo, color, roughness, ior, state, out_wi, out_f):
    """
    Sample the BSDF based on material type.

    Parameters:
      mat_type: 0 diffuse, 2 Fresnel specular, 3 GGX microfacet
      wo: local-frame direction towards the previous vertex
      color, roughness, ior: material parameters
      state: RNG state (see cuda_utils.seed_rng)
      out_wi, out_f: sampled local direction and BSDF value

    Returns:
      The pdf of the sample; <= 0 for unusable samples.
    """
    if mat_type == MAT_SPECULAR:
        return sample_specular(wo, color, ior, state, out_wi, out_f)
    elif mat_type == MAT_MICROFACET:
        return sample_microfacet(wo, color, roughness, state, out_wi, out_f)
    elif mat_type == MAT_DIFFUSE:
        return sample_diffuse(wo, color, state, out_wi, out_f)
    return 0.0
