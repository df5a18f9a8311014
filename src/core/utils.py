# core/utils.py
import math
import numpy as np

def translation_matrix(t) -> np.ndarray:
    m = np.identity(4, dtype=np.float64)
    m[0:3, 3] = t
    return m

def scale_matrix(s) -> np.ndarray:
    return np.diag([s[0], s[1], s[2], 1.0])

def rotation_matrix(degrees) -> np.ndarray:
    """
    Rotation about X, then Y, then Z (angles in degrees).
    """
    rx, ry, rz = (math.radians(a) for a in degrees)
    cx, sx = math.cos(rx), math.sin(rx)
    cy, sy = math.cos(ry), math.sin(ry)
    cz, sz = math.cos(rz), math.sin(rz)
    mx = np.array([[1, 0, 0, 0], [0, cx, -sx, 0], [0, sx, cx, 0], [0, 0, 0, 1]], dtype=np.float64)
    my = np.array([[cy, 0, sy, 0], [0, 1, 0, 0], [-sy, 0, cy, 0], [0, 0, 0, 1]], dtype=np.float64)
    mz = np.array([[cz, -sz, 0, 0], [sz, cz, 0, 0], [0, 0, 1, 0], [0, 0, 0, 1]], dtype=np.float64)
    return mz @ my @ mx

def build_transform(translation=(0.0, 0.0, 0.0), rotation=(0.0, 0.0, 0.0), scale=(1.0, 1.0, 1.0)):
    """
    Returns (transform, inverse, inverse_transpose) as float32 4x4 arrays.
    """
    if np.any(np.asarray(scale, dtype=np.float64) == 0.0):
        raise ValueError(f"Degenerate scale {tuple(scale)}")
    m = translation_matrix(translation) @ rotation_matrix(rotation) @ scale_matrix(scale)
    inv = np.linalg.inv(m)
    return m.astype(np.float32), inv.astype(np.float32), inv.T.astype(np.float32)

def transform_points(m, points) -> np.ndarray:
    points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    homogeneous = np.hstack([points, np.ones((points.shape[0], 1))])
    return (homogeneous @ np.asarray(m, dtype=np.float64).T)[:, :3]
