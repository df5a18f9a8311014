# src/core/aabb.py
import numpy as np

class AABB:
    """Axis-aligned box over numpy float32 corners, used while building the BVH."""
    def __init__(self, minimum, maximum):
        self.minimum = np.asarray(minimum, dtype=np.float32)
        self.maximum = np.asarray(maximum, dtype=np.float32)

    @staticmethod
    def from_points(points) -> "AABB":
        points = np.asarray(points, dtype=np.float32).reshape(-1, 3)
        return AABB(points.min(axis=0), points.max(axis=0))

    def centroid(self) -> np.ndarray:
        return (self.minimum + self.maximum) * 0.5

    def contains(self, other: "AABB", tolerance: float = 1e-5) -> bool:
        return bool(np.all(self.minimum <= other.minimum + tolerance) and
                    np.all(self.maximum >= other.maximum - tolerance))

    @staticmethod
    def surrounding_box(box0: "AABB", box1: "AABB") -> "AABB":
        return AABB(np.minimum(box0.minimum, box1.minimum),
                    np.maximum(box0.maximum, box1.maximum))

    def __repr__(self) -> str:
        return f"AABB({self.minimum.tolist()}, {self.maximum.tolist()})"
