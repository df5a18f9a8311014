# core/vector.py
import numpy as np

class Vector3:
    """
    Host-side 3D vector over a float64 numpy array, used for camera and
    scene setup. Kernels only ever receive to_array() copies.
    """
    __slots__ = ("data",)

    def __init__(self, x: float, y: float, z: float):
        self.data = np.array((x, y, z), dtype=np.float64)

    @classmethod
    def _wrap(cls, data: np.ndarray) -> "Vector3":
        v = cls.__new__(cls)
        v.data = data
        return v

    @property
    def x(self) -> float:
        return float(self.data[0])

    @property
    def y(self) -> float:
        return float(self.data[1])

    @property
    def z(self) -> float:
        return float(self.data[2])

    def __add__(self, other: "Vector3") -> "Vector3":
        return Vector3._wrap(self.data + other.data)

    def __sub__(self, other: "Vector3") -> "Vector3":
        return Vector3._wrap(self.data - other.data)

    def __mul__(self, other):
        if isinstance(other, Vector3):
            return Vector3._wrap(self.data * other.data)
        return Vector3._wrap(self.data * float(other))

    __rmul__ = __mul__

    def cross(self, other: "Vector3") -> "Vector3":
        return Vector3._wrap(np.cross(self.data, other.data))

    def length(self) -> float:
        return float(np.linalg.norm(self.data))

    def normalize(self) -> "Vector3":
        l = self.length()
        if l == 0:
            return Vector3(0.0, 0.0, 0.0)
        return Vector3._wrap(self.data / l)

    def to_array(self) -> np.ndarray:
        return self.data.astype(np.float32)

    def __repr__(self) -> str:
        return f"Vector3({self.x}, {self.y}, {self.z})"
