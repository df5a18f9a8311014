# camera/camera.py
import math
import numpy as np
from core.vector import Vector3

class Camera:
    """
    Pinhole camera described by yaw/pitch around the world up axis.

    The path generator only needs the position, the view/right/up basis and
    the angular size of one pixel, see to_arrays().
    """
    def __init__(self, position: Vector3, yaw: float, pitch: float,
                 fov: float, width: int, height: int):
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid camera resolution {width}x{height}")
        self.position = position
        self.yaw = yaw
        self.pitch = pitch
        self.fov = fov
        self.width = width
        self.height = height
        self.update_camera()

    @classmethod
    def look_at(cls, position: Vector3, target: Vector3, fov: float,
                width: int, height: int) -> "Camera":
        forward = (target - position).normalize()
        pitch = math.asin(max(-1.0, min(1.0, forward.y)))
        yaw = math.atan2(forward.x, -forward.z)
        return cls(position, yaw, pitch, fov, width, height)

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    def update_camera(self):
        """Updates the camera's basis vectors and per-pixel step."""
        global_up = Vector3(0, 1, 0)

        self.forward = Vector3(
            math.sin(self.yaw) * math.cos(self.pitch),
            math.sin(self.pitch),
            -math.cos(self.yaw) * math.cos(self.pitch)
        ).normalize()

        self.right = self.forward.cross(global_up).normalize()
        self.up = self.right.cross(self.forward).normalize()

        y_scale = math.tan(self.fov / 2)
        x_scale = y_scale * self.aspect_ratio
        self.pixel_length = (2.0 * x_scale / self.width, 2.0 * y_scale / self.height)

    def to_arrays(self):
        """
        Returns (position, view, right, up, pixel_length) as float32 arrays.
        """
        return (self.position.to_array(),
                self.forward.to_array(),
                self.right.to_array(),
                self.up.to_array(),
                np.array(self.pixel_length, dtype=np.float32))
