# renderer/raytracer.py
import logging
import math
from contextlib import contextmanager
import numpy as np
from numba import cuda
from config import load_settings
from materials.material import MaterialType
from .buffers import PathBuffer, PathBufferPair
from .cuda_compact import Compactor
from .cuda_intersect import intersect_brute_force_kernel, intersect_bvh_kernel
from .cuda_kernels import (generate_paths_kernel, scatter_kernel, accumulate_kernel,
                           display_kernel)

logger = logging.getLogger(__name__)

class FatalRenderError(RuntimeError):
    """Allocation or kernel failure; the render cannot continue."""

def upload(array, dtype, empty_shape=None):
    """
    Copy a host array to the device. Empty arrays are replaced by a single
    zeroed row so kernels always receive a valid pointer; object ranges keep
    such rows from ever being read.
    """
    array = np.ascontiguousarray(array, dtype=dtype)
    if array.size == 0:
        array = np.zeros(empty_shape if empty_shape is not None else (1,), dtype=dtype)
    return cuda.to_device(array)

class PathTracer:
    """
    Renderer context: owns the uploaded scene, the double-buffered path
    state, the scan scratch space and the persistent image. Every stage
    receives its buffers explicitly from here.

    Per iteration:
        generate -> {intersect -> compact -> scatter -> compact}* -> accumulate -> present
    The loop runs while paths remain and depth < max_depth.
    """
    def __init__(self, settings: dict = None, progress=None):
        self.settings = settings if settings is not None else load_settings()
        self.progress = progress
        self.threads_per_block = self.settings['threads_per_block']
        self.tile = tuple(self.settings['tile_size'])

        self.scene = None
        self.width = 0
        self.height = 0
        self.max_depth = 0
        self.use_bvh = False
        self.active_history = []
        self._clear_device_state()

    def _clear_device_state(self):
        # Scene arrays (read-only during a render)
        self.d_object_args = None
        self.d_material_args = None
        self.d_bvh_args = None
        # Working buffers
        self.paths = None
        self.compactor = None
        self.d_flags = None
        self.d_image = None
        self.d_display = None
        self.d_visit_log = None

    @property
    def initialized(self) -> bool:
        return self.d_image is not None

    @property
    def num_pixels(self) -> int:
        return self.width * self.height

    # ------------------------------------------------------------------
    # Lifecycle
    def initialize(self, scene) -> None:
        """
        Upload the scene's immutable arrays and allocate per-pixel working
        buffers. Calling it again with the same scene is a no-op.
        """
        if self.initialized and self.scene is scene:
            return
        if self.initialized:
            self.release()

        camera = scene.camera
        self.width = camera.width
        self.height = camera.height
        self.max_depth = scene.max_depth
        self.use_bvh = self.settings['use_bvh']
        if self.use_bvh and scene.bvh is None:
            logger.warning("BVH traversal requested but the scene has no BVH; using brute force")
            self.use_bvh = False

        try:
            self.d_object_args = (
                upload(scene.object_types, np.int32),
                upload(scene.object_transforms, np.float32),
                upload(scene.object_inverse_transforms, np.float32),
                upload(scene.object_inverse_transposes, np.float32),
                upload(scene.object_materials, np.int32),
                upload(scene.object_tri_start, np.int32),
                upload(scene.object_tri_end, np.int32),
                upload(scene.triangles, np.int32, (1, 3)),
                upload(scene.vertices, np.float32, (1, 3)),
                upload(scene.material_types, np.int32),
            )
            self.d_material_args = (
                upload(scene.material_types, np.int32),
                upload(scene.material_colors, np.float32),
                upload(scene.material_emittance, np.float32),
                upload(scene.material_roughness, np.float32),
                upload(scene.material_ior, np.float32),
            )
            if scene.bvh is not None:
                self.d_bvh_args = tuple(upload(a, a.dtype) for a in scene.bvh.arrays()) + (
                    upload(scene.prim_objects, np.int32),
                    upload(scene.prim_offsets, np.int32),
                )

            n = scene.num_pixels
            self.paths = PathBufferPair(n)
            self.compactor = Compactor(n, len(MaterialType), self.threads_per_block)
            self.d_flags = cuda.device_array(n, dtype=np.int32)
            self.d_image = cuda.to_device(np.zeros((n, 3), dtype=np.float32))
            self.d_display = cuda.device_array((self.width, self.height, 3), dtype=np.uint8)
            self.d_visit_log = cuda.device_array((1, 1), dtype=np.int32)
            cuda.synchronize()
        except Exception as exc:
            self._clear_device_state()
            raise FatalRenderError(f"Failed to allocate render buffers: {exc}") from exc

        self.scene = scene
        logger.info("Renderer initialized: %dx%d, max depth %d, %d objects, %d triangles, %s",
                    self.width, self.height, self.max_depth, scene.num_objects,
                    scene.num_triangles, "BVH" if self.use_bvh else "brute force")

    def release(self, scene=None) -> None:
        """Drop every device buffer. Safe to call repeatedly."""
        if not self.initialized and self.d_object_args is None:
            return
        self._clear_device_state()
        self.scene = None
        logger.info("Renderer resources released")

    def reset_accumulation(self) -> None:
        if self.initialized:
            with self._stage("accumulation reset"):
                self.d_image = cuda.to_device(np.zeros((self.num_pixels, 3), dtype=np.float32))

    @property
    def image(self) -> np.ndarray:
        """Accumulated (not averaged) radiance, shape (num_pixels, 3)."""
        self._require_initialized()
        return self.d_image.copy_to_host()

    # ------------------------------------------------------------------
    # Pipeline stages
    def _require_initialized(self):
        if not self.initialized:
            raise FatalRenderError("Renderer used before initialize()")

    @contextmanager
    def _stage(self, stage: str):
        """Launch errors, allocation errors and asynchronous kernel faults all surface as FatalRenderError."""
        try:
            yield
            cuda.synchronize()
        except FatalRenderError:
            raise
        except Exception as exc:
            raise FatalRenderError(f"CUDA failure during {stage}: {exc}") from exc

    def _blocks(self, n: int) -> int:
        return math.ceil(n / self.threads_per_block)

    def _grid(self):
        return (math.ceil(self.width / self.tile[0]), math.ceil(self.height / self.tile[1]))

    def generate(self, iteration: int):
        cam_position, cam_view, cam_right, cam_up, pixel_length = self.scene.camera.to_arrays()
        buf = self.paths.current
        with self._stage("path generation"):
            generate_paths_kernel[self._grid(), self.tile](
                self.width, self.height,
                cam_position, cam_view, cam_right, cam_up, pixel_length,
                iteration, self.max_depth, self.settings['antialias'],
                *buf.path_arrays(), buf.isect_t)

    def intersect(self, n: int, buf: PathBuffer = None, log_length: int = 0, d_visit_log=None):
        """Fill intersection records and validity flags for the first n paths."""
        buf = buf if buf is not None else self.paths.current
        with self._stage("intersection"):
            if self.use_bvh:
                intersect_bvh_kernel[self._blocks(n), self.threads_per_block](
                    n, buf.origin, buf.direction, *self.d_object_args, *self.d_bvh_args,
                    *buf.intersection_arrays(), self.d_flags,
                    d_visit_log if d_visit_log is not None else self.d_visit_log, log_length)
            else:
                intersect_brute_force_kernel[self._blocks(n), self.threads_per_block](
                    n, buf.origin, buf.direction, *self.d_object_args,
                    *buf.intersection_arrays(), self.d_flags)

    def scatter(self, n: int, iteration: int, depth: int):
        buf = self.paths.current
        with self._stage("scatter"):
            scatter_kernel[self._blocks(n), self.threads_per_block](
                n, iteration, depth, *buf.arrays(), *self.d_material_args,
                self.d_image, self.d_flags)

    def compact(self, n: int, sort_by_material: bool = False) -> int:
        with self._stage("compaction"):
            active = self.compactor.compact(self.paths, self.d_flags, n, sort_by_material)
        self.active_history.append(active)
        return active

    def accumulate(self, n: int):
        buf = self.paths.current
        with self._stage("accumulation"):
            accumulate_kernel[self._blocks(n), self.threads_per_block](
                n, buf.throughput, buf.pixel_index, self.d_image)

    def present(self, output_pixels, iteration: int):
        with self._stage("display"):
            display_kernel[self._grid(), self.tile](
                self.width, self.height, self.d_image, float(iteration), self.d_display)
            self.d_display.copy_to_host(output_pixels)

    def notify(self, depth: int):
        if self.progress is not None:
            self.progress(depth)

    # ------------------------------------------------------------------
    def render(self, output_pixels=None, frame_index: int = 0, iteration_index: int = 1) -> np.ndarray:
        """
        Trace one iteration over the whole frame, accumulate it into the image
        and write the iteration-averaged 8-bit result into output_pixels
        (shape (width, height, 3), uint8; allocated when None).
        """
        self._require_initialized()
        if iteration_index < 1:
            raise ValueError(f"iteration_index is 1-based, got {iteration_index}")
        if output_pixels is None:
            output_pixels = np.zeros((self.width, self.height, 3), dtype=np.uint8)
        elif output_pixels.shape != (self.width, self.height, 3) or output_pixels.dtype != np.uint8:
            raise ValueError(f"output_pixels must be uint8 with shape {(self.width, self.height, 3)}")

        self.active_history = []
        self.paths.reset()
        self.generate(iteration_index)

        active = self.num_pixels
        depth = 0
        while active > 0 and depth < self.max_depth:
            self.intersect(active)
            active = self.compact(active, self.settings['sort_by_material'])
            depth += 1
            self.notify(depth)
            if active == 0:
                break
            self.scatter(active, iteration_index, depth)
            active = self.compact(active)
            logger.debug("frame %d iteration %d depth %d: %d active paths",
                         frame_index, iteration_index, depth, active)

        if active > 0:
            self.accumulate(active)

        self.present(output_pixels, iteration_index)
        return output_pixels

    def trace_rays(self, origins, directions, log_length: int = 0) -> dict:
        """
        Run only the intersection stage on arbitrary rays (diagnostics).
        Returns host copies of the intersection records and flags, plus the
        per-ray BVH visit log when log_length > 0 (entries default to -1).
        """
        self._require_initialized()
        origins = np.ascontiguousarray(origins, dtype=np.float32).reshape(-1, 3)
        directions = np.ascontiguousarray(directions, dtype=np.float32).reshape(-1, 3)
        n = len(origins)
        if n > self.num_pixels:
            raise ValueError(f"At most {self.num_pixels} rays per call")
        d_visit_log = None
        with self._stage("ray upload"):
            buf = PathBuffer(n)
            buf.origin.copy_to_device(origins)
            buf.direction.copy_to_device(directions)
            if log_length > 0:
                d_visit_log = cuda.to_device(-np.ones((n, log_length), dtype=np.int32))
        self.intersect(n, buf, log_length, d_visit_log)
        result = buf.to_host(n)
        result["flags"] = self.d_flags.copy_to_host()[:n]
        if d_visit_log is not None:
            result["visit_log"] = d_visit_log.copy_to_host()
        return result
