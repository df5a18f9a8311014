# main.py
import argparse
import logging
import math
import os
import sys
import pygame
import numpy as np
from core.vector import Vector3
from camera.camera import Camera
from geometry.world import World
from geometry.sphere import Sphere
from geometry.box import Box
from geometry.mesh import TriangleMesh, quad
from materials.lambertian import Lambertian
from materials.dielectric import Dielectric
from materials.microfacet_metal import MicrofacetMetal
from materials.diffuse_light import DiffuseLight
from renderer.raytracer import FatalRenderError, PathTracer
from config import QUALITY_LEVELS, apply_quality, load_settings

logger = logging.getLogger("main")

def create_world() -> World:
    """Cornell-style box: colored walls, a ceiling light, glass and metal spheres, a rotated block."""
    world = World()
    white = world.add_material(Lambertian(Vector3(0.73, 0.73, 0.73)))
    red = world.add_material(Lambertian(Vector3(0.65, 0.05, 0.05)))
    green = world.add_material(Lambertian(Vector3(0.12, 0.45, 0.15)))
    light = world.add_material(DiffuseLight(Vector3(1.0, 0.9, 0.8), emittance=12.0))
    glass = world.add_material(Dielectric(1.5))
    metal = world.add_material(MicrofacetMetal(Vector3(0.9, 0.75, 0.5), roughness=0.3))

    # Walls are thin boxes around a 10 x 10 x 10 room centred at y = 5
    world.add(Box(Vector3(0, -0.1, 0), Vector3(10.4, 0.2, 10.4), white))   # floor
    world.add(Box(Vector3(0, 10.1, 0), Vector3(10.4, 0.2, 10.4), white))   # ceiling
    world.add(Box(Vector3(0, 5, -5.1), Vector3(10.4, 10.4, 0.2), white))   # back
    world.add(Box(Vector3(-5.1, 5, 0), Vector3(0.2, 10.4, 10.4), red))     # left
    world.add(Box(Vector3(5.1, 5, 0), Vector3(0.2, 10.4, 10.4), green))    # right

    # Ceiling light as a quad mesh just below the ceiling
    vertices, indices = quad((-1.5, 9.98, -1.5), (3.0, 0.0, 0.0), (0.0, 0.0, 3.0))
    world.add(TriangleMesh(vertices, indices, light))

    world.add(Box(Vector3(-2.0, 3.0, -2.0), Vector3(3.0, 6.0, 3.0), white, rotation=(0.0, 18.0, 0.0)))
    world.add(Sphere(Vector3(2.0, 1.5, 1.0), 1.5, glass))
    world.add(Sphere(Vector3(-2.0, 7.0, -2.0), 1.0, metal))
    return world

def create_camera(width: int, height: int) -> Camera:
    return Camera.look_at(Vector3(0, 5, 19), Vector3(0, 5, 0), math.radians(40), width, height)

def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Wavefront GPU path tracer")
    parser.add_argument("--width", type=int, default=None, help="render width in pixels")
    parser.add_argument("--height", type=int, default=None, help="render height in pixels")
    parser.add_argument("--depth", type=int, default=None, help="maximum path depth")
    parser.add_argument("--iterations", type=int, default=None, help="samples per pixel")
    parser.add_argument("--quality", choices=sorted(QUALITY_LEVELS), default=None,
                        help="resolution/depth preset")
    parser.add_argument("--brute-force", action="store_true", help="test every object instead of the BVH")
    parser.add_argument("--sort-materials", action="store_true", help="group paths by material before shading")
    parser.add_argument("--no-jitter", action="store_true", help="shoot through pixel centres only")
    parser.add_argument("--headless", action="store_true", help="render without a window and save the image")
    parser.add_argument("--output", default="render.png", help="image written at the end of the run")
    parser.add_argument("--verbose", action="store_true", help="log every bounce")
    return parser.parse_args(argv)

def settings_from_args(args: argparse.Namespace) -> dict:
    overrides = {}
    for key in ("width", "height", "iterations"):
        if getattr(args, key) is not None:
            overrides[key] = getattr(args, key)
    if args.depth is not None:
        overrides['max_depth'] = args.depth
    if args.brute_force:
        overrides['use_bvh'] = False
    if args.sort_materials:
        overrides['sort_by_material'] = True
    if args.no_jitter:
        overrides['antialias'] = False
    settings = load_settings(**overrides)
    if args.quality is not None:
        settings = apply_quality(settings, args.quality)
        if args.depth is not None:
            settings['max_depth'] = args.depth
    return settings

def save_image(pixels: np.ndarray, path: str):
    pygame.image.save(pygame.surfarray.make_surface(pixels), path)
    logger.info("Saved %s", path)

class Application:
    def __init__(self, settings: dict, output: str):
        pygame.init()
        self.settings = settings
        self.output = output
        self.width = settings['width']
        self.height = settings['height']

        display_info = pygame.display.Info()
        self.window_scale = max(1, min((display_info.current_w - 100) // self.width,
                                       (display_info.current_h - 100) // self.height, 4))
        self.screen = pygame.display.set_mode((self.width * self.window_scale,
                                               self.height * self.window_scale))
        pygame.display.set_caption("Wavefront Path Tracer")

        self.camera = create_camera(self.width, self.height)
        self.world = create_world()
        self.scene = self.world.compile(self.camera, settings['max_depth'],
                                        settings['use_bvh'], settings['max_leaf_size'])
        self.renderer = PathTracer(settings)
        self.pixels = np.zeros((self.width, self.height, 3), dtype=np.uint8)
        self.frame = pygame.Surface((self.width, self.height))

        self.move_speed = 3.0
        self.rotation_speed = math.radians(60)
        self.clock = pygame.time.Clock()
        self.font = pygame.font.Font(None, 28)
        self.iteration = 0

    def handle_input(self, dt: float) -> bool:
        """Move the camera with WASD/Space/Shift and turn it with the arrow keys. Returns True on change."""
        keys = pygame.key.get_pressed()
        moved = False

        turn = self.rotation_speed * dt
        if keys[pygame.K_LEFT]:
            self.camera.yaw -= turn
            moved = True
        if keys[pygame.K_RIGHT]:
            self.camera.yaw += turn
            moved = True
        if keys[pygame.K_UP]:
            self.camera.pitch += turn
            moved = True
        if keys[pygame.K_DOWN]:
            self.camera.pitch -= turn
            moved = True
        # Clamp pitch to prevent camera flip
        self.camera.pitch = max(min(self.camera.pitch, math.radians(89)), math.radians(-89))
        self.camera.update_camera()

        move_dir = Vector3(0, 0, 0)
        if keys[pygame.K_w]:
            move_dir = move_dir + self.camera.forward
        if keys[pygame.K_s]:
            move_dir = move_dir - self.camera.forward
        if keys[pygame.K_a]:
            move_dir = move_dir - self.camera.right
        if keys[pygame.K_d]:
            move_dir = move_dir + self.camera.right
        if keys[pygame.K_SPACE]:
            move_dir = move_dir + Vector3(0, 1, 0)
        if keys[pygame.K_LSHIFT]:
            move_dir = move_dir - Vector3(0, 1, 0)
        if move_dir.length() > 0:
            self.camera.position = self.camera.position + move_dir.normalize() * self.move_speed * dt
            moved = True
        return moved

    def draw(self):
        pygame.surfarray.blit_array(self.frame, self.pixels)
        self.screen.blit(pygame.transform.scale(self.frame, self.screen.get_size()), (0, 0))
        text = self.font.render(f"{self.iteration} spp  {self.clock.get_fps():.1f} fps", True, (255, 255, 255))
        self.screen.blit(text, (8, 8))
        pygame.display.flip()

    def run(self):
        self.renderer.initialize(self.scene)
        running = True
        try:
            while running:
                dt = self.clock.tick(60) / 1000.0
                for event in pygame.event.get():
                    if event.type == pygame.QUIT:
                        running = False
                    elif event.type == pygame.KEYDOWN:
                        if event.key == pygame.K_ESCAPE:
                            running = False
                        elif event.key == pygame.K_r:
                            self.renderer.reset_accumulation()
                            self.iteration = 0
                        elif event.key == pygame.K_p:
                            save_image(self.pixels, self.output)

                if self.handle_input(dt):
                    self.renderer.reset_accumulation()
                    self.iteration = 0

                if self.iteration < self.settings['iterations']:
                    self.iteration += 1
                    self.renderer.render(self.pixels, self.iteration, self.iteration)
                self.draw()
            save_image(self.pixels, self.output)
        finally:
            self.renderer.release(self.scene)
            pygame.quit()

def render_headless(settings: dict, output: str) -> np.ndarray:
    camera = create_camera(settings['width'], settings['height'])
    scene = create_world().compile(camera, settings['max_depth'],
                                   settings['use_bvh'], settings['max_leaf_size'])
    renderer = PathTracer(settings)
    pixels = np.zeros((settings['width'], settings['height'], 3), dtype=np.uint8)
    renderer.initialize(scene)
    try:
        for iteration in range(1, settings['iterations'] + 1):
            renderer.render(pixels, 0, iteration)
            if iteration % 16 == 0 or iteration == settings['iterations']:
                logger.info("Iteration %d/%d", iteration, settings['iterations'])
    finally:
        renderer.release(scene)
    save_image(pixels, output)
    return pixels

def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        settings = settings_from_args(args)
    except ValueError as exc:
        logger.error("%s", exc)
        return 2

    logger.info("Rendering %dx%d, depth %d, %d iterations, %s",
                settings['width'], settings['height'], settings['max_depth'],
                settings['iterations'], "BVH" if settings['use_bvh'] else "brute force")
    try:
        if args.headless:
            os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
            render_headless(settings, args.output)
        else:
            Application(settings, args.output).run()
    except FatalRenderError as exc:
        logger.error("Render failed: %s", exc)
        return 1
    return 0

if __name__ == "__main__":
    sys.exit(main())
