import logging
import math

import numpy as np
import pygame
from OpenGL import GL

from boneprune.rendering.bone_overlay import BoneOverlay
from boneprune.rendering.bone_segments import collect_bone_segments, segment_bounds
from boneprune.skinning.hierarchy import BoneInfo

logger = logging.getLogger(__name__)

WIDTH, HEIGHT = 1000, 800


def normalize(v: np.ndarray) -> np.ndarray:
    n = np.linalg.norm(v)
    if n == 0.0:
        return v
    return v / n


def look_at(eye, center, up) -> np.ndarray:
    """
    :param eye: The camera position
    :param center: The point the camera is looking at
    :param up: The up vector
    :return: The view matrix
    """
    f = normalize(center - eye)
    s = normalize(np.cross(f, up))
    u = np.cross(s, f)

    view = np.identity(4, dtype=np.float32)
    view[0, :3] = s
    view[1, :3] = u
    view[2, :3] = -f
    view[0, 3] = -np.dot(s, eye)
    view[1, 3] = -np.dot(u, eye)
    view[2, 3] = np.dot(f, eye)

    return view


class OrbitCamera:
    def __init__(self, target, distance, fov=60.0):
        self.target = np.array(target, dtype=np.float32)
        self.distance = distance
        self.fov = fov
        self.yaw = 0.0
        self.pitch = 0.2

    def eye(self) -> np.ndarray:
        offset = np.array(
            [
                math.cos(self.pitch) * math.sin(self.yaw),
                math.sin(self.pitch),
                math.cos(self.pitch) * math.cos(self.yaw),
            ],
            dtype=np.float32,
        )
        return self.target + offset * self.distance

    def get_view_matrix(self) -> np.ndarray:
        return look_at(self.eye(), self.target, np.array([0.0, 1.0, 0.0], dtype=np.float32))

    def get_projection_matrix(self, aspect: float, near=0.01, far=1000.0) -> np.ndarray:
        f = 1.0 / math.tan(math.radians(self.fov) / 2.0)

        proj = np.zeros((4, 4), dtype=np.float32)
        proj[0, 0] = f / aspect
        proj[1, 1] = f
        proj[2, 2] = (far + near) / (near - far)
        proj[2, 3] = (2 * far * near) / (near - far)
        proj[3, 2] = -1.0

        return proj


def run_preview(forest: list[BoneInfo], title: str = "boneprune"):
    """
    Show the bone forest until the window is closed (red = kept, green = deleted).

    Arrow keys orbit, +/- zoom, Esc closes.
    """
    segments = collect_bone_segments(forest)
    lo, hi = segment_bounds(segments)
    radius = float(np.linalg.norm(hi - lo)) or 1.0

    pygame.init()
    pygame.display.set_caption(title)
    pygame.display.gl_set_attribute(pygame.GL_CONTEXT_MAJOR_VERSION, 3)
    pygame.display.gl_set_attribute(pygame.GL_CONTEXT_MINOR_VERSION, 3)
    pygame.display.gl_set_attribute(
        pygame.GL_CONTEXT_PROFILE_MASK, pygame.GL_CONTEXT_PROFILE_CORE
    )
    pygame.display.set_mode((WIDTH, HEIGHT), pygame.OPENGL | pygame.DOUBLEBUF)
    GL.glViewport(0, 0, WIDTH, HEIGHT)

    overlay = BoneOverlay()
    overlay.update(segments)
    camera = OrbitCamera((lo + hi) * 0.5, radius * 1.5)
    clock = pygame.time.Clock()

    logger.info(f"Preview: {len(segments)} segment(s)")

    running = True
    while running:
        dt = clock.tick(60) / 1000.0

        for e in pygame.event.get():
            if e.type == pygame.QUIT:
                running = False
            elif e.type == pygame.KEYDOWN and e.key == pygame.K_ESCAPE:
                running = False

        keys = pygame.key.get_pressed()
        if keys[pygame.K_LEFT]:
            camera.yaw -= 1.5 * dt
        if keys[pygame.K_RIGHT]:
            camera.yaw += 1.5 * dt
        if keys[pygame.K_UP]:
            camera.pitch = min(camera.pitch + 1.5 * dt, 1.5)
        if keys[pygame.K_DOWN]:
            camera.pitch = max(camera.pitch - 1.5 * dt, -1.5)
        if keys[pygame.K_PLUS] or keys[pygame.K_EQUALS]:
            camera.distance = max(camera.distance * (1.0 - dt), 0.01)
        if keys[pygame.K_MINUS]:
            camera.distance *= 1.0 + dt

        GL.glClearColor(0.15, 0.15, 0.15, 1.0)
        GL.glClear(GL.GL_COLOR_BUFFER_BIT | GL.GL_DEPTH_BUFFER_BIT)
        overlay.draw(camera.get_view_matrix(), camera.get_projection_matrix(WIDTH / HEIGHT))

        pygame.display.flip()

    pygame.quit()
