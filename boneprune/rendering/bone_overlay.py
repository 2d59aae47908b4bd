import ctypes

import numpy as np
from OpenGL import GL

from boneprune.rendering.bone_segments import BoneSegment, segments_to_vertices

LINE_VERTEX_SHADER_SRC = """
#version 330 core
layout (location = 0) in vec3 aPos;
layout (location = 1) in vec3 aColor;
out vec3 vColor;
uniform mat4 u_view;
uniform mat4 u_proj;
void main() {
    vColor = aColor;
    gl_Position = u_proj * u_view * vec4(aPos, 1.0);
}
"""

LINE_FRAGMENT_SHADER_SRC = """
#version 330 core
in vec3 vColor;
out vec4 FragColor;
void main() {
    FragColor = vec4(vColor, 1.0);
}
"""


def build_line_program() -> int:
    """
    Compile and link the overlay's line shaders.

    :raises RuntimeError: If a stage fails to compile or the program fails to link
    """
    stages = []
    for src, stage, label in (
        (LINE_VERTEX_SHADER_SRC, GL.GL_VERTEX_SHADER, "vertex"),
        (LINE_FRAGMENT_SHADER_SRC, GL.GL_FRAGMENT_SHADER, "fragment"),
    ):
        shader = GL.glCreateShader(stage)
        GL.glShaderSource(shader, src)
        GL.glCompileShader(shader)
        if not GL.glGetShaderiv(shader, GL.GL_COMPILE_STATUS):
            raise RuntimeError(f"Bone overlay {label} shader: {GL.glGetShaderInfoLog(shader).decode()}")
        stages.append(shader)

    program = GL.glCreateProgram()
    for shader in stages:
        GL.glAttachShader(program, shader)
    GL.glLinkProgram(program)
    if not GL.glGetProgramiv(program, GL.GL_LINK_STATUS):
        raise RuntimeError(f"Bone overlay link: {GL.glGetProgramInfoLog(program).decode()}")

    for shader in stages:
        GL.glDeleteShader(shader)
    return program


class BoneOverlay:
    """
    Draws bone segments as GL lines. Needs a current OpenGL 3.3 context.
    """

    def __init__(self, line_width: float = 2.0):
        self.program = build_line_program()
        self.u_view = GL.glGetUniformLocation(self.program, "u_view")
        self.u_proj = GL.glGetUniformLocation(self.program, "u_proj")
        self.line_width = line_width

        self.vao = GL.glGenVertexArrays(1)
        self.vbo = GL.glGenBuffers(1)
        self.vertex_count = 0

        GL.glBindVertexArray(self.vao)
        GL.glBindBuffer(GL.GL_ARRAY_BUFFER, self.vbo)

        stride = 6 * 4

        # position (location = 0)
        GL.glEnableVertexAttribArray(0)
        GL.glVertexAttribPointer(0, 3, GL.GL_FLOAT, GL.GL_FALSE, stride, ctypes.c_void_p(0))

        # color (location = 1)
        GL.glEnableVertexAttribArray(1)
        GL.glVertexAttribPointer(1, 3, GL.GL_FLOAT, GL.GL_FALSE, stride, ctypes.c_void_p(3 * 4))

        GL.glBindVertexArray(0)

    def update(self, segments: list[BoneSegment]):
        vertices = segments_to_vertices(segments)
        self.vertex_count = vertices.shape[0]

        GL.glBindBuffer(GL.GL_ARRAY_BUFFER, self.vbo)
        GL.glBufferData(GL.GL_ARRAY_BUFFER, vertices.nbytes, vertices, GL.GL_DYNAMIC_DRAW)
        GL.glBindBuffer(GL.GL_ARRAY_BUFFER, 0)

    def draw(self, view: np.ndarray, proj: np.ndarray):
        if self.vertex_count == 0:
            return

        GL.glUseProgram(self.program)
        GL.glUniformMatrix4fv(self.u_view, 1, GL.GL_TRUE, view)
        GL.glUniformMatrix4fv(self.u_proj, 1, GL.GL_TRUE, proj)

        GL.glLineWidth(self.line_width)
        GL.glBindVertexArray(self.vao)
        GL.glDrawArrays(GL.GL_LINES, 0, self.vertex_count)
        GL.glBindVertexArray(0)
        GL.glUseProgram(0)
