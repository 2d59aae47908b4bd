from typing import Iterable

import numpy as np

from boneprune.skinning.hierarchy import BoneInfo

KEPT_COLOR = (1.0, 0.0, 0.0)
DELETED_COLOR = (0.0, 1.0, 0.0)


class BoneSegment:
    def __init__(self, parent: BoneInfo, child: BoneInfo, start: np.ndarray, end: np.ndarray):
        """
        One parent -> child line of the bone overlay, in world space.
        """
        self.parent = parent
        self.child = child
        self.start = start
        self.end = end

    def __repr__(self):
        return f"BoneSegment({self.parent.name!r} -> {self.child.name!r}, deleted={self.deleted})"

    @property
    def deleted(self) -> bool:
        return self.child.deleted


def collect_bone_segments(forest: Iterable[BoneInfo]) -> list[BoneSegment]:
    segments = []

    def walk(info: BoneInfo):
        start = info.bone.world_position()
        for child in info.children:
            segments.append(BoneSegment(info, child, start, child.bone.world_position()))
            walk(child)

    for root in forest:
        walk(root)
    return segments


def segments_to_vertices(
    segments: list[BoneSegment],
    kept_color=KEPT_COLOR,
    deleted_color=DELETED_COLOR,
) -> np.ndarray:
    """
    Interleaved line vertices: (2 * S, 6) float32 = position(3) + color(3).
    """
    out = np.zeros((2 * len(segments), 6), dtype=np.float32)
    for i, seg in enumerate(segments):
        color = deleted_color if seg.deleted else kept_color
        out[2 * i, 0:3] = seg.start
        out[2 * i, 3:6] = color
        out[2 * i + 1, 0:3] = seg.end
        out[2 * i + 1, 3:6] = color
    return out


def segment_bounds(segments: list[BoneSegment]) -> tuple[np.ndarray, np.ndarray]:
    if not segments:
        zero = np.zeros(3, dtype=np.float32)
        return zero, zero.copy()
    points = np.array([p for s in segments for p in (s.start, s.end)], dtype=np.float32)
    return points.min(axis=0), points.max(axis=0)
