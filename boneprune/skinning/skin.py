from typing import Callable, Optional

import numpy as np

from boneprune.errors import InvalidBindingError

# joint slots below zero are unused
SENTINEL = -1
SLOTS_PER_VERTEX = 4


class SkinnedMesh:
    def __init__(
        self,
        name: str,
        bind_poses,
        joints,
        weights,
        *,
        source_mesh: Optional[int] = None,
        primitive_ranges: Optional[list[tuple[int, int, int]]] = None,
    ):
        """
        Shared skinning payload of a mesh asset.

        bind_poses: (N,4,4) inverse bind matrices, parallel to the binding's bones
        joints:     (V,4) bone indices into the binding's bones
        weights:    (V,4) influence weights
        source_mesh / primitive_ranges: where the data came from in a glTF
        file, as (primitive, first vertex, vertex count) triples
        """
        self.name = name
        self.bind_poses = np.asarray(bind_poses, dtype=np.float32).reshape(-1, 4, 4)
        self.joints = np.asarray(joints, dtype=np.int32).reshape(-1, SLOTS_PER_VERTEX)
        self.weights = np.asarray(weights, dtype=np.float32).reshape(-1, SLOTS_PER_VERTEX)

        assert self.joints.shape == self.weights.shape, (
            f"joints {self.joints.shape} and weights {self.weights.shape} vertex count mismatch"
        )

        self.source_mesh = source_mesh
        self.primitive_ranges = list(primitive_ranges or [])
        self.derived_from: Optional[SkinnedMesh] = None

    def __repr__(self):
        return (
            f"SkinnedMesh({self.name!r}, bones={len(self.bind_poses)}, "
            f"vertices={self.vertex_count})"
        )

    @property
    def vertex_count(self) -> int:
        return self.joints.shape[0]

    def copy(self, name: Optional[str] = None) -> "SkinnedMesh":
        """
        Independent copy; ``derived_from`` remembers the asset it was made from.
        """
        dup = SkinnedMesh(
            self.name if name is None else name,
            self.bind_poses.copy(),
            self.joints.copy(),
            self.weights.copy(),
            source_mesh=self.source_mesh,
            primitive_ranges=self.primitive_ranges,
        )
        dup.derived_from = self
        return dup


class SkinBinding:
    """
    Skinned mesh component: ordered bone list + root bone + shared mesh.

    The position of a bone in ``bones`` is the index stored in the mesh's
    joint array.
    """

    def __init__(self, node, bones, root_bone, mesh: SkinnedMesh, source_skin: Optional[int] = None):
        self.node = node
        self.bones = list(bones)
        self.root_bone = root_bone
        self.mesh = mesh
        self.source_skin = source_skin

    def __repr__(self):
        owner = self.node.name if self.node is not None else None
        return f"SkinBinding(node={owner!r}, bones={len(self.bones)}, mesh={self.mesh.name!r})"

    @property
    def bone_count(self) -> int:
        return len(self.bones)

    def index_of(self, bone) -> int:
        """
        First position of ``bone`` in ``bones`` or -1.
        """
        for i, b in enumerate(self.bones):
            if b is bone:
                return i
        return -1

    def indices_of(self, bone) -> list[int]:
        return [i for i, b in enumerate(self.bones) if b is bone]

    def references(self, bone) -> bool:
        return self.index_of(bone) != -1

    def rebind(self, node, remap: Callable) -> "SkinBinding":
        """
        Copy of this component owned by ``node`` with every bone passed
        through ``remap``. The mesh asset stays shared.
        """
        return SkinBinding(
            node,
            [remap(b) for b in self.bones],
            remap(self.root_bone),
            self.mesh,
            self.source_skin,
        )

    def validate(self):
        """
        Check that bind poses are parallel to bones and that every used
        joint index points into ``bones``.

        :raises InvalidBindingError: If the binding is inconsistent
        """
        count = len(self.bones)
        if len(self.mesh.bind_poses) != count:
            raise InvalidBindingError(
                f"{self!r}: bind pose count {len(self.mesh.bind_poses)} != bone count {count}"
            )

        used = self.mesh.joints[self.mesh.joints > SENTINEL]
        if used.size and int(used.max()) >= count:
            raise InvalidBindingError(
                f"{self!r}: joint index {int(used.max())} out of range for {count} bones"
            )
