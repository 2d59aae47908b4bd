import logging
from typing import Iterable, Optional

import numpy as np

from boneprune.errors import InvalidBindingError
from boneprune.scene.node import SceneNode
from boneprune.skinning.skin import SkinBinding

logger = logging.getLogger(__name__)


class RetargetResult:
    def __init__(self, joints: np.ndarray, deleted_indices: list[int], changed: bool):
        """
        joints:          (V,4) joint indices after retargeting (not yet compacted)
        deleted_indices: positions in the binding's bones to remove
        changed:         whether the binding referenced any deleted bone
        """
        self.joints = joints
        self.deleted_indices = deleted_indices
        self.changed = changed

    def __repr__(self):
        return f"RetargetResult(changed={self.changed}, deleted_indices={self.deleted_indices})"


def find_retarget_bone(
    bone: SceneNode,
    binding: SkinBinding,
    bone_set: set[SceneNode],
    deleted: set[SceneNode],
) -> SceneNode:
    """
    Nearest ancestor of ``bone`` that survives and that the binding skins with.

    Grouping nodes and deleted bones are walked through. The walk stops at the
    binding's root bone and falls back to it when the top of the hierarchy is
    reached.
    """
    candidate = bone.parent
    while candidate is not None:
        if candidate is binding.root_bone:
            return candidate
        if candidate in bone_set and candidate not in deleted and binding.references(candidate):
            return candidate
        candidate = candidate.parent
    return binding.root_bone


def _target_index(binding: SkinBinding, target: SceneNode) -> int:
    index = binding.index_of(target)
    if index == -1:
        raise InvalidBindingError(
            f"{binding!r}: retarget bone '{target.name}' is not part of the binding's bones"
        )
    return index


def retarget_binding(
    binding: SkinBinding,
    bone_set: set[SceneNode],
    deletion: Iterable,
    joints: Optional[np.ndarray] = None,
) -> RetargetResult:
    """
    Move every influence slot that points at a deleted bone onto its retarget
    bone. Weights are left alone, so a vertex may end up with two slots on
    the same bone.

    :param binding: The skin binding to process
    :param bone_set: Distinct skinning bones of the model
    :param deletion: Deleted bones as BoneInfo (or bare nodes), deepest first
    :param joints: Joint array to start from, defaults to the binding's mesh
    :return: The rewritten joint array and the bone positions to compact
    :raises InvalidBindingError: If a retarget bone cannot be resolved
    """
    source = binding.mesh.joints if joints is None else joints
    if binding.root_bone is None:
        return RetargetResult(source, [], False)

    deleted_nodes = [getattr(d, "bone", d) for d in deletion]
    deleted = set(deleted_nodes)

    out: Optional[np.ndarray] = None
    deleted_indices: list[int] = []

    for bone in deleted_nodes:
        positions = binding.indices_of(bone)
        if not positions:
            continue

        target = find_retarget_bone(bone, binding, bone_set, deleted)
        if target in deleted:
            raise InvalidBindingError(
                f"{binding!r}: root bone '{target.name}' is scheduled for deletion, "
                f"no surviving bone can take over '{bone.name}'"
            )
        target_index = _target_index(binding, target)

        if out is None:
            out = source.copy()

        for index in positions:
            mask = source == index
            out[mask] = target_index
            deleted_indices.append(index)
            logger.debug(
                f"{binding.mesh.name}: '{bone.name}' [{index}] -> '{target.name}' "
                f"[{target_index}], {int(mask.sum())} slot(s)"
            )

    if out is None:
        return RetargetResult(source, [], False)

    return RetargetResult(out, sorted(set(deleted_indices)), True)
