import logging
from typing import Iterable

import numpy as np

from boneprune.errors import InvalidBindingError
from boneprune.skinning.skin import SENTINEL

logger = logging.getLogger(__name__)


def compact_bones(
    bones: list,
    bind_poses: np.ndarray,
    joints: np.ndarray,
    deleted_indices: Iterable[int],
) -> tuple[list, np.ndarray, np.ndarray]:
    """
    Remove bone positions and shift joint indices so they stay valid.

    Indices are removed from the highest down. For each removed position i,
    every joint index above i drops by one before the next removal, so the
    next (smaller) index is still correct in the shifted numbering.

    :param bones: Bone list of the binding
    :param bind_poses: (N,4,4) bind poses parallel to ``bones``
    :param joints: (V,4) joint indices, already retargeted
    :param deleted_indices: Positions in ``bones`` to remove
    :return: New (bones, bind_poses, joints); the inputs are left untouched
    :raises InvalidBindingError: If a slot still points at a removed position
        or the result breaks the index invariants
    """
    indices = sorted(set(int(i) for i in deleted_indices), reverse=True)
    count = len(bones)

    if len(bind_poses) != count:
        raise InvalidBindingError(f"bind pose count {len(bind_poses)} != bone count {count}")

    for index in indices:
        if not 0 <= index < count:
            raise InvalidBindingError(f"cannot remove bone index {index} from {count} bones")

    if indices and np.isin(joints, indices).any():
        raise InvalidBindingError("joint slots still reference bones scheduled for removal")

    bones = list(bones)
    bind_poses = np.asarray(bind_poses, dtype=np.float32)
    joints = joints.copy()

    for index in indices:
        joints[joints > index] -= 1
        del bones[index]
        bind_poses = np.delete(bind_poses, index, axis=0)
        logger.debug(f"Removed bone index {index}, {len(bones)} bone(s) left")

    used = joints[joints > SENTINEL]
    if used.size and int(used.max()) >= len(bones):
        raise InvalidBindingError(
            f"joint index {int(used.max())} out of range after compaction ({len(bones)} bones)"
        )

    return bones, bind_poses, joints
