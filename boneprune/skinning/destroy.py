import logging
from typing import Iterable, Optional

from boneprune.errors import DeletionClosureError
from boneprune.scene.node import SceneNode
from boneprune.scene.undo import UndoGroup, UndoStack
from boneprune.skinning.bone_set import get_skin_bindings

logger = logging.getLogger(__name__)

UNDO_GROUP_NAME = "Delete Bones"


def _destroy_targets(scene_root: SceneNode, deleted: set[SceneNode]) -> list[SceneNode]:
    """
    Topmost deleted nodes in scene order; their subtrees go with them.
    """
    targets = []
    stack = [scene_root]
    while stack:
        node = stack.pop()
        if node in deleted:
            targets.append(node)
            continue
        stack.extend(reversed(node.children))
    return targets


def plan_destroy(
    bones: Iterable,
    scene_root: SceneNode,
    skinning: Optional[Iterable[tuple[SceneNode, list]]] = None,
) -> list[SceneNode]:
    """
    Topmost nodes ``destroy_bones`` would remove, after the closure check.
    Nothing in the scene is touched.

    :param bones: Deleted bones as BoneInfo (or bare nodes)
    :param scene_root: Root to search for the nodes
    :param skinning: (owner node, bone list) pairs that must keep their bones,
        defaults to every binding under ``scene_root``
    :return: The subtree roots to destroy
    :raises DeletionClosureError: If a destroyed subtree holds a live bone
    """
    deleted = {getattr(b, "bone", b) for b in bones}
    targets = _destroy_targets(scene_root, deleted)
    if not targets:
        return []

    if skinning is None:
        skinning = [
            (binding.node, binding.bones)
            for binding in get_skin_bindings(scene_root, include_inactive=True)
        ]

    doomed = {n for target in targets for n in target.iter_subtree()}
    live = {
        bone
        for owner, owned_bones in skinning
        if owner not in doomed
        for bone in owned_bones
        if bone is not None
    }
    offenders = sorted(n.name for n in doomed & live)
    if offenders:
        raise DeletionClosureError(
            f"refusing to destroy bones still used for skinning: {', '.join(offenders)}"
        )
    return targets


def destroy_bones(
    bones: Iterable,
    scene_root: SceneNode,
    undo: Optional[UndoStack] = None,
    skinning: Optional[Iterable[tuple[SceneNode, list]]] = None,
) -> list[SceneNode]:
    """
    Remove deleted bone nodes and everything below them from the scene as a
    single undo group.

    Must run after all skinning data has been retargeted and compacted: any
    bone still listed by a binding outside the destroyed subtrees blocks the
    operation (see ``plan_destroy``).

    :param undo: Undo stack that receives the group
    :return: The destroyed subtree roots
    :raises DeletionClosureError: If a destroyed subtree holds a live bone
    """
    targets = plan_destroy(bones, scene_root, skinning)
    if not targets:
        return []

    undo = undo if undo is not None else UndoStack()
    group = UndoGroup(UNDO_GROUP_NAME)
    for target in targets:
        undo.destroy(target, group)
    undo.push(group)

    count = sum(1 for target in targets for _ in target.iter_subtree())
    logger.info(f"Destroyed {len(targets)} subtree(s), {count} node(s)")
    return targets
