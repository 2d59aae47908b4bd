import logging
from pathlib import Path
from typing import Iterable, Optional

from boneprune.assets.mesh_asset import MeshAssetStore
from boneprune.config import PrunerConfig
from boneprune.errors import BonePruneError
from boneprune.scene.node import SceneNode
from boneprune.scene.undo import UndoStack
from boneprune.skinning.bone_set import collect_bone_set, count_bones, get_skin_bindings
from boneprune.skinning.compact import compact_bones
from boneprune.skinning.destroy import destroy_bones, plan_destroy
from boneprune.skinning.hierarchy import (
    BoneInfo,
    deleted_bones,
    extract_bone_forest,
    find_bone_info,
    flatten_forest,
)
from boneprune.skinning.retarget import retarget_binding
from boneprune.skinning.skin import SkinBinding

logger = logging.getLogger(__name__)

DUPLICATE_SUFFIX = "_deleteBones"


class PruneResult:
    def __init__(self, model: SceneNode):
        self.model = model
        self.changed: list[SkinBinding] = []
        self.unchanged: list[SkinBinding] = []
        self.skipped: list[SkinBinding] = []
        self.assets: list[Path] = []
        self.destroyed: list[SceneNode] = []

    def __repr__(self):
        return (
            f"PruneResult(model={self.model.name!r}, changed={len(self.changed)}, "
            f"unchanged={len(self.unchanged)}, destroyed={len(self.destroyed)})"
        )


def sort_deepest_first(deletion: Iterable[BoneInfo]) -> list[BoneInfo]:
    return sorted(deletion, key=lambda info: info.depth, reverse=True)


def prune_model(
    model: SceneNode,
    deletion: Iterable[BoneInfo],
    asset_store: Optional[MeshAssetStore] = None,
    undo: Optional[UndoStack] = None,
    suffix: str = "-pruned",
    include_inactive: bool = True,
) -> PruneResult:
    """
    Retarget, compact and persist every binding under ``model``, then destroy
    the deleted bones.

    New arrays are built for all bindings and the destroy step is checked before
    anything is saved or committed, so a failure leaves the model as it was.

    :param model: The model root
    :param deletion: Transitively closed deletion set
    :param asset_store: Where changed meshes are written, None to skip persistence
    :param undo: Undo stack for the destroy step
    :param suffix: Appended to the names of changed meshes
    :param include_inactive: Also process bindings on disabled nodes
    """
    ordered = sort_deepest_first(deletion)
    result = PruneResult(model)

    bindings = get_skin_bindings(model, include_inactive)
    bone_set = collect_bone_set(bindings)

    updates = []
    for binding in bindings:
        if binding.root_bone is None:
            logger.debug(f"{binding!r}: no root bone, skipped")
            result.skipped.append(binding)
            continue

        retarget = retarget_binding(binding, bone_set, ordered)
        if not retarget.changed:
            result.unchanged.append(binding)
            continue

        bones, bind_poses, joints = compact_bones(
            binding.bones,
            binding.mesh.bind_poses,
            retarget.joints,
            retarget.deleted_indices,
        )
        mesh = binding.mesh.copy(name=f"{binding.mesh.name}{suffix}")
        mesh.bind_poses = bind_poses
        mesh.joints = joints
        updates.append((binding, bones, mesh))

    # bindings without a root bone are left alone and do not pin their bones
    planned = {id(binding): bones for binding, bones, _ in updates}
    skinning = [
        (binding.node, planned.get(id(binding), binding.bones))
        for binding in get_skin_bindings(model, include_inactive=True)
        if binding.root_bone is not None
    ]
    plan_destroy(ordered, model, skinning)

    if asset_store is not None:
        for _, bones, mesh in updates:
            result.assets.append(asset_store.save(mesh, bones))

    for binding, bones, mesh in updates:
        binding.bones = bones
        binding.mesh = mesh
        binding.validate()
        result.changed.append(binding)

    # only after every binding is migrated: destroying invalidates bone lookups
    result.destroyed = destroy_bones(ordered, model, undo, skinning)

    logger.info(
        f"Pruned {len(ordered)} bone(s): {len(result.changed)}/{len(bindings)} binding(s) changed"
    )
    return result


class BonePruner:
    """
    Holds the bone forest of one model and runs the deletion pipeline on it.

    - refresh()      -> rebuild forest + bone count
    - mark(name)     -> toggle a bone (and everything below it)
    - delete_bones() -> retarget, compact, persist, destroy
    """

    def __init__(
        self,
        model: SceneNode,
        config: Optional[PrunerConfig] = None,
        asset_store: Optional[MeshAssetStore] = None,
        undo: Optional[UndoStack] = None,
    ):
        self.model = model
        self.config = config or PrunerConfig()
        self.asset_store = asset_store
        self.undo = undo if undo is not None else UndoStack()
        self.forest: list[BoneInfo] = []
        self.bone_count = 0
        self.refresh()

    def refresh(self):
        self.forest = extract_bone_forest(self.model, include_inactive=self.config.include_inactive)
        self.bone_count = count_bones(self.model, include_inactive=True)
        logger.info(f"{self.model.name}: {self.bone_count} bone(s), {len(self.forest)} root(s)")

    def mark(self, name: str, deleted: bool = True) -> BoneInfo:
        """
        Toggle the bone called ``name``; the flag cascades to its subtree.

        :raises KeyError: If no bone of the forest has that name
        """
        info = find_bone_info(self.forest, name)
        if info is None:
            raise KeyError(f"Unknown bone: {name}")
        info.set_deleted(deleted)
        return info

    def deletion_set(self) -> list[BoneInfo]:
        return deleted_bones(self.forest)

    def _duplicate(self) -> tuple[SceneNode, list[BoneInfo]]:
        """
        Clone the model and carry the deleted flags over by position in the
        post-order flattening of both forests. The clone stays detached until
        pruning succeeds.
        """
        clone = self.model.clone(name=f"{self.model.name}{DUPLICATE_SUFFIX}")

        original = flatten_forest(self.forest)
        copied_forest = extract_bone_forest(clone, include_inactive=self.config.include_inactive)
        copied = flatten_forest(copied_forest)

        if len(original) != len(copied):
            raise BonePruneError(
                f"clone of '{self.model.name}' has {len(copied)} bone node(s), expected {len(original)}"
            )

        for src, dst in zip(original, copied):
            if src.deleted:
                dst.deleted = True

        return clone, deleted_bones(copied_forest)

    def delete_bones(self) -> PruneResult:
        if self.config.duplicate:
            target, deletion = self._duplicate()
        else:
            target, deletion = self.model, self.deletion_set()

        result = prune_model(
            target,
            deletion,
            asset_store=self.asset_store,
            undo=self.undo,
            suffix=self.config.suffix,
            include_inactive=self.config.include_inactive,
        )

        if target is not self.model and self.model.parent is not None:
            self.model.parent.add_child(target)

        self.model = target
        self.refresh()
        return result
